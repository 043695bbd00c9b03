"""
Property-based tests for the cadence and role rules.

Hypothesis generates start instants, intervals and role sets; the rules
must hold for all of them:
- rollover moves forward by exactly one interval from the stored value
- a chain of n rollovers lands n intervals after the start
- missed_periods agrees with repeatedly applying the rollover
- resolved roles are the maximum and never drop when a role is raised
"""

from datetime import UTC, datetime, timedelta

from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.cadence import (
    MAX_INTERVAL_DAYS,
    advance_next_fire,
    is_due,
    missed_periods,
)
from ledger_kernel.domain.roles import Role, max_role

instants = st.datetimes(
    min_value=datetime(2000, 1, 1),
    max_value=datetime(2100, 1, 1),
    timezones=st.just(UTC),
)
intervals = st.integers(min_value=1, max_value=MAX_INTERVAL_DAYS)
roles = st.sampled_from(list(Role))


@given(start=instants, interval=intervals)
def test_rollover_is_exactly_one_interval(start, interval):
    nxt = advance_next_fire(start, interval)
    assert nxt - start == timedelta(days=interval)
    assert nxt > start


@given(start=instants, interval=st.integers(min_value=1, max_value=400), n=st.integers(0, 40))
def test_rollover_chain_has_no_drift(start, interval, n):
    current = start
    for _ in range(n):
        current = advance_next_fire(current, interval)
    assert current == start + n * timedelta(days=interval)


@given(
    start=instants,
    interval=st.integers(min_value=1, max_value=60),
    lag_hours=st.integers(min_value=0, max_value=24 * 400),
)
@settings(max_examples=200)
def test_missed_periods_matches_catch_up(start, interval, lag_hours):
    as_of = start + timedelta(hours=lag_hours)

    fired = 0
    current = start
    while is_due(current, True, as_of):
        current = advance_next_fire(current, interval)
        fired += 1

    assert missed_periods(start, interval, as_of) == fired
    assert not is_due(current, True, as_of)


@given(start=instants, as_of=instants)
def test_disabled_is_never_due(start, as_of):
    assert is_due(start, False, as_of) is False


@given(held=st.lists(roles, max_size=6), raised=roles)
def test_raising_a_role_never_lowers_the_maximum(held, raised):
    before = max_role(held)
    if held:
        upgraded = held[:-1] + [max(held[-1], raised)]
    else:
        upgraded = [raised]
    assert max_role(upgraded) >= before
