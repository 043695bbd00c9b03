"""
Pure cadence rules for recurring obligations.

Contract:
    Every function here is PURE -- no I/O, no clock reads.  The scheduler
    supplies ``as_of`` from its injected Clock; rollover arithmetic only ever
    uses the stored ``next_occurs_at``.

Rollover:
    ``next_new = next_old + interval_days`` (calendar days).  Because the
    base is the stored value rather than "now", a late tick still dates its
    transaction at the scheduled instant and processing delay never
    accumulates as drift.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from ledger_kernel.exceptions import InvalidIntervalError, InvalidTimestampError

MIN_INTERVAL_DAYS = 1
MAX_INTERVAL_DAYS = 36_500


def validate_interval_days(value: object) -> int:
    """
    Validate a fixed-day interval.

    Raises:
        InvalidIntervalError: non-integers (bools included) or values outside
            [MIN_INTERVAL_DAYS, MAX_INTERVAL_DAYS].
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidIntervalError(value, "must be a whole number of days")
    if value < MIN_INTERVAL_DAYS:
        raise InvalidIntervalError(value, f"must be at least {MIN_INTERVAL_DAYS}")
    if value > MAX_INTERVAL_DAYS:
        raise InvalidIntervalError(value, f"must be at most {MAX_INTERVAL_DAYS}")
    return value


def normalize_timestamp(value: object) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is taken as UTC)."""
    if not isinstance(value, datetime):
        raise InvalidTimestampError(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def advance_next_fire(next_fire: datetime, interval_days: int) -> datetime:
    """One rollover step: the stored next-fire plus exactly one interval."""
    return next_fire + timedelta(days=validate_interval_days(interval_days))


def is_due(next_fire: datetime, is_enabled: bool, as_of: datetime) -> bool:
    """An enabled obligation is due once its next-fire is at or before ``as_of``."""
    return is_enabled and next_fire <= as_of


def missed_periods(next_fire: datetime, interval_days: int, as_of: datetime) -> int:
    """
    Number of firings currently owed (0 when not yet due).

    Used for backlog reporting only; the scheduler still clears a backlog one
    interval per tick.
    """
    if next_fire > as_of:
        return 0
    step = timedelta(days=validate_interval_days(interval_days))
    return (as_of - next_fire) // step + 1
