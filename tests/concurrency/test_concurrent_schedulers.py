"""
Concurrent schedulers over one shared store.

N schedulers released together by a Barrier must produce exactly one
transaction per due obligation per scheduled instant, whatever the
interleaving.  Uses the thread-safe in-memory repository.
"""

import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from threading import Barrier

import pytest

from ledger_kernel.domain.clock import DeterministicClock

from ledger_batch.domain.types import TickStatus
from ledger_batch.services.memory_repository import InMemoryObligationRepository
from ledger_batch.services.scheduler import ObligationScheduler

JAN_1 = datetime(2024, 1, 1, tzinfo=UTC)


def _run_concurrently(schedulers, ticks_each=1):
    barrier = Barrier(len(schedulers))

    def _worker(scheduler):
        barrier.wait()
        return [scheduler.tick() for _ in range(ticks_each)]

    with ThreadPoolExecutor(max_workers=len(schedulers)) as pool:
        results = list(pool.map(_worker, schedulers))
    return [r for batch in results for r in batch]


@pytest.mark.parametrize("workers", [2, 4, 8])
def test_each_due_obligation_fires_exactly_once(workers):
    repo = InMemoryObligationRepository()
    clock = DeterministicClock(fixed_time=datetime(2024, 1, 2, tzinfo=UTC))
    due = [repo.add(interval_days=30, next_occurs_at=JAN_1) for _ in range(50)]
    schedulers = [
        ObligationScheduler(repo, clock=clock, batch_size=7, name=f"s{i}")
        for i in range(workers)
    ]

    results = _run_concurrently(schedulers, ticks_each=10)

    per_obligation = Counter(t.source_obligation_id for t in repo.transactions)
    assert set(per_obligation) == set(due)
    assert set(per_obligation.values()) == {1}
    assert all(r.status is not TickStatus.FAILED for r in results)
    fired_ids = [oid for r in results for oid in r.fired_ids]
    assert len(fired_ids) == len(set(fired_ids)) == len(due)


def test_no_duplicate_instants_while_clearing_backlog():
    repo = InMemoryObligationRepository()
    clock = DeterministicClock(fixed_time=datetime(2024, 1, 11, tzinfo=UTC))
    oid = repo.add(interval_days=1, next_occurs_at=JAN_1)
    schedulers = [ObligationScheduler(repo, clock=clock) for _ in range(4)]

    _run_concurrently(schedulers, ticks_each=20)

    instants = [t.occurred_at for t in repo.transactions_for(oid)]
    assert instants == [JAN_1 + timedelta(days=d) for d in range(11)]
    assert repo.get(oid).next_occurs_at == datetime(2024, 1, 12, tzinfo=UTC)


def test_skip_racing_scheduler_never_double_advances():
    repo = InMemoryObligationRepository()
    clock = DeterministicClock(fixed_time=datetime(2024, 1, 2, tzinfo=UTC))
    oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
    scheduler = ObligationScheduler(repo, clock=clock)
    barrier = Barrier(2)

    def _skip():
        barrier.wait()
        repo.skip(oid)

    worker = threading.Thread(target=_skip)
    worker.start()
    barrier.wait()
    scheduler.tick()
    worker.join(timeout=5)

    fired = len(repo.transactions_for(oid))
    # Either the skip or the firing consumed the Jan 1 instant, never both,
    # and the row advanced exactly once per consumed instant.
    expected_next = JAN_1 + timedelta(days=30 * 2) if fired == 1 else JAN_1 + timedelta(days=30)
    assert fired in (0, 1)
    assert repo.get(oid).next_occurs_at == expected_next
