"""
Tests for InMemoryObligationRepository -- the claim protocol without a
database.
"""

import threading
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import ClaimLostError, ObligationNotFoundError

from ledger_batch.services.memory_repository import InMemoryObligationRepository

JAN_1 = datetime(2024, 1, 1, tzinfo=UTC)
NOW = datetime(2024, 1, 2, tzinfo=UTC)


@pytest.fixture
def repo():
    return InMemoryObligationRepository()


class TestClaims:
    def test_claimed_rows_skipped_by_concurrent_claim(self, repo):
        oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
        with repo.claim_due(NOW, 10) as first:
            with repo.claim_due(NOW, 10) as second:
                assert [c.obligation_id for c in first.claimed] == [oid]
                assert second.claimed == ()

    def test_claims_released_after_block(self, repo):
        repo.add(interval_days=30, next_occurs_at=JAN_1)
        with repo.claim_due(NOW, 10):
            pass
        with repo.claim_due(NOW, 10) as batch:
            assert len(batch.claimed) == 1

    def test_exception_rolls_back_fired_claims(self, repo):
        oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
        with pytest.raises(RuntimeError):
            with repo.claim_due(NOW, 10) as batch:
                batch.fire(batch.claimed[0], uuid4())
                raise RuntimeError("crash between fire and commit")

        assert repo.transactions == ()
        assert repo.get(oid).next_occurs_at == JAN_1

    def test_firing_same_claim_twice_rejected(self, repo):
        repo.add(interval_days=30, next_occurs_at=JAN_1)
        with repo.claim_due(NOW, 10) as batch:
            claim = batch.claimed[0]
            batch.fire(claim, uuid4())
            with pytest.raises(ClaimLostError):
                batch.fire(claim, uuid4())
        assert len(repo.transactions) == 1

    def test_deleted_while_claimed_waits(self, repo):
        oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
        deleted = threading.Event()

        def _delete():
            repo.delete(oid)
            deleted.set()

        with repo.claim_due(NOW, 10) as batch:
            worker = threading.Thread(target=_delete)
            worker.start()
            assert not deleted.wait(timeout=0.1)
            batch.fire(batch.claimed[0], uuid4())

        worker.join(timeout=5)
        assert deleted.is_set()
        assert len(repo.transactions) == 1


class TestSkip:
    def test_skip_advances_without_transaction(self, repo):
        oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
        assert repo.skip(oid).next_occurs_at == JAN_1 + timedelta(days=30)
        assert repo.transactions == ()

    def test_skip_waits_for_firing_then_applies_to_advanced_value(self, repo):
        oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
        done = threading.Event()

        def _skip():
            repo.skip(oid)
            done.set()

        with repo.claim_due(NOW, 10) as batch:
            worker = threading.Thread(target=_skip)
            worker.start()
            assert not done.wait(timeout=0.1)
            batch.fire(batch.claimed[0], uuid4())

        worker.join(timeout=5)
        assert repo.get(oid).next_occurs_at == JAN_1 + timedelta(days=60)
        assert len(repo.transactions) == 1

    def test_skip_missing(self, repo):
        with pytest.raises(ObligationNotFoundError):
            repo.skip(uuid4())


class TestEnableDisable:
    def test_disabled_not_claimed(self, repo):
        oid = repo.add(interval_days=30, next_occurs_at=JAN_1)
        repo.set_enabled(oid, False)
        with repo.claim_due(NOW, 10) as batch:
            assert batch.claimed == ()
