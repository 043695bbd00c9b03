"""
ObligationRepository -- the claim protocol between scheduler and store.

Contract:
    ``claim_due(now, limit)`` is a context manager.  Entering it opens one
    unit of work and claims up to ``limit`` enabled obligations whose
    ``next_occurs_at <= now``, soonest first.  The yielded ClaimBatch lists
    the claims and fires them one at a time.

    - No two concurrent units of work hold a claim on the same obligation.
    - Obligations already claimed elsewhere are skipped, never waited on.
    - ``fire()`` writes the transaction and advances ``next_occurs_at`` as
      one atomic step, guarded on the claimed ``next_occurs_at``.  A lost
      guard raises ClaimLostError and releases that claim only.
    - Leaving the block normally commits every fired claim.  Leaving it by
      exception rolls back the whole unit and releases every claim.  Claims
      that were never fired are released either way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from uuid import UUID

from ledger_kernel.domain.cadence import advance_next_fire

from ledger_batch.domain.types import ClaimedObligation, FiredObligation


class ClaimBatch(ABC):
    """Claims held by one unit of work."""

    def __init__(self, claimed: tuple[ClaimedObligation, ...]):
        self.claimed = claimed

    @abstractmethod
    def fire(self, claim: ClaimedObligation, transaction_id: UUID) -> FiredObligation:
        """
        Materialize one claim.

        The transaction is dated at ``claim.next_occurs_at`` and the
        obligation advances by exactly one interval.

        Raises:
            ClaimLostError: the guard no longer matches; the claim is
                released and the rest of the batch is unaffected.
            TransientStoreError: the store became unreachable.
        """

    @staticmethod
    def _fired(claim: ClaimedObligation, transaction_id: UUID) -> FiredObligation:
        return FiredObligation(
            obligation_id=claim.obligation_id,
            transaction_id=transaction_id,
            occurred_at=claim.next_occurs_at,
            next_occurs_at=advance_next_fire(claim.next_occurs_at, claim.interval_days),
        )


class ObligationRepository(ABC):
    """Store-side half of the scheduler."""

    @abstractmethod
    def claim_due(
        self, now: datetime, limit: int,
    ) -> AbstractContextManager[ClaimBatch]:
        ...
