"""
SqlObligationRepository -- claim protocol on a relational store.

Per unit of work (one scheduler tick):

    BEGIN
    SELECT ... FROM recurring_obligations
        WHERE is_enabled AND next_occurs_at <= :now
        ORDER BY next_occurs_at, id
        LIMIT :limit
        FOR UPDATE SKIP LOCKED
    -- per claim:
    SAVEPOINT
    UPDATE recurring_obligations SET next_occurs_at = :new
        WHERE id = :id AND next_occurs_at = :claimed
    INSERT INTO transactions (..., occurred_at = :claimed,
                              source_obligation_id = :id)
    RELEASE SAVEPOINT            -- or ROLLBACK TO SAVEPOINT on a lost guard
    -- end per claim
    COMMIT

Row locks make concurrent schedulers partition the due set; SKIP LOCKED
means they never wait on each other.  The guarded UPDATE and the UNIQUE
(source_obligation_id, occurred_at) constraint are the backstops for stores
without row locks (SQLite) and for concurrent skip actions.

Store connectivity failures surface as TransientStoreError.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ledger_kernel.domain.cadence import advance_next_fire
from ledger_kernel.exceptions import ClaimLostError, TransientStoreError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.obligation import RecurringObligation
from ledger_kernel.models.transaction import LedgerTransaction

from ledger_batch.domain.types import ClaimedObligation, FiredObligation
from ledger_batch.services.repository import ClaimBatch, ObligationRepository

logger = get_logger("batch.sql_repository")


def _snapshot(row: RecurringObligation) -> ClaimedObligation:
    return ClaimedObligation(
        obligation_id=row.id,
        account_id=row.account_id,
        amount=Decimal(row.amount),
        currency_code=row.currency_code,
        kind=row.kind,
        description=row.description,
        interval_days=row.interval_days,
        next_occurs_at=row.next_occurs_at,
    )


class _SqlClaimBatch(ClaimBatch):

    def __init__(self, session: Session, claimed: tuple[ClaimedObligation, ...]):
        super().__init__(claimed)
        self._session = session
        self._open: set[UUID] = {c.obligation_id for c in claimed}

    def fire(self, claim: ClaimedObligation, transaction_id: UUID) -> FiredObligation:
        if claim.obligation_id not in self._open:
            raise ClaimLostError(str(claim.obligation_id), claim.next_occurs_at.isoformat())
        self._open.discard(claim.obligation_id)

        new_next = advance_next_fire(claim.next_occurs_at, claim.interval_days)
        try:
            with self._session.begin_nested():
                result = self._session.execute(
                    update(RecurringObligation)
                    .where(
                        RecurringObligation.id == claim.obligation_id,
                        RecurringObligation.next_occurs_at == claim.next_occurs_at,
                    )
                    .values(next_occurs_at=new_next)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise ClaimLostError(
                        str(claim.obligation_id), claim.next_occurs_at.isoformat(),
                    )
                self._session.add(
                    LedgerTransaction(
                        id=transaction_id,
                        account_id=claim.account_id,
                        amount=claim.amount,
                        currency_code=claim.currency_code,
                        kind=claim.kind,
                        description=claim.description,
                        occurred_at=claim.next_occurs_at,
                        source_obligation_id=claim.obligation_id,
                    )
                )
                self._session.flush()
        except IntegrityError:
            raise ClaimLostError(
                str(claim.obligation_id), claim.next_occurs_at.isoformat(),
            ) from None
        except OperationalError as exc:
            raise TransientStoreError("fire", str(exc.orig)) from exc

        return self._fired(claim, transaction_id)


class SqlObligationRepository(ObligationRepository):
    """
    Claims through ``SELECT ... FOR UPDATE SKIP LOCKED``.

    Args:
        session_factory: Opens one session per unit of work.  Each
            scheduler (thread or process) must get its own sessions.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    @contextmanager
    def claim_due(self, now: datetime, limit: int) -> Iterator[ClaimBatch]:
        session = self._session_factory()
        try:
            try:
                rows = session.execute(
                    select(RecurringObligation)
                    .where(
                        RecurringObligation.is_enabled.is_(True),
                        RecurringObligation.next_occurs_at <= now,
                    )
                    .order_by(RecurringObligation.next_occurs_at, RecurringObligation.id)
                    .limit(limit)
                    .with_for_update(skip_locked=True)
                ).scalars().all()
            except OperationalError as exc:
                raise TransientStoreError("claim_due", str(exc.orig)) from exc

            claimed = tuple(_snapshot(r) for r in rows)
            session.expunge_all()
            logger.debug("obligations_claimed", extra={"claimed": len(claimed)})

            yield _SqlClaimBatch(session, claimed)

            try:
                session.commit()
            except OperationalError as exc:
                raise TransientStoreError("commit", str(exc.orig)) from exc
        except BaseException:
            session.rollback()
            raise
        finally:
            session.close()
