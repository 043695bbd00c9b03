"""
TransactionSelector -- read side of the append-only ledger.

``list_for_account`` is gated by the AccessControlKernel (VIEW).
``for_obligation`` is an unscoped operational read for tooling and tests;
it must never be exposed to end users directly.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import TransactionInfo
from ledger_kernel.models.transaction import LedgerTransaction
from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.services.access_control import AccessControlKernel
from ledger_kernel.services.obligation_service import DEFAULT_LIST_LIMIT, clamp_page


class TransactionSelector(BaseSelector):
    """Queries over ``transactions``; returns TransactionInfo DTOs."""

    def __init__(self, session: Session, access: AccessControlKernel | None = None):
        super().__init__(session)
        self._access = access or AccessControlKernel(session)

    def list_for_account(
        self,
        acting_user: UUID,
        account_id: UUID,
        limit: int = DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> list[TransactionInfo]:
        """Transactions on an account, newest first.  Requires VIEW."""
        self._access.assert_view(acting_user, account_id)
        limit, offset = clamp_page(limit, offset)

        rows = self.session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.account_id == account_id)
            .order_by(LedgerTransaction.occurred_at.desc(), LedgerTransaction.id)
            .limit(limit)
            .offset(offset)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def for_obligation(self, obligation_id: UUID) -> list[TransactionInfo]:
        """Every transaction produced by one obligation, oldest first."""
        rows = self.session.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.source_obligation_id == obligation_id)
            .order_by(LedgerTransaction.occurred_at)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def count_for_obligation(self, obligation_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(LedgerTransaction)
            .where(LedgerTransaction.source_obligation_id == obligation_id)
        ).scalar_one()
