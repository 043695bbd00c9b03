"""
Module: ledger_kernel.models.obligation
Responsibility: The Obligation Store -- recurring transaction templates with
    their cadence state.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - ``interval_days >= 1``: ck_obligation_interval.
    - ``amount > 0``: ck_obligation_amount.
    - ``next_occurs_at`` only moves forward by exactly ``interval_days``.
      Not expressible as a constraint; the only writers are the scheduler's
      guarded advance and ObligationService.skip_obligation().

Indexes:
    idx_obligations_due covers the scheduler's claim query
    (``is_enabled AND next_occurs_at <= :now ORDER BY next_occurs_at``).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import CURRENCY_CODE_LENGTH, DESCRIPTION_LENGTH


class RecurringObligation(TimestampedBase):
    """A recurring transaction template (rent, salary, subscriptions)."""

    __tablename__ = "recurring_obligations"

    __table_args__ = (
        CheckConstraint("interval_days >= 1", name="ck_obligation_interval"),
        CheckConstraint("amount > 0", name="ck_obligation_amount"),
        CheckConstraint("kind IN ('income', 'expense')", name="ck_obligation_kind"),
        Index("idx_obligations_due", "is_enabled", "next_occurs_at"),
        Index("idx_obligations_account", "account_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    currency_code: Mapped[str] = mapped_column(String(CURRENCY_CODE_LENGTH), nullable=False)

    kind: Mapped[str] = mapped_column(String(10), nullable=False)

    description: Mapped[str | None] = mapped_column(String(DESCRIPTION_LENGTH), nullable=True)

    interval_days: Mapped[int] = mapped_column(Integer, nullable=False)

    next_occurs_at: Mapped[datetime] = mapped_column(nullable=False)

    is_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def to_dto(self):
        from ledger_kernel.domain.dtos import ObligationInfo, TransactionKind

        return ObligationInfo(
            obligation_id=self.id,
            account_id=self.account_id,
            amount=Decimal(self.amount),
            currency_code=self.currency_code,
            kind=TransactionKind(self.kind),
            description=self.description,
            interval_days=self.interval_days,
            next_occurs_at=self.next_occurs_at,
            is_enabled=self.is_enabled,
        )
