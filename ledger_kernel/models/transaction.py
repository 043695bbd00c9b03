"""
Module: ledger_kernel.models.transaction
Responsibility: Append-only ledger transaction records.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - One transaction per scheduled instant of an obligation:
      uq_transaction_firing on (source_obligation_id, occurred_at).  NULLs
      are distinct, so manually entered rows are unaffected.  This is the
      store's own backstop behind the scheduler's claim protocol.
    - ``source_obligation_id`` is a plain column, not a foreign key: deleting
      an obligation must not rewrite or delete the history it produced.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import CURRENCY_CODE_LENGTH, DESCRIPTION_LENGTH


class LedgerTransaction(TimestampedBase):
    """A single money movement on an account."""

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint(
            "source_obligation_id", "occurred_at", name="uq_transaction_firing",
        ),
        Index("idx_transactions_account_occurred", "account_id", "occurred_at"),
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

    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    source_obligation_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def to_dto(self):
        from ledger_kernel.domain.dtos import TransactionInfo, TransactionKind

        return TransactionInfo(
            transaction_id=self.id,
            account_id=self.account_id,
            amount=Decimal(self.amount),
            currency_code=self.currency_code,
            kind=TransactionKind(self.kind),
            description=self.description,
            occurred_at=self.occurred_at,
            source_obligation_id=self.source_obligation_id,
        )
