"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for ledger accounts.
Architecture position: Kernel > Models.  May import from db/base.py and
    db/types.py only.

Invariants enforced:
    - Every account has exactly one owner (``owner_user_id`` NOT NULL).  The
      owner's ADMIN permission is implicit and is never written to
      ``account_group_users``; see services/access_control.py.
"""

from uuid import UUID

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase, UUIDString
from ledger_kernel.db.types import CURRENCY_CODE_LENGTH


class Account(TimestampedBase):
    """A ledger account owned by one user, optionally shared through groups."""

    __tablename__ = "accounts"

    __table_args__ = (
        Index("idx_accounts_owner", "owner_user_id"),
    )

    owner_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    currency_code: Mapped[str] = mapped_column(String(CURRENCY_CODE_LENGTH), nullable=False)

    def to_dto(self):
        from ledger_kernel.domain.dtos import AccountInfo

        return AccountInfo(
            account_id=self.id,
            owner_user_id=self.owner_user_id,
            name=self.name,
            currency_code=self.currency_code,
        )
