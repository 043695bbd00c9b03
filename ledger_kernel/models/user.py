"""
Module: ledger_kernel.models.user
Responsibility: Local mirror of identities issued by the external identity
    provider.  The kernel never checks credentials; it only needs to turn an
    email address into a user id when an admin invites a group member.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase


class User(TimestampedBase):
    """Identity mirror row.  ``email`` is stored trimmed and lowercased."""

    __tablename__ = "users"

    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    email: Mapped[str] = mapped_column(String(320), nullable=False)

    display_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")

    def to_dto(self):
        from ledger_kernel.domain.dtos import UserInfo

        return UserInfo(user_id=self.id, email=self.email, display_name=self.display_name)
