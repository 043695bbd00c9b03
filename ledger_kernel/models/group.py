"""
Module: ledger_kernel.models.group
Responsibility: The Role Store -- account groups, the accounts each group
    exposes, and the role each user holds in each group.  Pure data; every
    rule about these rows lives in services/access_control.py and
    services/group_service.py.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One role row per (group, user): uq_group_user.
    - One exposure row per (group, account): uq_group_account.
    - Stored roles are limited to view/edit/admin: ck_group_user_role.
    - The "at least one admin" rule is NOT expressible as a constraint; it is
      enforced by GroupService under a lock on the AccountGroup row.
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TimestampedBase, UUIDString


class AccountGroup(TimestampedBase):
    """
    A named bundle of accounts shared among users.

    The row doubles as the lock target for membership mutations: every role
    change takes ``SELECT ... FOR UPDATE`` on it first.
    """

    __tablename__ = "account_groups"

    __table_args__ = (
        Index("idx_account_groups_owner", "owner_user_id"),
    )

    owner_user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    def to_dto(self):
        from ledger_kernel.domain.dtos import GroupInfo

        return GroupInfo(group_id=self.id, owner_user_id=self.owner_user_id, name=self.name)


class AccountGroupUser(TimestampedBase):
    """What a user may do to the accounts a group exposes."""

    __tablename__ = "account_group_users"

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_user"),
        CheckConstraint("role IN ('view', 'edit', 'admin')", name="ck_group_user_role"),
        Index("idx_group_users_user", "user_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    role: Mapped[str] = mapped_column(String(10), nullable=False)

    def to_dto(self):
        from ledger_kernel.domain.dtos import GroupMemberInfo
        from ledger_kernel.domain.roles import Role

        return GroupMemberInfo(
            group_id=self.group_id,
            user_id=self.user_id,
            role=Role.from_stored(self.role),
        )


class AccountGroupMember(TimestampedBase):
    """Which accounts a group exposes."""

    __tablename__ = "account_group_members"

    __table_args__ = (
        UniqueConstraint("group_id", "account_id", name="uq_group_account"),
        Index("idx_group_members_account", "account_id"),
    )

    group_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("account_groups.id", ondelete="CASCADE"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )

    def to_dto(self):
        from ledger_kernel.domain.dtos import GroupMembershipInfo

        return GroupMembershipInfo(group_id=self.group_id, account_id=self.account_id)
