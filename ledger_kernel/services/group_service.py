"""
GroupService -- account groups, their exposed accounts, and member roles.

Responsibility:
    Every mutation of ``account_groups``, ``account_group_users`` and
    ``account_group_members`` goes through this service, gated by the
    AccessControlKernel.

Invariants enforced:
    - The creator is inserted as the group's first admin.
    - A group never loses its last admin.  Each role mutation locks the
      parent ``account_groups`` row (``SELECT ... FOR UPDATE``), counts the
      current admins, then writes, all in the caller's transaction.  Two
      concurrent demotions serialize on that row and the second one sees
      the first one's committed state.
    - Only an admin of an account may expose it through a group.

Failure modes:
    - GroupNotFoundError / AccessDeniedError from the kernel gates.
    - LastAdminError when a removal or demotion would leave zero admins.
    - MemberNotFoundError, UserNotFoundError, InvalidRoleError,
      InvalidNameError.

Transaction boundaries:
    Flush only.  The caller commits.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.dtos import GroupInfo, GroupMemberInfo, GroupMembershipInfo
from ledger_kernel.domain.roles import Role
from ledger_kernel.exceptions import (
    GroupNotFoundError,
    InvalidNameError,
    LastAdminError,
    MemberNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.group import AccountGroup, AccountGroupMember, AccountGroupUser
from ledger_kernel.services.access_control import AccessControlKernel
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.user_directory import SqlUserDirectory, UserDirectory

logger = get_logger("services.group")

MAX_GROUP_NAME_LENGTH = 200


def validate_group_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidNameError(str(name), "must not be blank")
    cleaned = name.strip()
    if len(cleaned) > MAX_GROUP_NAME_LENGTH:
        raise InvalidNameError(name, f"at most {MAX_GROUP_NAME_LENGTH} characters")
    return cleaned


class GroupService(BaseService):
    """
    Group lifecycle and membership management.

    Args:
        session: Caller-owned SQLAlchemy session.
        user_directory: Resolves ``target_email_or_id``; defaults to the
            ``users`` mirror table in the same session.
        access: Kernel instance to share with other services.
    """

    def __init__(
        self,
        session: Session,
        user_directory: UserDirectory | None = None,
        access: AccessControlKernel | None = None,
    ):
        super().__init__(session)
        self._users = user_directory or SqlUserDirectory(session)
        self._access = access or AccessControlKernel(session)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(
        self,
        acting_user: UUID,
        name: str,
        account_ids: Iterable[UUID] = (),
    ) -> GroupInfo:
        """
        Create a group owned by ``acting_user``, who becomes its first admin.

        Raises:
            InvalidNameError: blank name.
            AccountNotFoundError / AccessDeniedError: caller is not admin on
                one of ``account_ids``.
        """
        cleaned = validate_group_name(name)
        accounts = list(dict.fromkeys(account_ids))
        for account_id in accounts:
            self._access.assert_admin(acting_user, account_id)

        group = AccountGroup(owner_user_id=acting_user, name=cleaned)
        self.session.add(group)
        self.session.flush()

        self.session.add(
            AccountGroupUser(group_id=group.id, user_id=acting_user, role=Role.ADMIN.label)
        )
        for account_id in accounts:
            self.session.add(AccountGroupMember(group_id=group.id, account_id=account_id))
        self.session.flush()

        logger.info(
            "group_created",
            extra={
                "group_id": str(group.id),
                "actor_id": str(acting_user),
                "account_count": len(accounts),
            },
        )
        return group.to_dto()

    def update_group(
        self,
        acting_user: UUID,
        group_id: UUID,
        name: str | None = None,
        account_ids: Iterable[UUID] | None = None,
    ) -> GroupInfo:
        """Rename the group and/or replace the set of accounts it exposes."""
        group = self._lock_group(group_id)
        self._access.assert_group_admin(acting_user, group_id)

        if name is not None:
            group.name = validate_group_name(name)

        if account_ids is not None:
            wanted = list(dict.fromkeys(account_ids))
            current = set(
                self.session.execute(
                    select(AccountGroupMember.account_id).where(
                        AccountGroupMember.group_id == group_id
                    )
                ).scalars().all()
            )
            added = [a for a in wanted if a not in current]
            for account_id in added:
                self._access.assert_admin(acting_user, account_id)

            removed = current - set(wanted)
            if removed:
                self.session.execute(
                    delete(AccountGroupMember).where(
                        AccountGroupMember.group_id == group_id,
                        AccountGroupMember.account_id.in_(removed),
                    )
                )
            for account_id in added:
                self.session.add(AccountGroupMember(group_id=group_id, account_id=account_id))

        self.session.flush()
        logger.info(
            "group_updated",
            extra={"group_id": str(group_id), "actor_id": str(acting_user)},
        )
        return group.to_dto()

    def delete_group(self, acting_user: UUID, group_id: UUID) -> None:
        """Delete the group with its memberships and role rows."""
        group = self._lock_group(group_id)
        self._access.assert_group_admin(acting_user, group_id)

        self.session.execute(
            delete(AccountGroupMember).where(AccountGroupMember.group_id == group_id)
        )
        self.session.execute(
            delete(AccountGroupUser).where(AccountGroupUser.group_id == group_id)
        )
        self.session.delete(group)
        self.session.flush()

        logger.info(
            "group_deleted",
            extra={"group_id": str(group_id), "actor_id": str(acting_user)},
        )

    def list_groups(self, user_id: UUID) -> list[GroupInfo]:
        rows = self.session.execute(
            select(AccountGroup)
            .join(AccountGroupUser, AccountGroupUser.group_id == AccountGroup.id)
            .where(AccountGroupUser.user_id == user_id)
            .order_by(AccountGroup.name, AccountGroup.id)
        ).scalars().all()
        return [g.to_dto() for g in rows]

    def list_memberships(self, user_id: UUID) -> list[GroupMembershipInfo]:
        """(group, account) pairs of every group the user belongs to."""
        rows = self.session.execute(
            select(AccountGroupMember)
            .join(AccountGroupUser, AccountGroupUser.group_id == AccountGroupMember.group_id)
            .where(AccountGroupUser.user_id == user_id)
            .order_by(AccountGroupMember.group_id, AccountGroupMember.account_id)
        ).scalars().all()
        return [m.to_dto() for m in rows]

    def list_members(self, acting_user: UUID, group_id: UUID) -> list[GroupMemberInfo]:
        """Members of a group, admins first.  Requires view on the group."""
        self._access.assert_group_member(acting_user, group_id)
        rows = self.session.execute(
            select(AccountGroupUser).where(AccountGroupUser.group_id == group_id)
        ).scalars().all()
        members = [r.to_dto() for r in rows]
        return sorted(members, key=lambda m: (-m.role, str(m.user_id)))

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------

    def add_or_update_member(
        self,
        acting_user: UUID,
        group_id: UUID,
        target_email_or_id: str | UUID,
        role: str,
    ) -> GroupMemberInfo:
        """
        Grant ``role`` to a user, inserting or replacing their role row.

        Raises:
            InvalidRoleError: role is not view/edit/admin.
            UserNotFoundError: the target cannot be resolved.
            LastAdminError: the upsert would demote the last admin.
        """
        new_role = Role.parse(role)
        self._lock_group(group_id)
        self._access.assert_group_admin(acting_user, group_id)
        target_id = self._users.resolve(target_email_or_id)

        row = self._find_member(group_id, target_id)
        if row is None:
            row = AccountGroupUser(group_id=group_id, user_id=target_id, role=new_role.label)
            self.session.add(row)
            event = "member_added"
        else:
            self._guard_last_admin(group_id, row, new_role)
            row.role = new_role.label
            event = "member_role_updated"
        self.session.flush()

        logger.info(
            event,
            extra={
                "group_id": str(group_id),
                "actor_id": str(acting_user),
                "target_user_id": str(target_id),
                "role": new_role.label,
            },
        )
        return row.to_dto()

    def update_member_role(
        self,
        acting_user: UUID,
        group_id: UUID,
        target_user_id: UUID,
        role: str,
    ) -> GroupMemberInfo:
        new_role = Role.parse(role)
        self._lock_group(group_id)
        self._access.assert_group_admin(acting_user, group_id)

        row = self._get_member(group_id, target_user_id)
        self._guard_last_admin(group_id, row, new_role)
        row.role = new_role.label
        self.session.flush()

        logger.info(
            "member_role_updated",
            extra={
                "group_id": str(group_id),
                "actor_id": str(acting_user),
                "target_user_id": str(target_user_id),
                "role": new_role.label,
            },
        )
        return row.to_dto()

    def remove_member(self, acting_user: UUID, group_id: UUID, target_user_id: UUID) -> None:
        self._lock_group(group_id)
        self._access.assert_group_admin(acting_user, group_id)

        row = self._get_member(group_id, target_user_id)
        self._guard_last_admin(group_id, row, Role.NONE)
        self.session.delete(row)
        self.session.flush()

        logger.info(
            "member_removed",
            extra={
                "group_id": str(group_id),
                "actor_id": str(acting_user),
                "target_user_id": str(target_user_id),
            },
        )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _lock_group(self, group_id: UUID) -> AccountGroup:
        """Exclusive row lock on the group; serializes membership writes."""
        group = self.session.execute(
            select(AccountGroup).where(AccountGroup.id == group_id).with_for_update()
        ).scalar_one_or_none()
        if group is None:
            raise GroupNotFoundError(str(group_id))
        return group

    def _find_member(self, group_id: UUID, user_id: UUID) -> AccountGroupUser | None:
        # Re-read under the group lock so the guard never sees a cached role.
        return self.session.execute(
            select(AccountGroupUser).where(
                AccountGroupUser.group_id == group_id,
                AccountGroupUser.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _get_member(self, group_id: UUID, user_id: UUID) -> AccountGroupUser:
        row = self._find_member(group_id, user_id)
        if row is None:
            raise MemberNotFoundError(str(group_id), str(user_id))
        return row

    def _admin_count(self, group_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(AccountGroupUser)
            .where(
                AccountGroupUser.group_id == group_id,
                AccountGroupUser.role == Role.ADMIN.label,
            )
        ).scalar_one()

    def _guard_last_admin(self, group_id: UUID, row: AccountGroupUser, new_role: Role) -> None:
        """Must be called with the group row locked."""
        if Role.from_stored(row.role) is not Role.ADMIN or new_role is Role.ADMIN:
            return
        if self._admin_count(group_id) <= 1:
            logger.warning(
                "last_admin_rejected",
                extra={"group_id": str(group_id), "target_user_id": str(row.user_id)},
            )
            raise LastAdminError(str(group_id), str(row.user_id))
