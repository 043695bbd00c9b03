"""
AccessControlKernel -- the single resolver for account and group permissions.

Responsibility:
    Resolves the effective Role of a user on an account or a group, and
    provides assert_* gates that every user-facing operation calls before it
    reads or mutates an Account, Obligation or Group.  No other module
    derives roles on its own.

Resolution:
    Account: owner -> ADMIN (fast path, never stored); otherwise the maximum
    role the user holds in any group that exposes the account; NONE if there
    is no such group or the account does not exist.

    Group: the role stored in ``account_group_users``; NONE if there is no
    row or the group does not exist.

Failure modes (assert_*):
    - NotFoundError subclass when the entity is absent OR the caller resolves
      to NONE (existence is never leaked to outsiders).
    - AccessDeniedError when the caller has a role below the threshold.

Architecture position:
    Kernel > Services.  Read-only: never adds, flushes or commits.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from ledger_kernel.domain.roles import Role, max_role
from ledger_kernel.exceptions import (
    AccessDeniedError,
    AccountNotFoundError,
    GroupNotFoundError,
    NotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.group import AccountGroupMember, AccountGroupUser
from ledger_kernel.services.base import BaseService

logger = get_logger("services.access_control")


class AccessControlKernel(BaseService):
    """
    Resolver and gates for (user, account) and (user, group) permissions.

    Contract:
        - ``resolve_*`` never raise for missing rows; they return NONE.
        - ``assert_*`` return the resolved role on success.
    """

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def resolve_account_access(self, user_id: UUID, account_id: UUID) -> Role:
        owner_id = self.session.execute(
            select(Account.owner_user_id).where(Account.id == account_id)
        ).scalar_one_or_none()

        if owner_id is None:
            return Role.NONE
        if owner_id == user_id:
            return Role.ADMIN

        stored = self.session.execute(
            select(AccountGroupUser.role)
            .join(
                AccountGroupMember,
                AccountGroupMember.group_id == AccountGroupUser.group_id,
            )
            .where(
                AccountGroupMember.account_id == account_id,
                AccountGroupUser.user_id == user_id,
            )
        ).scalars().all()

        return max_role(Role.from_stored(r) for r in stored)

    def assert_account_access(
        self, user_id: UUID, account_id: UUID, required: Role,
    ) -> Role:
        role = self.resolve_account_access(user_id, account_id)
        return self._check(role, required, "account", account_id, AccountNotFoundError(str(account_id)))

    def assert_view(self, user_id: UUID, account_id: UUID) -> Role:
        return self.assert_account_access(user_id, account_id, Role.VIEW)

    def assert_edit(self, user_id: UUID, account_id: UUID) -> Role:
        return self.assert_account_access(user_id, account_id, Role.EDIT)

    def assert_admin(self, user_id: UUID, account_id: UUID) -> Role:
        return self.assert_account_access(user_id, account_id, Role.ADMIN)

    def visible_account_ids(self, user_id: UUID) -> list[UUID]:
        """Ids of every account the user resolves to at least VIEW on."""
        owned = select(Account.id).where(Account.owner_user_id == user_id)
        shared = (
            select(AccountGroupMember.account_id)
            .join(
                AccountGroupUser,
                AccountGroupUser.group_id == AccountGroupMember.group_id,
            )
            .where(AccountGroupUser.user_id == user_id)
        )
        return list(self.session.execute(owned.union(shared)).scalars().all())

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def resolve_group_role(self, user_id: UUID, group_id: UUID) -> Role:
        stored = self.session.execute(
            select(AccountGroupUser.role).where(
                AccountGroupUser.group_id == group_id,
                AccountGroupUser.user_id == user_id,
            )
        ).scalar_one_or_none()
        return Role.from_stored(stored)

    def assert_group_access(
        self, user_id: UUID, group_id: UUID, required: Role,
    ) -> Role:
        role = self.resolve_group_role(user_id, group_id)
        return self._check(role, required, "group", group_id, GroupNotFoundError(str(group_id)))

    def assert_group_member(self, user_id: UUID, group_id: UUID) -> Role:
        return self.assert_group_access(user_id, group_id, Role.VIEW)

    def assert_group_admin(self, user_id: UUID, group_id: UUID) -> Role:
        return self.assert_group_access(user_id, group_id, Role.ADMIN)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _check(
        role: Role,
        required: Role,
        resource_type: str,
        resource_id: UUID,
        not_found: NotFoundError,
    ) -> Role:
        if role is Role.NONE:
            raise not_found
        if role < required:
            logger.info(
                "access_denied",
                extra={
                    "resource_type": resource_type,
                    "resource_id": str(resource_id),
                    "required_role": required.label,
                    "actual_role": role.label,
                },
            )
            raise AccessDeniedError(
                resource_type, str(resource_id), required.label, role.label,
            )
        return role
