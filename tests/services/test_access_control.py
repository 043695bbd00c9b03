"""
Tests for AccessControlKernel.

Covers owner fast path, group-derived roles, max-wins tie-break, and the
NotFound-vs-Forbidden visibility policy.
"""

from uuid import uuid4

import pytest

from ledger_kernel.domain.roles import Role
from ledger_kernel.exceptions import (
    AccessDeniedError,
    AccountNotFoundError,
    GroupNotFoundError,
)


@pytest.fixture
def alice(make_user):
    return make_user("alice@example.com")


@pytest.fixture
def bob(make_user):
    return make_user("bob@example.com")


@pytest.fixture
def account(make_account, alice):
    return make_account(alice, name="Household")


def _share(groups, owner, account_id, member, role):
    group = groups.create_group(owner, f"share-{role}", [account_id])
    groups.add_or_update_member(owner, group.group_id, member, role)
    return group


class TestResolveAccountAccess:
    def test_owner_is_admin(self, access, alice, account):
        assert access.resolve_account_access(alice, account) is Role.ADMIN

    def test_owner_stays_admin_with_lower_group_row(self, access, groups, alice, bob, account):
        group = _share(groups, alice, account, bob, "admin")
        # Hand the group to bob and demote alice inside it.
        groups.update_member_role(bob, group.group_id, alice, "view")
        assert access.resolve_account_access(alice, account) is Role.ADMIN

    def test_stranger_is_none(self, access, bob, account):
        assert access.resolve_account_access(bob, account) is Role.NONE

    def test_missing_account_is_none(self, access, alice):
        assert access.resolve_account_access(alice, uuid4()) is Role.NONE

    def test_group_role_applies(self, access, groups, alice, bob, account):
        _share(groups, alice, account, bob, "edit")
        assert access.resolve_account_access(bob, account) is Role.EDIT

    def test_max_role_across_groups_wins(self, access, groups, alice, bob, account):
        _share(groups, alice, account, bob, "view")
        _share(groups, alice, account, bob, "admin")
        _share(groups, alice, account, bob, "edit")
        assert access.resolve_account_access(bob, account) is Role.ADMIN

    def test_group_not_exposing_account_grants_nothing(
        self, access, groups, make_account, alice, bob, account,
    ):
        other = make_account(alice, name="Savings")
        _share(groups, alice, other, bob, "admin")
        assert access.resolve_account_access(bob, account) is Role.NONE

    def test_raising_group_role_never_lowers_resolved_role(
        self, access, groups, alice, bob, account,
    ):
        group = _share(groups, alice, account, bob, "view")
        before = access.resolve_account_access(bob, account)
        for role in ("edit", "admin"):
            groups.update_member_role(alice, group.group_id, bob, role)
            after = access.resolve_account_access(bob, account)
            assert after >= before
            before = after


class TestAccountGates:
    def test_owner_passes_every_gate(self, access, alice, account):
        assert access.assert_view(alice, account) is Role.ADMIN
        assert access.assert_edit(alice, account) is Role.ADMIN
        assert access.assert_admin(alice, account) is Role.ADMIN

    def test_stranger_gets_not_found(self, access, bob, account):
        with pytest.raises(AccountNotFoundError):
            access.assert_view(bob, account)

    def test_missing_account_gets_not_found(self, access, alice):
        with pytest.raises(AccountNotFoundError):
            access.assert_admin(alice, uuid4())

    def test_viewer_forbidden_to_edit(self, access, groups, alice, bob, account):
        _share(groups, alice, account, bob, "view")
        assert access.assert_view(bob, account) is Role.VIEW
        with pytest.raises(AccessDeniedError) as exc_info:
            access.assert_edit(bob, account)
        assert exc_info.value.required_role == "edit"
        assert exc_info.value.actual_role == "view"

    def test_editor_forbidden_to_admin(self, access, groups, alice, bob, account):
        _share(groups, alice, account, bob, "edit")
        assert access.assert_edit(bob, account) is Role.EDIT
        with pytest.raises(AccessDeniedError):
            access.assert_admin(bob, account)

    def test_denial_is_logged(self, access, groups, alice, bob, account, captured_logs):
        _share(groups, alice, account, bob, "view")
        with pytest.raises(AccessDeniedError):
            access.assert_edit(bob, account)
        denied = [r for r in captured_logs() if r["message"] == "access_denied"]
        assert denied and denied[0]["required_role"] == "edit"


class TestVisibleAccounts:
    def test_owned_and_shared(self, access, groups, make_account, alice, bob, account):
        bobs = make_account(bob, name="Bob's")
        make_account(alice, name="Private")
        _share(groups, alice, account, bob, "view")
        assert set(access.visible_account_ids(bob)) == {account, bobs}


class TestGroupGates:
    def test_creator_is_admin(self, access, groups, alice, account):
        group = groups.create_group(alice, "Family", [account])
        assert access.resolve_group_role(alice, group.group_id) is Role.ADMIN

    def test_non_member_is_none(self, access, groups, alice, bob):
        group = groups.create_group(alice, "Family")
        assert access.resolve_group_role(bob, group.group_id) is Role.NONE

    def test_missing_group_is_none(self, access, alice):
        assert access.resolve_group_role(alice, uuid4()) is Role.NONE

    def test_non_member_gets_not_found(self, access, groups, alice, bob):
        group = groups.create_group(alice, "Family")
        with pytest.raises(GroupNotFoundError):
            access.assert_group_member(bob, group.group_id)

    def test_viewer_forbidden_from_admin_gate(self, access, groups, alice, bob):
        group = groups.create_group(alice, "Family")
        groups.add_or_update_member(alice, group.group_id, bob, "view")
        assert access.assert_group_member(bob, group.group_id) is Role.VIEW
        with pytest.raises(AccessDeniedError):
            access.assert_group_admin(bob, group.group_id)
