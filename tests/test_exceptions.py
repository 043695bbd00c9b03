"""Tests for the typed exception hierarchy."""

import pytest

from ledger_kernel.exceptions import (
    AccessDeniedError,
    AccountNotFoundError,
    ClaimLostError,
    ConfigError,
    ConflictError,
    ErrorKind,
    GroupNotFoundError,
    InvalidRoleError,
    LastAdminError,
    LedgerKernelError,
    LedgerValidationError,
    NotFoundError,
    ObligationNotFoundError,
    SchemaMismatchError,
    TransientStoreError,
    status_for,
)


@pytest.mark.parametrize(
    "exc, status",
    [
        (AccountNotFoundError("a"), 404),
        (GroupNotFoundError("g"), 404),
        (ObligationNotFoundError("o"), 404),
        (AccessDeniedError("account", "a", "edit", "view"), 403),
        (InvalidRoleError("owner"), 400),
        (LastAdminError("g", "u"), 409),
        (ClaimLostError("o", "2024-01-01"), 409),
        (TransientStoreError("claim_due", "down"), 503),
        (SchemaMismatchError(["users"]), 500),
        (ValueError("untyped"), 500),
    ],
)
def test_status_for(exc, status):
    assert status_for(exc) == status


def test_every_error_has_code_and_kind():
    errors = [
        AccountNotFoundError("a"),
        AccessDeniedError("group", "g", "admin", "edit"),
        InvalidRoleError("x"),
        LastAdminError("g", "u"),
        TransientStoreError("fire", "lock timeout"),
        ConfigError("scheduler.batch_size", "bad"),
    ]
    for err in errors:
        assert isinstance(err, LedgerKernelError)
        assert err.code and err.code.isupper()
        assert isinstance(err.kind, ErrorKind)


def test_hierarchy():
    assert issubclass(ObligationNotFoundError, NotFoundError)
    assert issubclass(InvalidRoleError, LedgerValidationError)
    assert issubclass(LastAdminError, ConflictError)
    assert issubclass(ClaimLostError, ConflictError)
    assert not issubclass(AccessDeniedError, NotFoundError)


def test_structured_attributes():
    err = AccessDeniedError("account", "acc-1", "edit", "view")
    assert (err.resource_type, err.resource_id) == ("account", "acc-1")
    assert (err.required_role, err.actual_role) == ("edit", "view")
    assert "requires edit" in str(err)

    missing = SchemaMismatchError(["users.email", "accounts"])
    assert missing.missing == ["users.email", "accounts"]
    assert str(missing).endswith("accounts, users.email")
