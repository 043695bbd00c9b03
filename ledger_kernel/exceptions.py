"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (HTTP adapters, the scheduler, operational scripts) must react to
errors by category, never by parsing message strings.  Every exception:

  1. Has a TYPED class (catch by type, not message)
  2. Has a ``code`` class attribute (machine-readable, API-safe)
  3. Has a ``kind`` class attribute (one of six ErrorKind categories)
  4. Carries structured DATA as attributes

Example - RIGHT way:
    try:
        groups.remove_member(actor, group_id, target_id)
    except LastAdminError as e:
        respond(status_for(e), code=e.code, group=e.group_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- NotFoundError                       kind=NOT_FOUND
    |   +-- AccountNotFoundError
    |   +-- GroupNotFoundError
    |   +-- ObligationNotFoundError
    |   +-- UserNotFoundError
    |   +-- MemberNotFoundError
    |
    +-- AccessDeniedError                   kind=FORBIDDEN
    |
    +-- LedgerValidationError               kind=VALIDATION
    |   +-- InvalidRoleError
    |   +-- InvalidIntervalError
    |   +-- InvalidAmountError
    |   +-- InvalidCurrencyError
    |   +-- InvalidKindError
    |   +-- InvalidNameError
    |   +-- InvalidTimestampError
    |
    +-- ConflictError                       kind=CONFLICT
    |   +-- LastAdminError
    |   +-- ClaimLostError
    |
    +-- TransientStoreError                 kind=TRANSIENT
    |
    +-- FatalError                          kind=FATAL
        +-- SchemaMismatchError
        +-- EngineNotInitializedError
        +-- ConfigError

===============================================================================
VISIBILITY POLICY
===============================================================================

A caller who holds no role at all on an account, group or obligation gets
the NotFoundError subclass, never AccessDeniedError, so that the existence
of other tenants' rows is not observable.  AccessDeniedError is reserved for
callers who can already see the entity but lack the required role.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Top-level error categories surfaced to callers."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    FATAL = "fatal"


ERROR_KIND_STATUS: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.TRANSIENT: 503,
    ErrorKind.FATAL: 500,
}


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have ``code`` and ``kind`` class attributes.
    """

    code: str = "LEDGER_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.FATAL


def status_for(exc: BaseException) -> int:
    """Suggested status code for an exception (500 for anything untyped)."""
    if isinstance(exc, LedgerKernelError):
        return ERROR_KIND_STATUS[exc.kind]
    return 500


# Not found


class NotFoundError(LedgerKernelError):
    """Base exception for absent (or invisible) entities."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND


class AccountNotFoundError(NotFoundError):
    """Account does not exist or is not visible to the caller."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class GroupNotFoundError(NotFoundError):
    """Account group does not exist or is not visible to the caller."""

    code: str = "GROUP_NOT_FOUND"

    def __init__(self, group_id: str):
        self.group_id = group_id
        super().__init__(f"Account group not found: {group_id}")


class ObligationNotFoundError(NotFoundError):
    """Recurring obligation does not exist or is not visible to the caller."""

    code: str = "OBLIGATION_NOT_FOUND"

    def __init__(self, obligation_id: str):
        self.obligation_id = obligation_id
        super().__init__(f"Recurring obligation not found: {obligation_id}")


class UserNotFoundError(NotFoundError):
    """No user matches the given email or id."""

    code: str = "USER_NOT_FOUND"

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"User not found: {reference}")


class MemberNotFoundError(NotFoundError):
    """User holds no role in the group."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, group_id: str, user_id: str):
        self.group_id = group_id
        self.user_id = user_id
        super().__init__(f"User {user_id} is not a member of group {group_id}")


# Forbidden


class AccessDeniedError(LedgerKernelError):
    """Entity is visible to the caller but their role is insufficient."""

    code: str = "ACCESS_DENIED"
    kind: ErrorKind = ErrorKind.FORBIDDEN

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        required_role: str,
        actual_role: str,
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.required_role = required_role
        self.actual_role = actual_role
        super().__init__(
            f"Forbidden: {resource_type} {resource_id} requires {required_role}, "
            f"caller has {actual_role}"
        )


# Validation


class LedgerValidationError(LedgerKernelError):
    """Base exception for malformed input."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class InvalidRoleError(LedgerValidationError):
    """Role string is not one of view, edit, admin."""

    code: str = "INVALID_ROLE"

    def __init__(self, role: str):
        self.role = role
        super().__init__(f"Invalid role: {role!r}")


class InvalidIntervalError(LedgerValidationError):
    """Interval is not a whole number of days within bounds."""

    code: str = "INVALID_INTERVAL"

    def __init__(self, interval_days: object, reason: str):
        self.interval_days = interval_days
        self.reason = reason
        super().__init__(f"Invalid interval_days {interval_days!r}: {reason}")


class InvalidAmountError(LedgerValidationError):
    """Amount is not a finite, positive decimal."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: object, reason: str):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount!r}: {reason}")


class InvalidCurrencyError(LedgerValidationError):
    """Not a valid ISO 4217 currency code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")


class InvalidKindError(LedgerValidationError):
    """Transaction kind is not income or expense."""

    code: str = "INVALID_KIND"

    def __init__(self, kind_value: str):
        self.kind_value = kind_value
        super().__init__(f"Invalid transaction kind: {kind_value!r}")


class InvalidNameError(LedgerValidationError):
    """Name is blank or too long."""

    code: str = "INVALID_NAME"

    def __init__(self, name: str, reason: str):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid name {name!r}: {reason}")


class InvalidTimestampError(LedgerValidationError):
    """Timestamp is missing or not a datetime."""

    code: str = "INVALID_TIMESTAMP"

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid timestamp: {value!r}")


# Conflict


class ConflictError(LedgerKernelError):
    """Base exception for operations that would violate a stored invariant."""

    code: str = "CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT


class LastAdminError(ConflictError):
    """
    Removing or demoting this member would leave the group without an admin.

    The member set is unchanged when this is raised.
    """

    code: str = "LAST_ADMIN"

    def __init__(self, group_id: str, user_id: str):
        self.group_id = group_id
        self.user_id = user_id
        super().__init__(
            f"At least one admin required: user {user_id} is the last admin "
            f"of group {group_id}"
        )


class ClaimLostError(ConflictError):
    """
    A claimed obligation no longer matches the claimed cadence state.

    Raised inside a claim batch when the guarded advance matches no row
    (another writer advanced or deleted it) or the ledger already holds a
    transaction for the same scheduled instant.  The claim is released.
    """

    code: str = "CLAIM_LOST"

    def __init__(self, obligation_id: str, expected_next_occurs_at: str):
        self.obligation_id = obligation_id
        self.expected_next_occurs_at = expected_next_occurs_at
        super().__init__(
            f"Claim lost for obligation {obligation_id} "
            f"at {expected_next_occurs_at}"
        )


# Transient


class TransientStoreError(LedgerKernelError):
    """The backing store is temporarily unreachable; retry later."""

    code: str = "STORE_UNAVAILABLE"
    kind: ErrorKind = ErrorKind.TRANSIENT

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


# Fatal


class FatalError(LedgerKernelError):
    """Base exception for startup conditions the process cannot recover from."""

    code: str = "FATAL"
    kind: ErrorKind = ErrorKind.FATAL


class SchemaMismatchError(FatalError):
    """The database schema does not match the ORM models."""

    code: str = "SCHEMA_MISMATCH"

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            "Database schema mismatch, missing: " + ", ".join(sorted(missing))
        )


class EngineNotInitializedError(FatalError):
    """Engine accessor used before init_engine_from_url()."""

    code: str = "ENGINE_NOT_INITIALIZED"

    def __init__(self):
        super().__init__("Engine not initialized. Call init_engine_from_url() first.")


class ConfigError(FatalError):
    """Configuration file or environment override is invalid."""

    code: str = "CONFIG_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}: {reason}")
