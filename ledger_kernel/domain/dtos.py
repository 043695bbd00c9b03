"""
Immutable data transfer objects returned by kernel services and selectors.

Services never hand ORM instances across their boundary; callers receive
these frozen snapshots instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.domain.roles import Role
from ledger_kernel.exceptions import InvalidKindError


class TransactionKind(str, Enum):
    """Direction of money movement."""

    INCOME = "income"
    EXPENSE = "expense"

    @classmethod
    def parse(cls, value: TransactionKind | str) -> TransactionKind:
        if isinstance(value, TransactionKind):
            return value
        if isinstance(value, str):
            normalized = value.strip().lower()
            for member in cls:
                if member.value == normalized:
                    return member
        raise InvalidKindError(str(value))


@dataclass(frozen=True)
class UserInfo:
    user_id: UUID
    email: str
    display_name: str


@dataclass(frozen=True)
class AccountInfo:
    account_id: UUID
    owner_user_id: UUID
    name: str
    currency_code: str


@dataclass(frozen=True)
class GroupInfo:
    group_id: UUID
    owner_user_id: UUID
    name: str


@dataclass(frozen=True)
class GroupMemberInfo:
    """One (group, user) role row."""

    group_id: UUID
    user_id: UUID
    role: Role


@dataclass(frozen=True)
class GroupMembershipInfo:
    """One (group, account) exposure row."""

    group_id: UUID
    account_id: UUID


@dataclass(frozen=True)
class ObligationInfo:
    obligation_id: UUID
    account_id: UUID
    amount: Decimal
    currency_code: str
    kind: TransactionKind
    description: str | None
    interval_days: int
    next_occurs_at: datetime
    is_enabled: bool


@dataclass(frozen=True)
class TransactionInfo:
    transaction_id: UUID
    account_id: UUID
    amount: Decimal
    currency_code: str
    kind: TransactionKind
    description: str | None
    occurred_at: datetime
    source_obligation_id: UUID | None = None
