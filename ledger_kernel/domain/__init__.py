"""
ledger_kernel.domain -- Pure types and rules.  ZERO I/O.
"""

from ledger_kernel.domain.cadence import (
    advance_next_fire,
    is_due,
    missed_periods,
    normalize_timestamp,
    validate_interval_days,
)
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountInfo,
    GroupInfo,
    GroupMemberInfo,
    GroupMembershipInfo,
    ObligationInfo,
    TransactionInfo,
    TransactionKind,
    UserInfo,
)
from ledger_kernel.domain.roles import Role, max_role

__all__ = [
    "AccountInfo",
    "Clock",
    "DeterministicClock",
    "GroupInfo",
    "GroupMemberInfo",
    "GroupMembershipInfo",
    "ObligationInfo",
    "Role",
    "SystemClock",
    "TransactionInfo",
    "TransactionKind",
    "UserInfo",
    "advance_next_fire",
    "is_due",
    "max_role",
    "missed_periods",
    "normalize_timestamp",
    "validate_interval_days",
]
