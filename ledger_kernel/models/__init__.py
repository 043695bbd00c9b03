"""ORM models.  Importing this package registers every table on Base.metadata."""

from ledger_kernel.models.account import Account
from ledger_kernel.models.group import AccountGroup, AccountGroupMember, AccountGroupUser
from ledger_kernel.models.obligation import RecurringObligation
from ledger_kernel.models.transaction import LedgerTransaction
from ledger_kernel.models.user import User

__all__ = [
    "Account",
    "AccountGroup",
    "AccountGroupMember",
    "AccountGroupUser",
    "LedgerTransaction",
    "RecurringObligation",
    "User",
]
