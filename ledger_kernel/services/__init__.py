"""Services for the ledger kernel (write side)."""

from ledger_kernel.services.access_control import AccessControlKernel
from ledger_kernel.services.group_service import GroupService
from ledger_kernel.services.obligation_service import ObligationService
from ledger_kernel.services.user_directory import (
    InMemoryUserDirectory,
    SqlUserDirectory,
    UserDirectory,
)

__all__ = [
    "AccessControlKernel",
    "GroupService",
    "InMemoryUserDirectory",
    "ObligationService",
    "SqlUserDirectory",
    "UserDirectory",
]
