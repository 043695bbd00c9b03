"""
Ledger Kernel

The access-control and persistence core of a multi-tenant shared ledger:
- Owner-implicit ADMIN plus group-granted roles, resolved in one place
- "At least one admin per group" enforced under a row lock
- Recurring obligations with drift-free, fixed-day cadence
- Append-only transactions with a per-firing uniqueness backstop
"""

__version__ = "0.1.0"
