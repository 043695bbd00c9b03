"""Pure scheduler types.  ZERO I/O."""

from ledger_batch.domain.types import (
    ClaimedObligation,
    FiredObligation,
    TickResult,
    TickStatus,
)

__all__ = [
    "ClaimedObligation",
    "FiredObligation",
    "TickResult",
    "TickStatus",
]
