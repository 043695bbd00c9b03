"""
ledger_batch.domain.types -- Pure frozen dataclasses for the scheduler.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class TickStatus(str, Enum):
    """Outcome of one scheduler tick."""

    IDLE = "idle"  # Nothing was due
    COMPLETED = "completed"  # Every claimed obligation was fired or released
    FAILED = "failed"  # Rolled back; nothing from this tick persisted
    STOPPED = "stopped"  # Stop signal observed before every claim was handled


@dataclass(frozen=True)
class ClaimedObligation:
    """Snapshot of an obligation held by the current unit of work.

    ``next_occurs_at`` is the pre-advance value: the firing is dated at it
    and the advance is guarded on it.
    """

    obligation_id: UUID
    account_id: UUID
    amount: Decimal
    currency_code: str
    kind: str
    description: str | None
    interval_days: int
    next_occurs_at: datetime


@dataclass(frozen=True)
class FiredObligation:
    """Result of one successful firing."""

    obligation_id: UUID
    transaction_id: UUID
    occurred_at: datetime
    next_occurs_at: datetime


@dataclass(frozen=True)
class TickResult:
    """What a single tick did.

    ``fired`` holds only firings that were committed; ``released`` holds
    obligations that were claimed but given back (lost guard, stop signal
    or rollback).
    """

    tick_id: UUID
    status: TickStatus
    started_at: datetime
    fired: tuple[FiredObligation, ...] = ()
    released: tuple[UUID, ...] = ()
    error: str | None = None

    @property
    def fired_count(self) -> int:
        return len(self.fired)

    @property
    def fired_ids(self) -> tuple[UUID, ...]:
        return tuple(f.obligation_id for f in self.fired)

    def to_dict(self) -> dict:
        return {
            "tick_id": str(self.tick_id),
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "fired": [
                {
                    "obligation_id": str(f.obligation_id),
                    "transaction_id": str(f.transaction_id),
                    "occurred_at": f.occurred_at.isoformat(),
                    "next_occurs_at": f.next_occurs_at.isoformat(),
                }
                for f in self.fired
            ],
            "released": [str(r) for r in self.released],
            "error": self.error,
        }
