"""Scheduler services: claim repositories and the polling scheduler."""

from ledger_batch.services.memory_repository import InMemoryObligationRepository
from ledger_batch.services.repository import ClaimBatch, ObligationRepository
from ledger_batch.services.scheduler import ObligationScheduler
from ledger_batch.services.sql_repository import SqlObligationRepository

__all__ = [
    "ClaimBatch",
    "InMemoryObligationRepository",
    "ObligationRepository",
    "ObligationScheduler",
    "SqlObligationRepository",
]
