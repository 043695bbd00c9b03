"""
SchedulerOrchestrator -- DI container for the recurring obligation scheduler.

Contract:
    Composes the clock, the claim repository and the scheduler from
    settings.  Single place where scheduler dependencies are wired.

Architecture: ledger_batch (top-level).  This is the canonical entry point
    for configuring and running the scheduler; scripts/run_scheduler.py is a
    thin shell around it.

Invariants enforced:
    - Clock injection: the repository and the scheduler share one Clock.
    - No kernel imports of ledger_batch (the orchestrator lives here).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from sqlalchemy.orm import Session

from ledger_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    verify_schema,
)
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.logging_config import get_logger

from ledger_batch.services.repository import ObligationRepository
from ledger_batch.services.scheduler import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TICK_INTERVAL_SECONDS,
    ObligationScheduler,
)
from ledger_batch.services.sql_repository import SqlObligationRepository

if TYPE_CHECKING:
    from ledger_config.schema import LedgerSettings

logger = get_logger("batch.orchestrator")


class SchedulerOrchestrator:
    """DI container for the scheduler.

    Contract:
        - ``from_settings()`` initialises the engine and returns a wired
          orchestrator.
        - ``create_scheduler()`` returns an ObligationScheduler.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        repository: ObligationRepository,
        clock: Clock | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
    ) -> None:
        self._repository = repository
        self._clock = clock or SystemClock()
        self._batch_size = batch_size
        self._tick_interval = tick_interval_seconds

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def from_session_factory(
        cls,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
    ) -> SchedulerOrchestrator:
        """Wire a SQL-backed orchestrator around an existing session factory."""
        return cls(
            repository=SqlObligationRepository(session_factory),
            clock=clock,
            batch_size=batch_size,
            tick_interval_seconds=tick_interval_seconds,
        )

    @classmethod
    def from_settings(
        cls,
        settings: LedgerSettings,
        clock: Clock | None = None,
        create_schema: bool = False,
    ) -> SchedulerOrchestrator:
        """Initialise the engine from settings and wire the SQL repository.

        Args:
            settings: Validated runtime settings.
            clock: Optional clock for deterministic testing.
            create_schema: Create missing tables before verifying.

        Raises:
            SchemaMismatchError: the database lacks tables or columns.
        """
        db = settings.database
        engine = init_engine_from_url(
            db.url,
            echo=db.echo,
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
        )
        if create_schema:
            create_tables(engine)
        verify_schema(engine)

        logger.info(
            "scheduler_orchestrator_ready",
            extra={
                "database": db.redacted_url,
                "batch_size": settings.scheduler.batch_size,
                "tick_interval": settings.scheduler.tick_interval_seconds,
            },
        )
        return cls.from_session_factory(
            get_session_factory(),
            clock=clock,
            batch_size=settings.scheduler.batch_size,
            tick_interval_seconds=settings.scheduler.tick_interval_seconds,
        )

    # -------------------------------------------------------------------------
    # Scheduler
    # -------------------------------------------------------------------------

    def create_scheduler(self, name: str = "obligation-scheduler") -> ObligationScheduler:
        return ObligationScheduler(
            repository=self._repository,
            clock=self._clock,
            batch_size=self._batch_size,
            tick_interval_seconds=self._tick_interval,
            name=name,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def repository(self) -> ObligationRepository:
        return self._repository

    @property
    def clock(self) -> Clock:
        return self._clock
