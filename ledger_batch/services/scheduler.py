"""
ObligationScheduler -- in-process polling scheduler for recurring obligations.

Contract:
    Each tick claims due obligations through the injected
    ObligationRepository, fires each one exactly once, and commits.  The
    scheduler owns no cadence state; everything it needs is persisted on
    the obligation rows, so a restarted (or sibling) scheduler resumes from
    the store.

Architecture: ledger_batch/services.  Uses ledger_kernel.domain.clock for
    time and the repository for every read and write.

Invariants enforced:
    - All timestamps come from the injected Clock.
    - One firing per obligation per tick: a backlog of missed intervals is
      cleared one interval per tick, each transaction dated at its own
      scheduled instant.
    - Graceful shutdown: the stop signal is checked between items; a firing
      in progress always completes (or rolls back) as a unit.
    - A failing tick is logged and reported, never raised.
"""

from __future__ import annotations

import threading
from uuid import UUID, uuid4

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import ClaimLostError
from ledger_kernel.logging_config import LogContext, get_logger

from ledger_batch.domain.types import FiredObligation, TickResult, TickStatus
from ledger_batch.services.repository import ObligationRepository

logger = get_logger("batch.scheduler")

DEFAULT_BATCH_SIZE = 100
DEFAULT_TICK_INTERVAL_SECONDS = 60.0


class ObligationScheduler:
    """Polling scheduler that materializes due obligations into transactions.

    Contract:
        - ``tick()`` claims at most ``batch_size`` due obligations and fires
          each once.  Returns a TickResult.
        - ``run_once()`` is the manual "run one batch now" hook.
        - ``start()`` / ``stop()`` for background thread operation.

    Non-goals:
        - NOT a cron engine: cadence is whole days only.
        - No leader election: any number of schedulers may share one store.
    """

    def __init__(
        self,
        repository: ObligationRepository,
        clock: Clock | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        tick_interval_seconds: float = DEFAULT_TICK_INTERVAL_SECONDS,
        name: str = "obligation-scheduler",
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if tick_interval_seconds <= 0:
            raise ValueError("tick_interval_seconds must be positive")
        self._repository = repository
        self._clock = clock or SystemClock()
        self._batch_size = batch_size
        self._tick_interval = tick_interval_seconds
        self._name = name
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def tick_interval_seconds(self) -> float:
        return self._tick_interval

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def tick(self) -> TickResult:
        """Claim and fire one batch of due obligations (public for testing)."""
        tick_id = uuid4()
        started_at = self._clock.now()
        with LogContext.bind(tick_id=tick_id):
            return self._tick(tick_id, started_at)

    def run_once(self) -> TickResult:
        """Run a single batch now, outside the background loop."""
        result = self.tick()
        logger.info(
            "scheduler_run_once",
            extra={"status": result.status.value, "fired": result.fired_count},
        )
        return result

    def start(self) -> None:
        """Start the scheduler in a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name=self._name,
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the scheduler to finish.

        Args:
            timeout: Max seconds to wait for the thread to finish.
        """
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background polling loop.  Exits when stop_event is set."""
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)

    def _tick(self, tick_id: UUID, started_at) -> TickResult:
        fired: list[FiredObligation] = []
        released: list[UUID] = []
        claimed_ids: list[UUID] = []
        stopped = False

        try:
            with self._repository.claim_due(started_at, self._batch_size) as batch:
                claimed_ids = [c.obligation_id for c in batch.claimed]

                for claim in batch.claimed:
                    if self._stop_event.is_set():
                        stopped = True
                        released.append(claim.obligation_id)
                        continue

                    with LogContext.bind(obligation_id=claim.obligation_id):
                        try:
                            result = batch.fire(claim, uuid4())
                        except ClaimLostError:
                            logger.info(
                                "obligation_claim_lost",
                                extra={"expected_next_occurs_at": claim.next_occurs_at},
                            )
                            released.append(claim.obligation_id)
                            continue
                    fired.append(result)

        except Exception as exc:
            logger.exception(
                "scheduler_tick_failed",
                extra={"claimed": len(claimed_ids), "batch_size": self._batch_size},
            )
            return TickResult(
                tick_id=tick_id,
                status=TickStatus.FAILED,
                started_at=started_at,
                released=tuple(claimed_ids),
                error=f"{type(exc).__name__}: {exc}",
            )

        for f in fired:
            logger.info(
                "obligation_fired",
                extra={
                    "obligation_id": str(f.obligation_id),
                    "transaction_id": str(f.transaction_id),
                    "occurred_at": f.occurred_at,
                    "next_occurs_at": f.next_occurs_at,
                },
            )

        if stopped:
            status = TickStatus.STOPPED
        elif not claimed_ids:
            status = TickStatus.IDLE
        else:
            status = TickStatus.COMPLETED

        if status is not TickStatus.IDLE:
            logger.info(
                "scheduler_tick_completed",
                extra={
                    "status": status.value,
                    "claimed": len(claimed_ids),
                    "fired": len(fired),
                    "released": len(released),
                },
            )

        return TickResult(
            tick_id=tick_id,
            status=status,
            started_at=started_at,
            fired=tuple(fired),
            released=tuple(released),
        )
