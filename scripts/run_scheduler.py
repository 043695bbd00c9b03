#!/usr/bin/env python3
"""
Run the recurring obligation scheduler.

Loads settings, initialises the engine, verifies the schema, then either
runs a single batch ("run one batch now") and prints a JSON summary, or runs
the polling loop until interrupted.

Usage:
    python3 -m scripts.run_scheduler                      # loop until Ctrl-C
    python3 -m scripts.run_scheduler --once               # one batch, JSON summary
    python3 -m scripts.run_scheduler --config prod.yaml   # settings file
    python3 -m scripts.run_scheduler --create-tables      # create schema first

Exit codes:
    0  success (or clean shutdown)
    1  the single batch failed
    2  configuration or schema error (process refuses to start)
"""

import argparse
import json
import signal
import sys
import threading

from ledger_kernel.exceptions import FatalError
from ledger_kernel.logging_config import configure_logging, get_logger

from ledger_batch.domain.types import TickStatus
from ledger_batch.orchestrator import SchedulerOrchestrator
from ledger_config import get_settings

logger = get_logger("scripts.run_scheduler")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Recurring obligation scheduler")
    parser.add_argument("--config", help="YAML settings file overriding the packaged defaults")
    parser.add_argument("--once", action="store_true", help="Run a single batch and exit")
    parser.add_argument(
        "--create-tables", action="store_true", help="Create missing tables before starting",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings(args.config)
        configure_logging(level=settings.logging.level)
        orchestrator = SchedulerOrchestrator.from_settings(
            settings, create_schema=args.create_tables,
        )
    except FatalError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    scheduler = orchestrator.create_scheduler()

    if args.once:
        result = scheduler.run_once()
        print(json.dumps(result.to_dict(), indent=2))
        return 1 if result.status is TickStatus.FAILED else 0

    if not settings.scheduler.enabled:
        logger.info("scheduler_disabled")
        print("Scheduler disabled in configuration; nothing to do.")
        return 0

    done = threading.Event()

    def _shutdown(signum, frame):
        done.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    scheduler.start()
    try:
        while not done.wait(timeout=1.0):
            if not scheduler.is_running:
                break
    finally:
        scheduler.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
