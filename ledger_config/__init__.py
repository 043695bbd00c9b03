"""
ledger_config -- single public entrypoint for runtime configuration.

Responsibility:
    ``get_settings()`` is the ONLY way to obtain configuration at runtime.
    No other component reads configuration files or environment variables
    directly.

Architecture position:
    Sits above ``ledger_kernel``; the kernel never imports from here.

Failure modes:
    ``ConfigError`` (a FatalError) on any missing file, malformed YAML or
    invalid value.  The process refuses to start.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from ledger_config.loader import load_settings
from ledger_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    SchedulerSettings,
)

__all__ = [
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "SchedulerSettings",
    "get_settings",
    "load_settings",
]


def get_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """Load and validate the runtime settings."""
    return load_settings(path, environ)
