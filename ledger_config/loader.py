"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML settings document, applies environment overrides, validates
every value and returns a frozen ``LedgerSettings``.  The runtime entry
point is ``ledger_config.get_settings()``; this module is what it calls.

Precedence
----------
packaged ``defaults.yaml`` < the file passed in < environment variables.

Environment overrides
---------------------
* ``LEDGER_DATABASE_URL`` (falls back to ``DATABASE_URL``)
* ``LEDGER_SCHEDULER_BATCH_SIZE``
* ``LEDGER_SCHEDULER_TICK_SECONDS``
* ``LEDGER_LOG_LEVEL``

Failure modes
-------------
* Missing YAML file  -> ``ConfigError``.
* Malformed YAML  -> ``ConfigError``.
* Unknown keys or out-of-range values  -> ``ConfigError``.

The process refuses to start on any of these.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from ledger_kernel.exceptions import ConfigError
from ledger_kernel.logging_config import get_logger

from ledger_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    SchedulerSettings,
)

logger = get_logger("config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_SECTIONS = frozenset({"database", "scheduler", "logging"})

_MAX_BATCH_SIZE = 10_000


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigError: the file is missing, unreadable, not valid YAML, or
            its top level is not a mapping.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(str(path), "file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigError(str(path), f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization (deterministic)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-wise merge of two settings documents."""
    merged = {k: dict(v) if isinstance(v, dict) else v for k, v in base.items()}
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def apply_environment(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """Overlay the ``LEDGER_*`` environment variables."""
    result = merge(data, {})
    for section in _SECTIONS:
        result.setdefault(section, {})

    url = environ.get("LEDGER_DATABASE_URL") or environ.get("DATABASE_URL")
    if url:
        result["database"]["url"] = url
    if "LEDGER_SCHEDULER_BATCH_SIZE" in environ:
        result["scheduler"]["batch_size"] = _parse_int(
            "LEDGER_SCHEDULER_BATCH_SIZE", environ["LEDGER_SCHEDULER_BATCH_SIZE"],
        )
    if "LEDGER_SCHEDULER_TICK_SECONDS" in environ:
        result["scheduler"]["tick_interval_seconds"] = _parse_float(
            "LEDGER_SCHEDULER_TICK_SECONDS", environ["LEDGER_SCHEDULER_TICK_SECONDS"],
        )
    if "LEDGER_LOG_LEVEL" in environ:
        result["logging"]["level"] = environ["LEDGER_LOG_LEVEL"]
    return result


def parse_settings(data: dict[str, Any], source: str = "<dict>") -> LedgerSettings:
    """Validate a merged settings document into ``LedgerSettings``."""
    unknown = set(data) - _SECTIONS
    if unknown:
        raise ConfigError(", ".join(sorted(unknown)), "unknown section")

    database = _section(data, "database", DatabaseSettings)
    scheduler = _section(data, "scheduler", SchedulerSettings)
    logging_settings = _section(data, "logging", LoggingSettings)

    if not isinstance(database.url, str) or "://" not in database.url:
        raise ConfigError("database.url", "must be a SQLAlchemy URL")
    for key in ("pool_size", "max_overflow", "pool_timeout"):
        value = getattr(database, key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ConfigError(f"database.{key}", "must be a non-negative integer")

    batch_size = scheduler.batch_size
    if isinstance(batch_size, bool) or not isinstance(batch_size, int):
        raise ConfigError("scheduler.batch_size", "must be an integer")
    if not 1 <= batch_size <= _MAX_BATCH_SIZE:
        raise ConfigError("scheduler.batch_size", f"must be in [1, {_MAX_BATCH_SIZE}]")

    tick = scheduler.tick_interval_seconds
    if isinstance(tick, bool) or not isinstance(tick, (int, float)) or tick <= 0:
        raise ConfigError("scheduler.tick_interval_seconds", "must be a positive number")

    level = str(logging_settings.level).upper()
    if level not in _LOG_LEVELS:
        raise ConfigError("logging.level", f"must be one of {sorted(_LOG_LEVELS)}")

    return LedgerSettings(
        database=database,
        scheduler=SchedulerSettings(
            batch_size=batch_size,
            tick_interval_seconds=float(tick),
            enabled=bool(scheduler.enabled),
        ),
        logging=LoggingSettings(level=level),
        source=source,
        checksum=compute_checksum(data),
    )


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from ``defaults.yaml``, an optional file, and the
    environment.

    Args:
        path: YAML file whose sections override the packaged defaults.
        environ: Environment mapping; ``os.environ`` when omitted.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))
        source = str(path)

    data = apply_environment(data, os.environ if environ is None else environ)
    settings = parse_settings(data, source=source)

    logger.info(
        "config_loaded",
        extra={"source": source, "checksum": settings.checksum},
    )
    return settings


def _section(data: dict[str, Any], name: str, cls: type) -> Any:
    raw = data.get(name) or {}
    if not isinstance(raw, dict):
        raise ConfigError(name, "must be a mapping")
    allowed = set(cls.__dataclass_fields__)
    unknown = set(raw) - allowed
    if unknown:
        raise ConfigError(f"{name}.{sorted(unknown)[0]}", "unknown key")
    return cls(**raw)


def _parse_int(key: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(key, f"not an integer: {value!r}") from None


def _parse_float(key: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ConfigError(key, f"not a number: {value!r}") from None
