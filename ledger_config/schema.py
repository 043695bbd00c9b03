"""
LedgerSettings schema.

Frozen dataclasses for the runtime configuration.  YAML documents are parsed
into these types by ``ledger_config.loader``; nothing else in the codebase
reads configuration files or environment variables.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings for the shared store."""

    url: str = "sqlite:///:memory:"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 10
    pool_timeout: int = 30

    @property
    def redacted_url(self) -> str:
        """URL with any password masked, safe for logs."""
        if "@" not in self.url or "://" not in self.url:
            return self.url
        scheme, rest = self.url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"


@dataclass(frozen=True)
class SchedulerSettings:
    """Recurring obligation scheduler settings."""

    batch_size: int = 100
    tick_interval_seconds: float = 60.0
    enabled: bool = True


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class LedgerSettings:
    """Complete runtime configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str = "<defaults>"
    checksum: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["database"]["url"] = self.database.redacted_url
        return data
