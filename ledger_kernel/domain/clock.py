"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that the scheduler and services never
    call ``datetime.now()`` directly.  Obligation cadence arithmetic is
    performed on stored values only; the clock answers exactly one question:
    "which obligations are due as of now?".

Architecture position:
    Kernel > Domain -- zero I/O except SystemClock, the one sanctioned
    boundary for wall-clock time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime`` in UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value on repeated calls until ``advance()``
    or ``set_time()`` is called.  Naive datetimes are interpreted as UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = _as_utc(
            fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        )
        self._offset = timedelta()

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = _as_utc(time)
        self._offset = timedelta()

    def advance(self, seconds: int = 0, *, days: int = 0) -> None:
        """Advance the clock by the given seconds and/or days."""
        self._offset += timedelta(seconds=seconds, days=days)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
