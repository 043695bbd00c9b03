"""Database layer - engine, base classes, types."""

from ledger_kernel.db.base import UUID, Base, TimestampedBase, UTCDateTime, UUIDString
from ledger_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    session_scope,
    verify_schema,
)
from ledger_kernel.db.types import parse_amount, validate_currency

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "verify_schema",
    "Base",
    "TimestampedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "parse_amount",
    "validate_currency",
]
