"""
Module: ledger_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    transactional scope utilities, and startup schema verification.  This is
    the single point of database connection configuration.
Architecture position: Kernel > DB.  May import from db/base.py.  Imports
    models/ only inside create_tables/verify_schema so that Base.metadata is
    fully populated.

Invariants enforced:
    - PostgreSQL is the production backend: READ COMMITTED isolation with
      explicit row locks (``FOR UPDATE`` on group rows for the last-admin
      guard, ``FOR UPDATE SKIP LOCKED`` for scheduler claims).
    - SQLite is accepted for tests and local tooling only.  It has no row
      locks; correctness there rests on the guarded advance and the UNIQUE
      ledger constraint.
    - Schema verification at startup: verify_schema() refuses to run against
      a database that lacks any table or column the models declare.

Failure modes:
    - EngineNotInitializedError if accessors are called before
      init_engine_from_url().
    - SchemaMismatchError from verify_schema().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.exceptions import EngineNotInitializedError, SchemaMismatchError
from ledger_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create an engine without touching module-level state.

    PostgreSQL URLs get a QueuePool and READ COMMITTED isolation.  SQLite
    URLs get a StaticPool for ``:memory:`` databases so every session sees
    the same data.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        engine = create_engine(
            database_url,
            echo=echo,
            poolclass=StaticPool if in_memory else None,
            connect_args={"check_same_thread": False},
        )
        _enable_sqlite_transactions(engine)
        return engine

    return create_engine(
        database_url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def _enable_sqlite_transactions(engine: Engine) -> None:
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINTs nest correctly.

    pysqlite otherwise defers BEGIN until the first DML statement, and a
    SAVEPOINT issued before that becomes the outermost transaction.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Idempotent in the sense that a second call replaces the first.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    """Get the current engine instance."""
    if _engine is None:
        raise EngineNotInitializedError()
    return _engine


def get_session() -> Session:
    """Get a new session instance."""
    if _SessionFactory is None:
        raise EngineNotInitializedError()
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory.

    The scheduler opens one session per tick through this factory; each
    thread or process must use its own sessions.
    """
    if _SessionFactory is None:
        raise EngineNotInitializedError()
    return _SessionFactory


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    On normal exit the session is committed; on exception it is rolled back
    and the exception re-raised.  Services only flush, so every user-facing
    operation run inside one scope is all-or-nothing.

    Usage:
        with session_scope() as session:
            GroupService(session).remove_member(actor, group_id, user_id)
    """
    session = factory() if factory is not None else get_session()
    logger.debug("transaction_started")
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def _import_models() -> None:
    # Importing the package registers every table on Base.metadata.
    import ledger_kernel.models  # noqa: F401


def create_tables(engine: Engine | None = None) -> None:
    """Create all tables defined in the models."""
    from ledger_kernel.db.base import Base

    _import_models()
    Base.metadata.create_all(engine or get_engine())


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from ledger_kernel.db.base import Base

    _import_models()
    Base.metadata.drop_all(engine or get_engine())


def verify_schema(engine: Engine | None = None) -> None:
    """
    Check that every table and column declared by the models exists.

    Raises:
        SchemaMismatchError: listing each missing ``table`` or
            ``table.column``.
    """
    from ledger_kernel.db.base import Base

    _import_models()
    target = engine or get_engine()
    inspector = inspect(target)
    existing_tables = set(inspector.get_table_names())

    missing: list[str] = []
    for table in Base.metadata.sorted_tables:
        if table.name not in existing_tables:
            missing.append(table.name)
            continue
        columns = {col["name"] for col in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name not in columns:
                missing.append(f"{table.name}.{column.name}")

    if missing:
        logger.error("schema_mismatch", extra={"missing": missing})
        raise SchemaMismatchError(missing)
    logger.info("schema_verified", extra={"tables": len(existing_tables)})


def reset_engine() -> None:
    """Reset the engine and session factory.  Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres(engine: Engine | None = None) -> bool:
    """Check if the given (or current) engine is PostgreSQL."""
    target = engine or _engine
    if target is None:
        return False
    return target.dialect.name == "postgresql"
