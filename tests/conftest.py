"""
Pytest fixtures for the ledger test suite.

Provides:
- In-memory SQLite engines and sessions (one fresh database per test)
- Users, accounts and wired kernel services
- A DeterministicClock
- Structured log capture

Environment Variables:
- DATABASE_URL: PostgreSQL connection URL.  Only tests marked ``postgres``
  use it; they are skipped when it is unset or not PostgreSQL.
"""

import json
import logging
import os
from datetime import UTC, datetime
from io import StringIO
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.db.engine import build_engine, create_tables, drop_tables
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account
from ledger_kernel.services.access_control import AccessControlKernel
from ledger_kernel.services.group_service import GroupService
from ledger_kernel.services.obligation_service import ObligationService
from ledger_kernel.services.user_directory import SqlUserDirectory
from ledger_kernel.selectors.transaction_selector import TransactionSelector


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, groups):
            groups.create_group(...)
            logs = captured_logs()
            assert any(r["message"] == "group_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine("sqlite:///:memory:")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory) -> Session:
    """
    One session for the whole test.

    Commit before handing control to anything that opens its own session
    (the scheduler): the in-memory database has a single connection.
    """
    sess = session_factory()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


def get_postgres_url() -> str | None:
    url = os.environ.get("DATABASE_URL", "")
    return url if url.startswith("postgresql") else None


@pytest.fixture
def pg_engine():
    url = get_postgres_url()
    if url is None:
        pytest.skip("DATABASE_URL does not point to PostgreSQL")
    eng = build_engine(url)
    drop_tables(eng)
    create_tables(eng)
    yield eng
    drop_tables(eng)
    eng.dispose()


# =============================================================================
# Time
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(fixed_time=datetime(2024, 1, 1, 12, 0, tzinfo=UTC))


# =============================================================================
# Users, accounts, services
# =============================================================================


@pytest.fixture
def directory(session):
    return SqlUserDirectory(session)


@pytest.fixture
def make_user(directory):
    counter = iter(range(1, 10_000))

    def _make(email: str | None = None) -> UUID:
        return directory.register(email or f"user{next(counter)}@example.com")

    return _make


@pytest.fixture
def make_account(session):
    def _make(owner: UUID, name: str = "Checking", currency_code: str = "USD") -> UUID:
        account = Account(owner_user_id=owner, name=name, currency_code=currency_code)
        session.add(account)
        session.flush()
        return account.id

    return _make


@pytest.fixture
def access(session):
    return AccessControlKernel(session)


@pytest.fixture
def groups(session, directory, access):
    return GroupService(session, user_directory=directory, access=access)


@pytest.fixture
def obligations(session, access):
    return ObligationService(session, access=access)


@pytest.fixture
def transactions(session, access):
    return TransactionSelector(session, access=access)
