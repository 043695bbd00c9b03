"""Tests for engine setup, transactional scope and schema verification."""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from ledger_kernel.db.engine import (
    build_engine,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
    session_scope,
    verify_schema,
)
from ledger_kernel.exceptions import EngineNotInitializedError, SchemaMismatchError
from ledger_kernel.models.user import User


class TestVerifySchema:

    def test_empty_database_is_rejected(self):
        eng = build_engine("sqlite:///:memory:")
        try:
            with pytest.raises(SchemaMismatchError) as exc_info:
                verify_schema(eng)
            assert "recurring_obligations" in exc_info.value.missing
        finally:
            eng.dispose()

    def test_created_schema_passes(self, engine):
        verify_schema(engine)


class TestSessionScope:

    def test_commits_on_success(self, session_factory):
        with session_scope(session_factory) as session:
            session.add(User(email="a@example.com", display_name="A"))

        with session_scope(session_factory) as session:
            emails = session.execute(select(User.email)).scalars().all()
        assert emails == ["a@example.com"]

    def test_rolls_back_on_error(self, session_factory):
        with pytest.raises(RuntimeError):
            with session_scope(session_factory) as session:
                session.add(User(email="b@example.com", display_name="B"))
                session.flush()
                raise RuntimeError("boom")

        with session_scope(session_factory) as session:
            assert session.execute(select(User)).scalars().all() == []

    def test_savepoint_rollback_keeps_outer_work(self, session_factory):
        with session_scope(session_factory) as session:
            session.add(User(email="outer@example.com", display_name=""))
            session.flush()
            try:
                with session.begin_nested():
                    session.add(User(email="inner@example.com", display_name=""))
                    session.flush()
                    raise RuntimeError("inner")
            except RuntimeError:
                pass

        with session_scope(session_factory) as session:
            emails = session.execute(select(User.email)).scalars().all()
        assert emails == ["outer@example.com"]


class TestModuleEngine:

    def test_accessors_before_init(self):
        reset_engine()
        with pytest.raises(EngineNotInitializedError):
            get_engine()
        with pytest.raises(EngineNotInitializedError):
            get_session_factory()
        assert is_postgres() is False

    def test_init_and_reset(self):
        try:
            eng = init_engine_from_url("sqlite:///:memory:")
            assert get_engine() is eng
            assert isinstance(get_session_factory(), sessionmaker)
            assert is_postgres(eng) is False
        finally:
            reset_engine()
        with pytest.raises(EngineNotInitializedError):
            get_engine()
