"""
Tests for SchedulerOrchestrator and the run_scheduler CLI.
"""

import json

import pytest

from ledger_kernel.db.engine import reset_engine
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.exceptions import SchemaMismatchError

from ledger_batch.orchestrator import SchedulerOrchestrator
from ledger_batch.services.scheduler import ObligationScheduler
from ledger_batch.services.sql_repository import SqlObligationRepository
from ledger_config import load_settings
from scripts.run_scheduler import main


@pytest.fixture(autouse=True)
def _reset_engine():
    reset_engine()
    yield
    reset_engine()


@pytest.fixture
def sqlite_file_env(tmp_path):
    return {"LEDGER_DATABASE_URL": f"sqlite:///{tmp_path / 'ledger.db'}"}


class TestFromSettings:
    def test_wires_sql_repository(self, sqlite_file_env):
        settings = load_settings(environ={**sqlite_file_env, "LEDGER_SCHEDULER_BATCH_SIZE": "7"})
        clock = DeterministicClock()

        orchestrator = SchedulerOrchestrator.from_settings(settings, clock=clock, create_schema=True)
        scheduler = orchestrator.create_scheduler()

        assert isinstance(orchestrator.repository, SqlObligationRepository)
        assert isinstance(scheduler, ObligationScheduler)
        assert scheduler.batch_size == 7
        assert orchestrator.clock is clock

    def test_missing_schema_refuses_to_start(self, sqlite_file_env):
        settings = load_settings(environ=sqlite_file_env)
        with pytest.raises(SchemaMismatchError):
            SchedulerOrchestrator.from_settings(settings)


class TestCli:
    def test_once_prints_summary(self, monkeypatch, capsys, sqlite_file_env):
        for key, value in sqlite_file_env.items():
            monkeypatch.setenv(key, value)

        assert main(["--once", "--create-tables"]) == 0

        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "idle"
        assert summary["fired"] == []

    def test_schema_error_exit_code(self, monkeypatch, capsys, sqlite_file_env):
        for key, value in sqlite_file_env.items():
            monkeypatch.setenv(key, value)

        assert main(["--once"]) == 2
        assert "schema mismatch" in capsys.readouterr().err

    def test_bad_config_exit_code(self, monkeypatch, capsys):
        monkeypatch.setenv("LEDGER_SCHEDULER_BATCH_SIZE", "zero")
        assert main(["--once"]) == 2
