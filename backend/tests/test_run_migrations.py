from __future__ import annotations

import types

import pytest
from sqlalchemy import create_engine, inspect

from scripts import run_migrations as runner

HEAD = "20261019_01_practice_engine_schema"


def _config(monkeypatch, url: str):
    monkeypatch.setenv("PRACTICE_DATABASE_URL", url)
    return runner.get_alembic_config(str(runner.BACKEND_ROOT / "alembic.ini"))


def test_resolve_database_url_prefers_env(monkeypatch) -> None:
    config = _config(monkeypatch, "sqlite://")
    assert config.get_main_option("sqlalchemy.url") == runner.URL_PLACEHOLDER
    assert runner.resolve_database_url(config) == "sqlite://"
    assert config.get_main_option("sqlalchemy.url") == "sqlite://"


def test_resolve_database_url_requires_env(monkeypatch) -> None:
    config = _config(monkeypatch, "")
    monkeypatch.delenv("PRACTICE_DATABASE_URL")
    with pytest.raises(RuntimeError):
        runner.resolve_database_url(config)


def test_wait_for_database_succeeds_with_sqlite(tmp_path) -> None:
    db_path = tmp_path / "test.sqlite"
    runner.wait_for_database(f"sqlite:///{db_path}", timeout=2, poll_interval=0.1)


def test_wait_for_database_times_out(monkeypatch) -> None:
    class DummyEngine:
        def connect(self) -> types.SimpleNamespace:
            raise runner.OperationalError("SELECT 1", {}, Exception("boom"))

        def dispose(self) -> None:
            pass

    monkeypatch.setattr(runner, "create_engine", lambda *_, **__: DummyEngine())
    with pytest.raises(RuntimeError):
        runner.wait_for_database("postgresql://example", timeout=0, poll_interval=0)


def test_run_migrations_upgrades_then_reports_nothing_pending(monkeypatch, tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'migrated.sqlite'}"
    config = _config(monkeypatch, url)

    assert runner.pending_revisions(config, url) == [HEAD]

    applied = runner.run_migrations("head", timeout=2, poll_interval=0.1, config=config)
    assert applied == [HEAD]

    engine = create_engine(url)
    try:
        tables = set(inspect(engine).get_table_names())
    finally:
        engine.dispose()
    assert {"question_progress", "daily_activity", "exercise_items", "learning_plans"} <= tables

    assert runner.pending_revisions(config, url) == []
    assert runner.run_migrations("head", timeout=2, poll_interval=0.1, config=config) == []


def test_check_flag_exit_status_tracks_pending_revisions(monkeypatch, tmp_path) -> None:
    url = f"sqlite:///{tmp_path / 'check.sqlite'}"
    monkeypatch.setenv("PRACTICE_DATABASE_URL", url)

    assert runner.main(["--check", "--timeout", "2", "--poll-interval", "0.1"]) == 2
    assert runner.main(["--timeout", "2", "--poll-interval", "0.1"]) == 0
    assert runner.main(["--check", "--timeout", "2", "--poll-interval", "0.1"]) == 0
