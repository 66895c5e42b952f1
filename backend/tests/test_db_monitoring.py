from __future__ import annotations

from typing import Iterator, List, Tuple

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from practice_engine.db import monitoring


@pytest.fixture
def pool_events(monkeypatch: pytest.MonkeyPatch) -> List[Tuple[str, dict]]:
    events: List[Tuple[str, dict]] = []
    monkeypatch.setattr(monitoring, "emit_event", lambda name, **fields: events.append((name, fields)))
    return events


@pytest.fixture
def engine(tmp_path) -> Iterator[Engine]:
    engine = create_engine(f"sqlite:///{tmp_path / 'pool.db'}", future=True)
    yield engine
    engine.dispose()


def _run_queries(engine: Engine, count: int) -> None:
    for _ in range(count):
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))


def test_snapshot_counts_pool_traffic(engine, pool_events) -> None:
    monitoring.instrument_engine(engine)
    monitoring.instrument_engine(engine)
    _run_queries(engine, 3)

    snapshot = monitoring.get_pool_snapshot(engine)
    assert snapshot["connects"] == 1
    assert snapshot["checkouts"] == 3
    assert snapshot["checkins"] == 3
    assert snapshot["last_event"] == "checkin"
    assert "last_emit" not in snapshot
    assert isinstance(snapshot["status"], str)


def test_uninstrumented_engine_reports_empty_counters(engine) -> None:
    snapshot = monitoring.get_pool_snapshot(engine)
    assert (snapshot["connects"], snapshot["checkouts"], snapshot["last_event"]) == (0, 0, None)


def test_pool_status_is_throttled_by_interval(engine, pool_events, monkeypatch) -> None:
    monkeypatch.setattr(monitoring, "_TELEMETRY_INTERVAL", 3600.0)
    monitoring.instrument_engine(engine)
    _run_queries(engine, 4)

    assert [name for name, _ in pool_events] == ["db_pool_status"]
    assert pool_events[0][1]["event"] == "connect"


def test_zero_interval_emits_every_pool_event(engine, pool_events, monkeypatch) -> None:
    monkeypatch.setattr(monitoring, "_TELEMETRY_INTERVAL", 0)
    monitoring.instrument_engine(engine)
    _run_queries(engine, 2)

    assert [fields["event"] for _, fields in pool_events] == [
        "connect",
        "checkout",
        "checkin",
        "checkout",
        "checkin",
    ]
    assert pool_events[-1][1]["checkins"] == 2
