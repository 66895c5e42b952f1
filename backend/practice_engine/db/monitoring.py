"""Connection pool observability for the health endpoint."""

from __future__ import annotations

import os
import time
from dataclasses import asdict, dataclass
from typing import Dict, Optional
from weakref import WeakKeyDictionary

from sqlalchemy import event
from sqlalchemy.engine import Engine

from ..telemetry import emit_event


@dataclass
class PoolCounters:
    connects: int = 0
    checkouts: int = 0
    checkins: int = 0
    last_event: Optional[str] = None
    last_emit: float = 0.0


_COUNTERS: WeakKeyDictionary[Engine, PoolCounters] = WeakKeyDictionary()
_TELEMETRY_INTERVAL = float(os.getenv("PRACTICE_DB_TELEMETRY_INTERVAL", "60"))


def instrument_engine(engine: Engine) -> None:
    """Count pool connects/checkouts/checkins and emit a throttled ``db_pool_status`` event."""
    if engine in _COUNTERS:
        return
    counters = PoolCounters()
    _COUNTERS[engine] = counters

    def _record(name: str, attribute: str) -> None:
        setattr(counters, attribute, getattr(counters, attribute) + 1)
        counters.last_event = name
        now = time.time()
        if _TELEMETRY_INTERVAL > 0 and (now - counters.last_emit) < _TELEMETRY_INTERVAL:
            return
        counters.last_emit = now
        emit_event(
            "db_pool_status",
            status=_safe_pool_status(engine),
            event=name,
            connects=counters.connects,
            checkouts=counters.checkouts,
            checkins=counters.checkins,
        )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        _record("connect", "connects")

    @event.listens_for(engine, "checkout")
    def _on_checkout(dbapi_connection, connection_record, connection_proxy) -> None:  # type: ignore[no-untyped-def]
        _record("checkout", "checkouts")

    @event.listens_for(engine, "checkin")
    def _on_checkin(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
        _record("checkin", "checkins")


def get_pool_snapshot(engine: Engine) -> Dict[str, object]:
    counters = _COUNTERS.get(engine) or PoolCounters()
    snapshot = asdict(counters)
    snapshot.pop("last_emit", None)
    snapshot["status"] = _safe_pool_status(engine)
    return snapshot


def _safe_pool_status(engine: Engine) -> str:
    try:
        return engine.pool.status()  # type: ignore[no-untyped-call]
    except Exception as exc:  # pragma: no cover - pool implementations without status()
        return f"unavailable: {exc}"


__all__ = ["get_pool_snapshot", "instrument_engine"]
