"""Telemetry listener that persists key orchestration events to the audit table."""

from __future__ import annotations

import logging
from typing import Set

from .db.session import session_scope
from .repositories.sessions import audit_events
from .telemetry import TelemetryEvent, register_listener

logger = logging.getLogger(__name__)

_MONITORED_EVENTS: Set[str] = {
    "session_generated",
    "plan_generated",
    "plan_completed",
    "plan_abandoned",
    "achievements_awarded",
    "generation_failed",
}


def _persist_event(event: TelemetryEvent) -> None:
    if event.name not in _MONITORED_EVENTS:
        return
    user_id = event.payload.get("user_id")
    if not isinstance(user_id, str) or not user_id.strip():
        return
    try:
        with session_scope() as session:
            audit_events.record(
                session,
                event_type=event.name,
                payload=dict(event.payload),
                user_id=user_id,
                actor="practice_engine",
            )
    except Exception:  # noqa: BLE001
        logger.exception("Failed to persist telemetry event for user_id=%s", user_id)


def install() -> None:
    register_listener(_persist_event)


install()

__all__ = ["_MONITORED_EVENTS", "install"]
