"""Per-user, per-exercise outcome counters and daily activity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Optional

from sqlalchemy.orm import Session

from .content_resolver import content_resolver
from .db.base import utcnow
from .db.session import session_scope
from .errors import InvalidRequestError
from .repositories.progress import (
    MASTERED_MIN_SUCCESS,
    PERFECT_MIN_SUCCESS,
    ProgressRepository,
    progress_repository,
)
from .validation import require_text, require_user_id

logger = logging.getLogger(__name__)


def is_perfect(success_count: int, failure_count: int) -> bool:
    return success_count >= PERFECT_MIN_SUCCESS and failure_count == 0


def is_mastered(success_count: int, failure_count: int) -> bool:
    return success_count >= MASTERED_MIN_SUCCESS and failure_count == 0


@dataclass(frozen=True)
class Mastery:
    success_count: int = 0
    failure_count: int = 0

    @property
    def perfect(self) -> bool:
        return is_perfect(self.success_count, self.failure_count)

    @property
    def mastered(self) -> bool:
        return is_mastered(self.success_count, self.failure_count)


class ProgressLedger:
    """Single source of truth for mastery.

    Counters only ever move up by one per recorded outcome, so the final
    values are independent of the order in which concurrent calls land.
    """

    def __init__(self, repository: ProgressRepository = progress_repository) -> None:
        self._repository = repository

    def record(
        self,
        session: Session,
        user_id: str,
        exercise_id: str,
        correct: bool,
        *,
        app_id: str,
    ) -> None:
        self._repository.increment(
            session,
            user_id,
            exercise_id,
            app_id=app_id,
            correct=bool(correct),
            at=utcnow(),
        )

    def mastery(self, session: Session, user_id: str, exercise_id: str) -> Mastery:
        record = self._repository.get(session, user_id, exercise_id)
        if record is None:
            return Mastery()
        return Mastery(success_count=record.success_count, failure_count=record.failure_count)

    def mastery_for(
        self, session: Session, user_id: str, exercise_ids: Iterable[str]
    ) -> Dict[str, Mastery]:
        counters = self._repository.counters_for(session, user_id, exercise_ids)
        return {
            exercise_id: Mastery(success_count=success, failure_count=failure)
            for exercise_id, (success, failure) in counters.items()
        }

    def mark_active(self, session: Session, user_id: str, day: Optional[date] = None) -> bool:
        activity_date = day or utcnow().date()
        created = self._repository.record_activity(session, user_id, activity_date)
        if created:
            logger.debug("Recorded activity day %s for user_id=%s", activity_date, user_id)
        return created


progress_ledger = ProgressLedger()


def record_outcome(user_id: str, exercise_id: str, correct: bool, *, app_id: str) -> None:
    user = require_user_id(user_id)
    exercise = require_text(exercise_id, "exercise_id")
    app = require_text(app_id, "app_id")
    with session_scope() as session:
        progress_ledger.record(session, user, exercise, correct, app_id=app)


def get_mastery(user_id: str, exercise_id: str) -> Mastery:
    user = require_user_id(user_id)
    exercise = require_text(exercise_id, "exercise_id")
    with session_scope(commit=False) as session:
        return progress_ledger.mastery(session, user, exercise)


def record_activity(user_id: str, day: Optional[date] = None) -> bool:
    user = require_user_id(user_id)
    with session_scope() as session:
        return progress_ledger.mark_active(session, user, day)


def record_answer(
    user_id: str,
    app_id: str,
    correct: bool,
    *,
    exercise_id: Optional[str] = None,
    category: Optional[str] = None,
) -> str:
    """Record one answer and mark today active; returns the exercise id used.

    Exactly one of ``exercise_id`` or ``category`` identifies the exercise.
    Categories are resolved to their procedural exercise item first.
    """
    user = require_user_id(user_id)
    app = require_text(app_id, "app_id")
    if (exercise_id is None) == (category is None):
        raise InvalidRequestError("Provide exactly one of 'exercise_id' or 'category'.")
    with session_scope() as session:
        if category is not None:
            exercise = content_resolver.resolve(session, app, category)
        else:
            exercise = require_text(exercise_id, "exercise_id")
        progress_ledger.record(session, user, exercise, correct, app_id=app)
        progress_ledger.mark_active(session, user)
    return exercise


__all__ = [
    "Mastery",
    "ProgressLedger",
    "get_mastery",
    "is_mastered",
    "is_perfect",
    "progress_ledger",
    "record_activity",
    "record_answer",
    "record_outcome",
]
