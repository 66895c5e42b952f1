"""Progress ledger, daily activity and aggregate statistics queries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import case, distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import (
    ActivityDayModel,
    ExerciseItemModel,
    LearningAppModel,
    ProgressRecordModel,
)

PERFECT_MIN_SUCCESS = 1
MASTERED_MIN_SUCCESS = 3


@dataclass(frozen=True)
class ProgressTotals:
    total_answered: int
    total_correct: int
    distinct_apps: int
    perfect_exercises: int
    mastered_exercises: int
    distinct_exercises: int


@dataclass(frozen=True)
class AppAccuracyRow:
    app_id: str
    app_name: Optional[str]
    app_icon: Optional[str]
    correct: int
    total: int


@dataclass(frozen=True)
class WeakExerciseRow:
    app_id: str
    app_name: Optional[str]
    app_icon: Optional[str]
    exercise_id: str
    content: object
    success_count: int
    failure_count: int


class ProgressRepository:
    """SQL for the ``question_progress`` and ``daily_activity`` tables."""

    def increment(
        self,
        session: Session,
        user_id: str,
        exercise_id: str,
        *,
        app_id: str,
        correct: bool,
        at: Optional[datetime] = None,
    ) -> None:
        """Add one outcome to the (user, exercise) counters, creating the row if needed.

        The increment happens in SQL so concurrent writers never lose updates.
        If two callers race to create the row, the loser's INSERT fails on the
        primary key inside a savepoint and it falls back to the UPDATE.
        """
        timestamp = at or datetime.now(timezone.utc)
        if self._apply_increment(session, user_id, exercise_id, correct, timestamp):
            return
        try:
            with session.begin_nested():
                session.add(
                    ProgressRecordModel(
                        user_id=user_id,
                        exercise_id=exercise_id,
                        app_id=app_id,
                        success_count=1 if correct else 0,
                        failure_count=0 if correct else 1,
                        last_attempt_at=timestamp,
                    )
                )
        except IntegrityError:
            self._apply_increment(session, user_id, exercise_id, correct, timestamp)

    def _apply_increment(
        self, session: Session, user_id: str, exercise_id: str, correct: bool, at: datetime
    ) -> bool:
        column = ProgressRecordModel.success_count if correct else ProgressRecordModel.failure_count
        stmt = (
            update(ProgressRecordModel)
            .where(
                ProgressRecordModel.user_id == user_id,
                ProgressRecordModel.exercise_id == exercise_id,
            )
            .values({column: column + 1, ProgressRecordModel.last_attempt_at: at})
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return bool(result.rowcount)

    def get(self, session: Session, user_id: str, exercise_id: str) -> Optional[ProgressRecordModel]:
        stmt = select(ProgressRecordModel).where(
            ProgressRecordModel.user_id == user_id,
            ProgressRecordModel.exercise_id == exercise_id,
        )
        return session.execute(stmt).scalar_one_or_none()

    def counters_for(
        self, session: Session, user_id: str, exercise_ids: Iterable[str]
    ) -> Dict[str, tuple[int, int]]:
        ids = sorted(set(exercise_ids))
        if not ids:
            return {}
        stmt = select(
            ProgressRecordModel.exercise_id,
            ProgressRecordModel.success_count,
            ProgressRecordModel.failure_count,
        ).where(
            ProgressRecordModel.user_id == user_id,
            ProgressRecordModel.exercise_id.in_(ids),
        )
        return {row.exercise_id: (row.success_count, row.failure_count) for row in session.execute(stmt)}

    def record_activity(self, session: Session, user_id: str, day: date) -> bool:
        """Insert the activity day; returns False when it already existed."""
        try:
            with session.begin_nested():
                session.add(ActivityDayModel(user_id=user_id, activity_date=day))
        except IntegrityError:
            return False
        return True

    def activity_dates(
        self, session: Session, user_id: str, *, since: Optional[date] = None
    ) -> List[date]:
        stmt = select(ActivityDayModel.activity_date).where(ActivityDayModel.user_id == user_id)
        if since is not None:
            stmt = stmt.where(ActivityDayModel.activity_date >= since)
        stmt = stmt.order_by(ActivityDayModel.activity_date.desc())
        return list(session.execute(stmt).scalars())

    def totals(self, session: Session, user_id: str) -> ProgressTotals:
        success = ProgressRecordModel.success_count
        failure = ProgressRecordModel.failure_count
        stmt = select(
            func.coalesce(func.sum(success + failure), 0).label("answered"),
            func.coalesce(func.sum(success), 0).label("correct"),
            func.count(distinct(ProgressRecordModel.app_id)).label("apps"),
            func.coalesce(
                func.sum(case(((success >= PERFECT_MIN_SUCCESS) & (failure == 0), 1), else_=0)), 0
            ).label("perfect"),
            func.coalesce(
                func.sum(case(((success >= MASTERED_MIN_SUCCESS) & (failure == 0), 1), else_=0)), 0
            ).label("mastered"),
            func.count().label("exercises"),
        ).where(ProgressRecordModel.user_id == user_id)
        row = session.execute(stmt).one()
        return ProgressTotals(
            total_answered=int(row.answered or 0),
            total_correct=int(row.correct or 0),
            distinct_apps=int(row.apps or 0),
            perfect_exercises=int(row.perfect or 0),
            mastered_exercises=int(row.mastered or 0),
            distinct_exercises=int(row.exercises or 0),
        )

    def accuracy_by_app(self, session: Session, user_id: str) -> List[AppAccuracyRow]:
        success = ProgressRecordModel.success_count
        failure = ProgressRecordModel.failure_count
        stmt = (
            select(
                ProgressRecordModel.app_id,
                LearningAppModel.name,
                LearningAppModel.icon,
                func.coalesce(func.sum(success), 0).label("correct"),
                func.coalesce(func.sum(success + failure), 0).label("total"),
            )
            .join(LearningAppModel, LearningAppModel.id == ProgressRecordModel.app_id, isouter=True)
            .where(ProgressRecordModel.user_id == user_id)
            .group_by(ProgressRecordModel.app_id, LearningAppModel.name, LearningAppModel.icon)
        )
        rows = [
            AppAccuracyRow(
                app_id=row.app_id,
                app_name=row.name,
                app_icon=row.icon,
                correct=int(row.correct),
                total=int(row.total),
            )
            for row in session.execute(stmt)
        ]
        rows.sort(key=lambda entry: (entry.correct / entry.total) if entry.total else 0.0)
        return rows

    def weakest(self, session: Session, user_id: str, limit: int = 10) -> List[WeakExerciseRow]:
        stmt = (
            select(
                ProgressRecordModel.app_id,
                ProgressRecordModel.exercise_id,
                ProgressRecordModel.success_count,
                ProgressRecordModel.failure_count,
                LearningAppModel.name,
                LearningAppModel.icon,
                ExerciseItemModel.content,
            )
            .join(LearningAppModel, LearningAppModel.id == ProgressRecordModel.app_id, isouter=True)
            .join(ExerciseItemModel, ExerciseItemModel.id == ProgressRecordModel.exercise_id, isouter=True)
            .where(ProgressRecordModel.user_id == user_id, ProgressRecordModel.failure_count > 0)
            .order_by(ProgressRecordModel.failure_count.desc(), ProgressRecordModel.success_count.asc())
            .limit(limit)
        )
        return [
            WeakExerciseRow(
                app_id=row.app_id,
                app_name=row.name,
                app_icon=row.icon,
                exercise_id=row.exercise_id,
                content=row.content,
                success_count=row.success_count,
                failure_count=row.failure_count,
            )
            for row in session.execute(stmt)
        ]


progress_repository = ProgressRepository()

__all__ = [
    "AppAccuracyRow",
    "MASTERED_MIN_SUCCESS",
    "PERFECT_MIN_SUCCESS",
    "ProgressRepository",
    "ProgressTotals",
    "WeakExerciseRow",
    "progress_repository",
]
