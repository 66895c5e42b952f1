"""Read-only accuracy and activity statistics for a learner."""

from __future__ import annotations

import json
from datetime import date, timedelta
from typing import Any, Callable, List, Optional

from pydantic import BaseModel, Field

from .db.base import utcnow
from .db.session import session_scope
from .repositories.progress import progress_repository
from .validation import require_user_id

HEATMAP_DAYS = 90
WEAKEST_LIMIT = 10
PREVIEW_LENGTH = 80


class StatsOverview(BaseModel):
    total_answers: int = 0
    total_correct: int = 0
    accuracy: int = 0
    apps_used: int = 0
    total_active_days: int = 0


class AppAccuracy(BaseModel):
    app_id: str
    app_name: Optional[str] = None
    app_icon: Optional[str] = None
    correct: int
    total: int
    accuracy: int


class WeakExercise(BaseModel):
    app_id: str
    app_name: Optional[str] = None
    app_icon: Optional[str] = None
    exercise_id: str
    preview: str = ""
    success_count: int
    failure_count: int


class LearnerStats(BaseModel):
    overview: StatsOverview
    per_app: List[AppAccuracy] = Field(default_factory=list)
    heatmap: List[date] = Field(default_factory=list)
    weak_areas: List[WeakExercise] = Field(default_factory=list)


def percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return int(part * 100 / whole + 0.5)


def content_preview(content: Any) -> str:
    """Short human-readable hint for an exercise payload."""
    if isinstance(content, str):
        try:
            content = json.loads(content)
        except json.JSONDecodeError:
            return content[:PREVIEW_LENGTH]
    if not isinstance(content, dict):
        return "" if content is None else json.dumps(content, ensure_ascii=False)[:PREVIEW_LENGTH]

    if content.get("category"):
        return str(content["category"])
    if isinstance(content.get("question"), str):
        return content["question"][:PREVIEW_LENGTH]
    sentences = content.get("sentences")
    if isinstance(sentences, list):
        return str(sentences[0] if sentences else "")[:PREVIEW_LENGTH]
    pairs = content.get("pairs")
    if isinstance(pairs, list):
        pair = pairs[0] if pairs else None
        if isinstance(pair, dict):
            return f"{pair.get('word1', '')} / {pair.get('word2', '')}"
        return ""
    return json.dumps(content, ensure_ascii=False)[:PREVIEW_LENGTH]


def get_learner_stats(
    user_id: str,
    *,
    clock: Callable[[], date] = lambda: utcnow().date(),
) -> LearnerStats:
    user = require_user_id(user_id)
    since = clock() - timedelta(days=HEATMAP_DAYS)
    with session_scope(commit=False) as session:
        totals = progress_repository.totals(session, user)
        per_app = progress_repository.accuracy_by_app(session, user)
        heatmap = sorted(progress_repository.activity_dates(session, user, since=since))
        weakest = progress_repository.weakest(session, user, limit=WEAKEST_LIMIT)

    return LearnerStats(
        overview=StatsOverview(
            total_answers=totals.total_answered,
            total_correct=totals.total_correct,
            accuracy=percent(totals.total_correct, totals.total_answered),
            apps_used=totals.distinct_apps,
            total_active_days=len(heatmap),
        ),
        per_app=[
            AppAccuracy(
                app_id=row.app_id,
                app_name=row.app_name,
                app_icon=row.app_icon,
                correct=row.correct,
                total=row.total,
                accuracy=percent(row.correct, row.total),
            )
            for row in per_app
        ],
        heatmap=heatmap,
        weak_areas=[
            WeakExercise(
                app_id=row.app_id,
                app_name=row.app_name,
                app_icon=row.app_icon,
                exercise_id=row.exercise_id,
                preview=content_preview(row.content),
                success_count=row.success_count,
                failure_count=row.failure_count,
            )
            for row in weakest
        ],
    )


__all__ = [
    "AppAccuracy",
    "LearnerStats",
    "StatsOverview",
    "WeakExercise",
    "content_preview",
    "get_learner_stats",
    "percent",
]
