"""Threshold achievements evaluated against one statistics snapshot per call."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from .db.base import utcnow
from .db.session import session_scope
from .errors import ConflictError
from .repositories.achievements import AwardedAchievementRepository, awarded_achievement_repository
from .repositories.outcomes import feedback_repository
from .repositories.progress import progress_repository
from .repositories.sessions import practice_sessions
from .streaks import longest_run
from .telemetry import emit_event
from .validation import require_user_id

logger = logging.getLogger(__name__)


class StatKey(str, Enum):
    TOTAL_ANSWERED = "total_answered"
    TOTAL_CORRECT = "total_correct"
    DISTINCT_APPS = "distinct_apps"
    LONGEST_STREAK = "longest_streak"
    COMPLETED_SESSIONS = "completed_sessions"
    FEEDBACK_COUNT = "feedback_count"
    PERFECT_EXERCISES = "perfect_exercises"
    MASTERED_EXERCISES = "mastered_exercises"
    DISTINCT_EXERCISES = "distinct_exercises"


@dataclass(frozen=True)
class StatsSnapshot:
    total_answered: int = 0
    total_correct: int = 0
    distinct_apps: int = 0
    longest_streak: int = 0
    completed_sessions: int = 0
    feedback_count: int = 0
    perfect_exercises: int = 0
    mastered_exercises: int = 0
    distinct_exercises: int = 0

    def value(self, key: StatKey) -> int:
        return getattr(self, key.value)


@dataclass(frozen=True)
class StatAtLeast:
    stat: StatKey
    threshold: int

    def __call__(self, snapshot: StatsSnapshot) -> bool:
        return snapshot.value(self.stat) >= self.threshold


@dataclass(frozen=True)
class AchievementDefinition:
    id: str
    name: str
    description: str
    icon: str
    category: str
    tier: str
    predicate: StatAtLeast


@dataclass(frozen=True)
class AchievementAward:
    achievement: AchievementDefinition
    awarded_at: datetime


@dataclass(frozen=True)
class AchievementView:
    achievement: AchievementDefinition
    earned: bool
    awarded_at: Optional[datetime]


def _badge(
    badge_id: str,
    name: str,
    description: str,
    icon: str,
    category: str,
    tier: str,
    stat: StatKey,
    threshold: int,
) -> AchievementDefinition:
    return AchievementDefinition(
        id=badge_id,
        name=name,
        description=description,
        icon=icon,
        category=category,
        tier=tier,
        predicate=StatAtLeast(stat, threshold),
    )


ACHIEVEMENTS: Tuple[AchievementDefinition, ...] = (
    # first steps
    _badge("first_question", "Erste Frage", "Beantworte deine allererste Frage", "🌱",
           "first-steps", "bronze", StatKey.DISTINCT_EXERCISES, 1),
    _badge("first_perfect", "Perfekter Start", "Beantworte eine Frage beim ersten Versuch richtig", "⭐",
           "first-steps", "bronze", StatKey.PERFECT_EXERCISES, 1),
    _badge("first_session", "Erste Lernsession", "Schliesse deine erste KI-Lernsession ab", "🎓",
           "first-steps", "bronze", StatKey.COMPLETED_SESSIONS, 1),
    # answered questions
    _badge("questions_10", "Fleissig", "Beantworte 10 Fragen", "📝",
           "mastery", "bronze", StatKey.TOTAL_ANSWERED, 10),
    _badge("questions_50", "Wissensdurst", "Beantworte 50 Fragen", "📚",
           "mastery", "silver", StatKey.TOTAL_ANSWERED, 50),
    _badge("questions_200", "Bücherwurm", "Beantworte 200 Fragen", "🐛",
           "mastery", "gold", StatKey.TOTAL_ANSWERED, 200),
    _badge("questions_500", "Meisterhirn", "Beantworte 500 Fragen", "🧠",
           "mastery", "diamond", StatKey.TOTAL_ANSWERED, 500),
    # correct answers
    _badge("correct_10", "Treffsicher", "10 richtige Antworten", "🎯",
           "mastery", "bronze", StatKey.TOTAL_CORRECT, 10),
    _badge("correct_100", "Scharfschütze", "100 richtige Antworten", "🏹",
           "mastery", "gold", StatKey.TOTAL_CORRECT, 100),
    # explorer
    _badge("explorer_3", "Entdecker", "Probiere 3 verschiedene Lern-Apps aus", "🗺️",
           "explorer", "bronze", StatKey.DISTINCT_APPS, 3),
    _badge("explorer_7", "Weltreisender", "Probiere 7 verschiedene Lern-Apps aus", "🌍",
           "explorer", "silver", StatKey.DISTINCT_APPS, 7),
    _badge("explorer_all", "Universalgenie", "Probiere alle Lern-Apps aus", "🦄",
           "explorer", "diamond", StatKey.DISTINCT_APPS, 12),
    # streaks
    _badge("streak_3", "Dranbleiber", "3 Tage hintereinander gelernt", "🔥",
           "streak", "bronze", StatKey.LONGEST_STREAK, 3),
    _badge("streak_7", "Wochenläufer", "7 Tage hintereinander gelernt", "🔥",
           "streak", "silver", StatKey.LONGEST_STREAK, 7),
    _badge("streak_14", "Unaufhaltsam", "14 Tage hintereinander gelernt", "🚀",
           "streak", "gold", StatKey.LONGEST_STREAK, 14),
    _badge("streak_30", "Monatsmeister", "30 Tage hintereinander gelernt", "💎",
           "streak", "diamond", StatKey.LONGEST_STREAK, 30),
    # sessions
    _badge("sessions_5", "Am Ball", "Schliesse 5 KI-Lernsessions ab", "🎓",
           "streak", "silver", StatKey.COMPLETED_SESSIONS, 5),
    _badge("sessions_20", "Sessionprofi", "Schliesse 20 KI-Lernsessions ab", "📖",
           "streak", "gold", StatKey.COMPLETED_SESSIONS, 20),
    # special
    _badge("feedback_hero", "Feedback-Held", "Melde einen Fehler oder gib Feedback", "💬",
           "special", "bronze", StatKey.FEEDBACK_COUNT, 1),
    # mastery
    _badge("mastery_5", "Meisterlehrling", "Beherrsche 5 Fragen vollständig (3+ richtige ohne Fehler)", "🏅",
           "mastery", "silver", StatKey.MASTERED_EXERCISES, 5),
    _badge("mastery_25", "Grossmeister", "Beherrsche 25 Fragen vollständig (3+ richtige ohne Fehler)", "👑",
           "mastery", "diamond", StatKey.MASTERED_EXERCISES, 25),
)



def compute_snapshot(session: Session, user_id: str) -> StatsSnapshot:
    """Collect every statistic the catalog refers to in one round of queries."""
    totals = progress_repository.totals(session, user_id)
    dates = progress_repository.activity_dates(session, user_id)
    return StatsSnapshot(
        total_answered=totals.total_answered,
        total_correct=totals.total_correct,
        distinct_apps=totals.distinct_apps,
        longest_streak=longest_run(dates),
        completed_sessions=practice_sessions.count_completed_sessions(session, user_id),
        feedback_count=feedback_repository.count_for_user(session, user_id),
        perfect_exercises=totals.perfect_exercises,
        mastered_exercises=totals.mastered_exercises,
        distinct_exercises=totals.distinct_exercises,
    )


class AchievementEvaluator:
    def __init__(
        self,
        catalog: Tuple[AchievementDefinition, ...] = ACHIEVEMENTS,
        repository: AwardedAchievementRepository = awarded_achievement_repository,
    ) -> None:
        self._catalog = catalog
        self._repository = repository

    @property
    def catalog(self) -> Tuple[AchievementDefinition, ...]:
        return self._catalog

    def check(self, session: Session, user_id: str) -> List[AchievementAward]:
        already = self._repository.awarded(session, user_id)
        candidates = [entry for entry in self._catalog if entry.id not in already]
        if not candidates:
            return []

        snapshot = compute_snapshot(session, user_id)
        now = utcnow()
        awards: List[AchievementAward] = []
        for definition in candidates:
            if not definition.predicate(snapshot):
                continue
            try:
                awarded_at = self._repository.insert(session, user_id, definition.id, at=now)
            except ConflictError:
                logger.debug("Achievement %s already awarded to user_id=%s", definition.id, user_id)
                continue
            awards.append(AchievementAward(achievement=definition, awarded_at=awarded_at))
        return awards

    def views(self, session: Session, user_id: str) -> List[AchievementView]:
        awarded = self._repository.awarded(session, user_id)
        return [
            AchievementView(
                achievement=definition,
                earned=definition.id in awarded,
                awarded_at=awarded.get(definition.id),
            )
            for definition in self._catalog
        ]


achievement_evaluator = AchievementEvaluator()


def check_achievements(user_id: str) -> List[AchievementAward]:
    user = require_user_id(user_id)
    with session_scope() as session:
        awards = achievement_evaluator.check(session, user)
    if awards:
        emit_event(
            "achievements_awarded",
            user_id=user,
            achievement_ids=[award.achievement.id for award in awards],
        )
    return awards


def list_achievements(user_id: str) -> List[AchievementView]:
    user = require_user_id(user_id)
    with session_scope(commit=False) as session:
        return achievement_evaluator.views(session, user)


__all__ = [
    "ACHIEVEMENTS",
    "AchievementAward",
    "AchievementDefinition",
    "AchievementEvaluator",
    "AchievementView",
    "StatAtLeast",
    "StatKey",
    "StatsSnapshot",
    "achievement_evaluator",
    "check_achievements",
    "compute_snapshot",
    "list_achievements",
]
