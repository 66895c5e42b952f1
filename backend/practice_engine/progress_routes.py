"""Progress, streak, achievement and intake endpoints."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, List, Optional

from fastapi import APIRouter, BackgroundTasks, status
from pydantic import BaseModel, Field

from .achievements import AchievementAward, AchievementView, check_achievements, list_achievements
from .errors import PracticeError
from .learner_stats import LearnerStats, get_learner_stats
from .outcome_intake import (
    get_language_preference,
    set_language_preference,
    submit_feedback,
    submit_raw_outcome,
)
from .progress_ledger import get_mastery, record_answer
from .route_errors import raise_http
from .streaks import get_streak

router = APIRouter(prefix="/api/users", tags=["progress"])
logger = logging.getLogger(__name__)


class RecordOutcomeRequest(BaseModel):
    app_id: str = Field(..., min_length=1, max_length=64)
    correct: bool
    exercise_id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    category: Optional[str] = Field(default=None, min_length=1, max_length=256)


class RecordOutcomeResponse(BaseModel):
    exercise_id: str
    recorded: bool = True


class MasteryResponse(BaseModel):
    exercise_id: str
    success_count: int
    failure_count: int
    perfect: bool
    mastered: bool


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    total_active_days: int
    last_activity_date: Optional[date] = None


class AchievementPayload(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    category: str
    tier: str
    earned: bool = False
    awarded_at: Optional[datetime] = None


class RawOutcomeRequest(BaseModel):
    app_id: str = Field(..., min_length=1, max_length=64)
    client_session_id: str = Field(..., min_length=1, max_length=128)
    content: Any


class RawOutcomeResponse(BaseModel):
    id: int


class FeedbackRequest(BaseModel):
    app_id: str = Field(..., min_length=1, max_length=64)
    comment: str = Field(..., min_length=1, max_length=4000)
    client_session_id: Optional[str] = Field(default=None, max_length=128)
    content: Any = None
    error_type: Optional[str] = Field(default=None, max_length=32)


class FeedbackResponse(BaseModel):
    id: str


class PreferencesPayload(BaseModel):
    language_preference: str = Field(..., min_length=1, max_length=32)


def _view_payload(view: AchievementView) -> AchievementPayload:
    definition = view.achievement
    return AchievementPayload(
        id=definition.id,
        name=definition.name,
        description=definition.description,
        icon=definition.icon,
        category=definition.category,
        tier=definition.tier,
        earned=view.earned,
        awarded_at=view.awarded_at,
    )


def _award_payload(award: AchievementAward) -> AchievementPayload:
    return _view_payload(AchievementView(achievement=award.achievement, earned=True, awarded_at=award.awarded_at))


def _check_achievements_in_background(user_id: str) -> None:
    try:
        awards = check_achievements(user_id)
    except PracticeError as exc:
        logger.warning("Background achievement check failed for user_id=%s: %s", user_id, exc.message)
        return
    if awards:
        logger.info(
            "Awarded %s achievement(s) to user_id=%s: %s",
            len(awards),
            user_id,
            ", ".join(award.achievement.id for award in awards),
        )


@router.post(
    "/{user_id}/progress",
    response_model=RecordOutcomeResponse,
    status_code=status.HTTP_200_OK,
)
def record_progress(
    user_id: str,
    payload: RecordOutcomeRequest,
    background_tasks: BackgroundTasks,
) -> RecordOutcomeResponse:
    try:
        exercise_id = record_answer(
            user_id,
            payload.app_id,
            payload.correct,
            exercise_id=payload.exercise_id,
            category=payload.category,
        )
    except PracticeError as exc:
        raise_http(exc)
    background_tasks.add_task(_check_achievements_in_background, user_id)
    return RecordOutcomeResponse(exercise_id=exercise_id)


@router.get("/{user_id}/progress/{exercise_id}", response_model=MasteryResponse)
def read_mastery(user_id: str, exercise_id: str) -> MasteryResponse:
    try:
        mastery = get_mastery(user_id, exercise_id)
    except PracticeError as exc:
        raise_http(exc)
    return MasteryResponse(
        exercise_id=exercise_id,
        success_count=mastery.success_count,
        failure_count=mastery.failure_count,
        perfect=mastery.perfect,
        mastered=mastery.mastered,
    )


@router.get("/{user_id}/streak", response_model=StreakResponse)
def read_streak(user_id: str) -> StreakResponse:
    try:
        summary = get_streak(user_id)
    except PracticeError as exc:
        raise_http(exc)
    return StreakResponse(
        current_streak=summary.current_streak,
        longest_streak=summary.longest_streak,
        total_active_days=summary.total_active_days,
        last_activity_date=summary.last_activity_date,
    )


@router.get("/{user_id}/stats", response_model=LearnerStats)
def read_stats(user_id: str) -> LearnerStats:
    try:
        return get_learner_stats(user_id)
    except PracticeError as exc:
        raise_http(exc)


@router.get("/{user_id}/achievements", response_model=List[AchievementPayload])
def read_achievements(user_id: str) -> List[AchievementPayload]:
    try:
        views = list_achievements(user_id)
    except PracticeError as exc:
        raise_http(exc)
    return [_view_payload(view) for view in views]


@router.post("/{user_id}/achievements/check", response_model=List[AchievementPayload])
def run_achievement_check(user_id: str) -> List[AchievementPayload]:
    try:
        awards = check_achievements(user_id)
    except PracticeError as exc:
        raise_http(exc)
    return [_award_payload(award) for award in awards]


@router.post(
    "/{user_id}/outcomes",
    response_model=RawOutcomeResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_raw_outcome(user_id: str, payload: RawOutcomeRequest) -> RawOutcomeResponse:
    try:
        record_id = submit_raw_outcome(user_id, payload.app_id, payload.client_session_id, payload.content)
    except PracticeError as exc:
        raise_http(exc)
    return RawOutcomeResponse(id=record_id)


@router.post(
    "/{user_id}/feedback",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_feedback(
    user_id: str,
    payload: FeedbackRequest,
    background_tasks: BackgroundTasks,
) -> FeedbackResponse:
    try:
        feedback_id = submit_feedback(
            user_id,
            payload.app_id,
            payload.comment,
            client_session_id=payload.client_session_id,
            content=payload.content,
            error_type=payload.error_type,
        )
    except PracticeError as exc:
        raise_http(exc)
    background_tasks.add_task(_check_achievements_in_background, user_id)
    return FeedbackResponse(id=feedback_id)


@router.get("/{user_id}/preferences", response_model=PreferencesPayload)
def read_preferences(user_id: str) -> PreferencesPayload:
    try:
        return PreferencesPayload(language_preference=get_language_preference(user_id))
    except PracticeError as exc:
        raise_http(exc)


@router.put("/{user_id}/preferences", response_model=PreferencesPayload)
def update_preferences(user_id: str, payload: PreferencesPayload) -> PreferencesPayload:
    try:
        value = set_language_preference(user_id, payload.language_preference)
    except PracticeError as exc:
        raise_http(exc)
    return PreferencesPayload(language_preference=value)


__all__ = ["router"]
