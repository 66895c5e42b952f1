"""ORM models backing the practice engine persistence layer."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from .base import Base, TimestampMixin, utcnow

JSONType = JSON


def _uuid() -> str:
    return str(uuid.uuid4())


class LearningAppModel(Base):
    __tablename__ = "learning_apps"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    icon: Mapped[str | None] = mapped_column(String(16), nullable=True)
    kind: Mapped[str] = mapped_column(String(32), default="learning", nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    content_shape: Mapped[dict | None] = mapped_column(JSONType, nullable=True)


class ExerciseItemModel(TimestampMixin, Base):
    __tablename__ = "exercise_items"
    __table_args__ = (
        UniqueConstraint("app_id", "descriptor_key", name="uq_exercise_items_descriptor"),
        Index("ix_exercise_items_app", "app_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[Any] = mapped_column(JSONType, nullable=False)
    descriptor_key: Mapped[str | None] = mapped_column(String(512), nullable=True)
    human_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)


class ProgressRecordModel(Base):
    __tablename__ = "question_progress"
    __table_args__ = (Index("ix_question_progress_user_app", "user_id", "app_id"),)

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    exercise_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_attempt_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class ActivityDayModel(Base):
    __tablename__ = "daily_activity"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    activity_date: Mapped[date] = mapped_column(Date, primary_key=True)


class AwardedAchievementModel(Base):
    __tablename__ = "awarded_achievements"
    __table_args__ = (
        UniqueConstraint("user_id", "achievement_id", name="uq_awarded_achievement"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    achievement_id: Mapped[str] = mapped_column(String(64), nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class RawOutcomeModel(Base):
    __tablename__ = "raw_outcomes"
    __table_args__ = (Index("ix_raw_outcomes_user_state", "user_id", "state"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_session_id: Mapped[str] = mapped_column(String(128), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    state: Mapped[str] = mapped_column(String(16), default="unprocessed", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class PracticeSessionModel(Base):
    __tablename__ = "practice_sessions"
    __table_args__ = (Index("ix_practice_sessions_user_created", "user_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    topic: Mapped[str] = mapped_column(Text, default="", nullable=False)
    text: Mapped[str] = mapped_column(Text, default="", nullable=False)
    theory: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    tasks: Mapped[list["SessionTaskModel"]] = relationship(
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SessionTaskModel.order_index",
    )


class SessionTaskModel(Base):
    __tablename__ = "session_tasks"
    __table_args__ = (Index("ix_session_tasks_user_state", "user_id", "state"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("practice_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[Any] = mapped_column(JSONType, nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    session: Mapped[PracticeSessionModel] = relationship(back_populates="tasks")


class LearningPlanModel(Base):
    __tablename__ = "learning_plans"
    __table_args__ = (Index("ix_learning_plans_user_status", "user_id", "status"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="active", nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    plan_data: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    theory: Mapped[list[dict]] = mapped_column(JSONType, default=list, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tasks: Mapped[list["PlanTaskModel"]] = relationship(
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanTaskModel.id",
    )


class PlanTaskModel(Base):
    __tablename__ = "plan_tasks"
    __table_args__ = (Index("ix_plan_tasks_user_state", "user_id", "state"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    plan_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("learning_plans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    day_number: Mapped[int] = mapped_column(Integer, nullable=False)
    focus: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, nullable=False)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[Any] = mapped_column(JSONType, nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    state: Mapped[str] = mapped_column(String(16), default="pending", nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    plan: Mapped[LearningPlanModel] = relationship(back_populates="tasks")


class LearnerPreferenceModel(TimestampMixin, Base):
    __tablename__ = "learner_preferences"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    language_preference: Mapped[str] = mapped_column(String(32), nullable=False)


class FeedbackModel(Base):
    __tablename__ = "feedback"
    __table_args__ = (Index("ix_feedback_user", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    app_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_session_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    comment: Mapped[str] = mapped_column(Text, nullable=False)
    error_type: Mapped[str] = mapped_column(String(32), default="general", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class GenerationLogModel(Base):
    __tablename__ = "generation_logs"
    __table_args__ = (Index("ix_generation_logs_user", "user_id"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    reference_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    response: Mapped[str | None] = mapped_column(Text, nullable=True)
    model: Mapped[str | None] = mapped_column(String(64), nullable=True)
    latency_ms: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class AuditEventModel(Base):
    __tablename__ = "audit_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSONType, default=dict, nullable=False)
    actor: Mapped[str | None] = mapped_column(String(128))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


__all__ = [
    "ActivityDayModel",
    "AuditEventModel",
    "AwardedAchievementModel",
    "ExerciseItemModel",
    "FeedbackModel",
    "GenerationLogModel",
    "LearnerPreferenceModel",
    "LearningAppModel",
    "LearningPlanModel",
    "PlanTaskModel",
    "PracticeSessionModel",
    "ProgressRecordModel",
    "RawOutcomeModel",
    "SessionTaskModel",
]
