"""Practice engine schema: progress ledger, catalog, sessions and plans."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20261019_01_practice_engine_schema"
down_revision = None
branch_labels = None
depends_on = None

_NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "learning_apps",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("icon", sa.String(length=16), nullable=True),
        sa.Column("kind", sa.String(length=32), nullable=False, server_default="learning"),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("content_shape", sa.JSON(), nullable=True),
    )

    op.create_table(
        "exercise_items",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("descriptor_key", sa.String(length=512), nullable=True),
        sa.Column("human_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("app_id", "descriptor_key", name="uq_exercise_items_descriptor"),
    )
    op.create_index("ix_exercise_items_app", "exercise_items", ["app_id"])

    op.create_table(
        "question_progress",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("exercise_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("success_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failure_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_question_progress_user_app", "question_progress", ["user_id", "app_id"])

    op.create_table(
        "daily_activity",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("activity_date", sa.Date(), primary_key=True, nullable=False),
    )

    op.create_table(
        "awarded_achievements",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("achievement_id", sa.String(length=64), nullable=False),
        sa.Column("awarded_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_awarded_achievement"),
    )
    op.create_index("ix_awarded_achievements_user_id", "awarded_achievements", ["user_id"])

    op.create_table(
        "raw_outcomes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("client_session_id", sa.String(length=128), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="unprocessed"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("consumed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_raw_outcomes_user_state", "raw_outcomes", ["user_id", "state"])

    op.create_table(
        "practice_sessions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("topic", sa.Text(), nullable=False, server_default=""),
        sa.Column("text", sa.Text(), nullable=False, server_default=""),
        sa.Column("theory", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_practice_sessions_user_created", "practice_sessions", ["user_id", "created_at"])

    op.create_table(
        "session_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "session_id",
            sa.String(length=36),
            sa.ForeignKey("practice_sessions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_session_tasks_session_id", "session_tasks", ["session_id"])
    op.create_index("ix_session_tasks_user_state", "session_tasks", ["user_id", "state"])

    op.create_table(
        "learning_plans",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("total_days", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("plan_data", sa.JSON(), nullable=False),
        sa.Column("theory", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_learning_plans_user_status", "learning_plans", ["user_id", "status"])

    op.create_table(
        "plan_tasks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "plan_id",
            sa.String(length=36),
            sa.ForeignKey("learning_plans.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("day_number", sa.Integer(), nullable=False),
        sa.Column("focus", sa.Text(), nullable=True),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.JSON(), nullable=False),
        sa.Column("fingerprint", sa.String(length=64), nullable=False),
        sa.Column("state", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_plan_tasks_plan_id", "plan_tasks", ["plan_id"])
    op.create_index("ix_plan_tasks_user_state", "plan_tasks", ["user_id", "state"])

    op.create_table(
        "learner_preferences",
        sa.Column("user_id", sa.String(length=128), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
        sa.Column("language_preference", sa.String(length=32), nullable=False),
    )

    op.create_table(
        "feedback",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("app_id", sa.String(length=64), nullable=False),
        sa.Column("client_session_id", sa.String(length=128), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("error_type", sa.String(length=32), nullable=False, server_default="general"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_feedback_user", "feedback", ["user_id"])

    op.create_table(
        "generation_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("reference_id", sa.String(length=36), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.Column("response", sa.Text(), nullable=True),
        sa.Column("model", sa.String(length=64), nullable=True),
        sa.Column("latency_ms", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_generation_logs_user", "generation_logs", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("actor", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW, nullable=False),
    )
    op.create_index("ix_audit_events_user_id", "audit_events", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_events_user_id", table_name="audit_events")
    op.drop_table("audit_events")
    op.drop_index("ix_generation_logs_user", table_name="generation_logs")
    op.drop_table("generation_logs")
    op.drop_index("ix_feedback_user", table_name="feedback")
    op.drop_table("feedback")
    op.drop_table("learner_preferences")
    op.drop_index("ix_plan_tasks_user_state", table_name="plan_tasks")
    op.drop_index("ix_plan_tasks_plan_id", table_name="plan_tasks")
    op.drop_table("plan_tasks")
    op.drop_index("ix_learning_plans_user_status", table_name="learning_plans")
    op.drop_table("learning_plans")
    op.drop_index("ix_session_tasks_user_state", table_name="session_tasks")
    op.drop_index("ix_session_tasks_session_id", table_name="session_tasks")
    op.drop_table("session_tasks")
    op.drop_index("ix_practice_sessions_user_created", table_name="practice_sessions")
    op.drop_table("practice_sessions")
    op.drop_index("ix_raw_outcomes_user_state", table_name="raw_outcomes")
    op.drop_table("raw_outcomes")
    op.drop_index("ix_awarded_achievements_user_id", table_name="awarded_achievements")
    op.drop_table("awarded_achievements")
    op.drop_table("daily_activity")
    op.drop_index("ix_question_progress_user_app", table_name="question_progress")
    op.drop_table("question_progress")
    op.drop_index("ix_exercise_items_app", table_name="exercise_items")
    op.drop_table("exercise_items")
    op.drop_table("learning_apps")
