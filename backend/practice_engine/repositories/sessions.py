"""Practice sessions, learning plans and the supporting catalog tables."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import distinct, func, select, update
from sqlalchemy.orm import Session, selectinload

from ..db.base import utcnow
from ..db.models import (
    AuditEventModel,
    GenerationLogModel,
    LearnerPreferenceModel,
    LearningAppModel,
    LearningPlanModel,
    PlanTaskModel,
    PracticeSessionModel,
    SessionTaskModel,
)
from ..states import PlanStatus, TaskState, can_transition

LEARNING_APP_KIND = "learning"


class LearningAppRepository:
    """The externally managed learning app catalog."""

    def list_eligible(self, session: Session) -> List[LearningAppModel]:
        stmt = (
            select(LearningAppModel)
            .where(LearningAppModel.kind == LEARNING_APP_KIND)
            .order_by(LearningAppModel.id)
        )
        return list(session.execute(stmt).scalars())

    def random_suggestions(self, session: Session, limit: int) -> List[LearningAppModel]:
        if limit <= 0:
            return []
        stmt = (
            select(LearningAppModel)
            .where(LearningAppModel.kind == LEARNING_APP_KIND)
            .order_by(func.random())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars())

    def upsert(self, session: Session, app_id: str, **fields: Any) -> LearningAppModel:
        model = session.get(LearningAppModel, app_id)
        if model is None:
            model = LearningAppModel(id=app_id, **fields)
            session.add(model)
        else:
            for key, value in fields.items():
                setattr(model, key, value)
        session.flush()
        return model


class PracticeSessionRepository:
    def create(
        self,
        session: Session,
        *,
        user_id: str,
        topic: str,
        text: str,
        theory: List[Dict[str, str]],
    ) -> PracticeSessionModel:
        model = PracticeSessionModel(user_id=user_id, topic=topic, text=text, theory=theory)
        session.add(model)
        session.flush()
        return model

    def add_task(
        self,
        session: Session,
        practice_session: PracticeSessionModel,
        *,
        app_id: str,
        order_index: int,
        content: Any,
        fingerprint: str,
    ) -> SessionTaskModel:
        task = SessionTaskModel(
            session_id=practice_session.id,
            user_id=practice_session.user_id,
            app_id=app_id,
            order_index=order_index,
            content=content,
            fingerprint=fingerprint,
            state=TaskState.PENDING.value,
        )
        practice_session.tasks.append(task)
        session.flush()
        return task

    def latest_with_pending(self, session: Session, user_id: str) -> Optional[PracticeSessionModel]:
        pending_sessions = (
            select(SessionTaskModel.session_id)
            .where(
                SessionTaskModel.user_id == user_id,
                SessionTaskModel.state == TaskState.PENDING.value,
            )
            .distinct()
        )
        stmt = (
            select(PracticeSessionModel)
            .options(selectinload(PracticeSessionModel.tasks))
            .where(
                PracticeSessionModel.user_id == user_id,
                PracticeSessionModel.id.in_(pending_sessions),
            )
            .order_by(PracticeSessionModel.created_at.desc())
            .limit(1)
        )
        return session.execute(stmt).scalars().first()

    def get(self, session: Session, session_id: str) -> Optional[PracticeSessionModel]:
        stmt = (
            select(PracticeSessionModel)
            .options(selectinload(PracticeSessionModel.tasks))
            .where(PracticeSessionModel.id == session_id)
        )
        return session.execute(stmt).scalars().first()

    def complete_tasks(
        self,
        session: Session,
        user_id: str,
        task_ids: Iterable[int],
        *,
        at: Optional[datetime] = None,
    ) -> int:
        ids = sorted(set(task_ids))
        if not ids:
            return 0
        stmt = (
            update(SessionTaskModel)
            .where(
                SessionTaskModel.user_id == user_id,
                SessionTaskModel.id.in_(ids),
                SessionTaskModel.state == TaskState.PENDING.value,
            )
            .values(state=TaskState.COMPLETED.value, completed_at=at or utcnow())
            .execution_options(synchronize_session=False)
        )
        return int(session.execute(stmt).rowcount or 0)

    def count_completed_sessions(self, session: Session, user_id: str) -> int:
        stmt = select(func.count(distinct(SessionTaskModel.session_id))).where(
            SessionTaskModel.user_id == user_id,
            SessionTaskModel.state == TaskState.COMPLETED.value,
        )
        return int(session.execute(stmt).scalar_one())


class LearningPlanRepository:
    def create(
        self,
        session: Session,
        *,
        user_id: str,
        title: str,
        description: str,
        total_days: int,
        plan_data: List[Dict[str, Any]],
        theory: List[Dict[str, str]],
    ) -> LearningPlanModel:
        model = LearningPlanModel(
            user_id=user_id,
            title=title,
            description=description,
            total_days=total_days,
            plan_data=plan_data,
            theory=theory,
            status=PlanStatus.ACTIVE.value,
        )
        session.add(model)
        session.flush()
        return model

    def add_task(
        self,
        session: Session,
        plan: LearningPlanModel,
        *,
        day_number: int,
        focus: Optional[str],
        app_id: str,
        order_index: int,
        content: Any,
        fingerprint: str,
    ) -> PlanTaskModel:
        task = PlanTaskModel(
            plan_id=plan.id,
            user_id=plan.user_id,
            day_number=day_number,
            focus=focus,
            order_index=order_index,
            app_id=app_id,
            content=content,
            fingerprint=fingerprint,
            state=TaskState.PENDING.value,
        )
        plan.tasks.append(task)
        session.flush()
        return task

    def get_active(self, session: Session, user_id: str) -> Optional[LearningPlanModel]:
        stmt = (
            select(LearningPlanModel)
            .options(selectinload(LearningPlanModel.tasks))
            .where(
                LearningPlanModel.user_id == user_id,
                LearningPlanModel.status == PlanStatus.ACTIVE.value,
            )
            .order_by(LearningPlanModel.created_at.desc())
            .limit(1)
        )
        return session.execute(stmt).scalars().first()

    def complete_tasks(
        self,
        session: Session,
        plan_id: str,
        user_id: str,
        task_ids: Iterable[int],
        *,
        at: Optional[datetime] = None,
    ) -> int:
        ids = sorted(set(task_ids))
        if not ids:
            return 0
        stmt = (
            update(PlanTaskModel)
            .where(
                PlanTaskModel.plan_id == plan_id,
                PlanTaskModel.user_id == user_id,
                PlanTaskModel.id.in_(ids),
                PlanTaskModel.state == TaskState.PENDING.value,
            )
            .values(state=TaskState.COMPLETED.value, completed_at=at or utcnow())
            .execution_options(synchronize_session=False)
        )
        return int(session.execute(stmt).rowcount or 0)

    def count_pending(self, session: Session, plan_id: str) -> int:
        stmt = select(func.count()).select_from(PlanTaskModel).where(
            PlanTaskModel.plan_id == plan_id,
            PlanTaskModel.state == TaskState.PENDING.value,
        )
        return int(session.execute(stmt).scalar_one())

    def transition(
        self,
        session: Session,
        plan_id: str,
        target: PlanStatus,
        *,
        at: Optional[datetime] = None,
    ) -> bool:
        """Move an active plan to ``target``; returns False if it was no longer active."""
        if not can_transition(PlanStatus.ACTIVE, target):
            raise ValueError(f"Plans cannot move from active to {target.value}.")
        values: Dict[str, Any] = {"status": target.value}
        if target is PlanStatus.COMPLETED:
            values["completed_at"] = at or utcnow()
        stmt = (
            update(LearningPlanModel)
            .where(
                LearningPlanModel.id == plan_id,
                LearningPlanModel.status == PlanStatus.ACTIVE.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return bool(session.execute(stmt).rowcount)


class LearnerPreferenceRepository:
    def get_language(self, session: Session, user_id: str) -> Optional[str]:
        model = session.get(LearnerPreferenceModel, user_id)
        return model.language_preference if model is not None else None

    def set_language(self, session: Session, user_id: str, language: str) -> None:
        model = session.get(LearnerPreferenceModel, user_id)
        if model is None:
            session.add(LearnerPreferenceModel(user_id=user_id, language_preference=language))
        else:
            model.language_preference = language
        session.flush()


class GenerationLogRepository:
    def record(
        self,
        session: Session,
        *,
        user_id: str,
        kind: str,
        status: str,
        prompt: str,
        response: Optional[str],
        model: Optional[str],
        latency_ms: Optional[float],
        reference_id: Optional[str] = None,
    ) -> str:
        entry = GenerationLogModel(
            user_id=user_id,
            kind=kind,
            status=status,
            prompt=prompt,
            response=response,
            model=model,
            latency_ms=latency_ms,
            reference_id=reference_id,
        )
        session.add(entry)
        session.flush()
        return entry.id

    def list_for_user(self, session: Session, user_id: str) -> Sequence[GenerationLogModel]:
        stmt = (
            select(GenerationLogModel)
            .where(GenerationLogModel.user_id == user_id)
            .order_by(GenerationLogModel.created_at.asc())
        )
        return list(session.execute(stmt).scalars())


class AuditEventRepository:
    def record(
        self,
        session: Session,
        *,
        event_type: str,
        payload: Dict[str, Any],
        user_id: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> None:
        session.add(
            AuditEventModel(
                user_id=user_id,
                event_type=event_type,
                payload=payload,
                actor=actor,
            )
        )

    def list_for_user(self, session: Session, user_id: str) -> Sequence[AuditEventModel]:
        stmt = (
            select(AuditEventModel)
            .where(AuditEventModel.user_id == user_id)
            .order_by(AuditEventModel.created_at.asc())
        )
        return list(session.execute(stmt).scalars())


learning_apps = LearningAppRepository()
practice_sessions = PracticeSessionRepository()
learning_plans = LearningPlanRepository()
learner_preferences = LearnerPreferenceRepository()
generation_logs = GenerationLogRepository()
audit_events = AuditEventRepository()

__all__ = [
    "AuditEventRepository",
    "GenerationLogRepository",
    "LEARNING_APP_KIND",
    "LearnerPreferenceRepository",
    "LearningAppRepository",
    "LearningPlanRepository",
    "PracticeSessionRepository",
    "audit_events",
    "generation_logs",
    "learner_preferences",
    "learning_apps",
    "learning_plans",
    "practice_sessions",
]
