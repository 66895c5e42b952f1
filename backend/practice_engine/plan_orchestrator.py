"""Multi-day learning plans generated from the same outcome batches as sessions."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field

from .config import Settings, get_settings
from .content_generator import ContentGenerator, PlanResponse, get_content_generator
from .db.base import utcnow
from .db.models import LearningPlanModel, PlanTaskModel
from .db.session import session_scope
from .errors import InvalidRequestError, NotFoundError
from .progress_ledger import ProgressLedger, progress_ledger
from .repositories.outcomes import raw_outcome_repository
from .repositories.sessions import learning_plans
from .session_orchestrator import (
    NOTHING_NEW_MESSAGE,
    AppSuggestion,
    Readiness,
    TaskFilter,
    TaskView,
    TheoryView,
    consume_records,
    fold_result_analysis,
    load_generation_input,
    request_generation,
    suggestions,
    task_view,
    theory_views,
    write_generation_log,
)
from .states import PlanStatus
from .telemetry import emit_event
from .validation import require_task_ids, require_user_id

logger = logging.getLogger(__name__)


class PlanDayView(BaseModel):
    day: int
    focus: Optional[str] = None
    tasks: List[TaskView] = Field(default_factory=list)


class PlanView(BaseModel):
    id: str
    user_id: str
    title: str
    description: str = ""
    status: PlanStatus
    total_days: int
    theory: List[TheoryView] = Field(default_factory=list)
    days: List[PlanDayView] = Field(default_factory=list)
    created_at: datetime
    completed_at: Optional[datetime] = None
    message: Optional[str] = None


class ActivePlanResult(BaseModel):
    status: Readiness
    plan: Optional[PlanView] = None
    pending_outcomes: int = 0
    suggested_apps: List[AppSuggestion] = Field(default_factory=list)


class PlanCompletion(BaseModel):
    plan_id: str
    completed_tasks: int
    status: PlanStatus


def plan_view(model: LearningPlanModel, tasks: Optional[List[PlanTaskModel]] = None) -> PlanView:
    rows = tasks if tasks is not None else list(model.tasks)
    focus_by_day: Dict[int, Optional[str]] = {}
    for entry in model.plan_data or []:
        if isinstance(entry, dict) and isinstance(entry.get("day"), int):
            focus_by_day[entry["day"]] = entry.get("focus")
    for row in rows:
        focus_by_day.setdefault(row.day_number, row.focus)

    days: List[PlanDayView] = []
    for day in sorted(focus_by_day):
        day_tasks = sorted(
            (row for row in rows if row.day_number == day), key=lambda row: row.order_index
        )
        days.append(
            PlanDayView(day=day, focus=focus_by_day[day], tasks=[task_view(row) for row in day_tasks])
        )

    return PlanView(
        id=model.id,
        user_id=model.user_id,
        title=model.title,
        description=model.description,
        status=PlanStatus(model.status),
        total_days=model.total_days,
        theory=theory_views(model.theory),
        days=days,
        created_at=model.created_at,
        completed_at=model.completed_at,
    )


class PlanOrchestrator:
    def __init__(
        self,
        generator: Optional[ContentGenerator] = None,
        settings: Optional[Settings] = None,
        ledger: ProgressLedger = progress_ledger,
    ) -> None:
        self._generator = generator
        self._settings = settings
        self._ledger = ledger

    @property
    def settings(self) -> Settings:
        return self._settings or get_settings()

    @property
    def generator(self) -> ContentGenerator:
        return self._generator or get_content_generator()

    def get_active_plan(self, user_id: str) -> ActivePlanResult:
        user = require_user_id(user_id)
        settings = self.settings
        with session_scope(commit=False) as session:
            active = learning_plans.get_active(session, user)
            if active is not None:
                return ActivePlanResult(status=Readiness.ACTIVE, plan=plan_view(active))

            pending = raw_outcome_repository.count_unprocessed(session, user)
            if pending < settings.min_pending_outcomes:
                return ActivePlanResult(
                    status=Readiness.NOT_ENOUGH_DATA,
                    pending_outcomes=pending,
                    suggested_apps=suggestions(session, settings),
                )
            return ActivePlanResult(status=Readiness.READY, pending_outcomes=pending)

    def _require_days(self, days: Any) -> int:
        maximum = self.settings.max_plan_days
        if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= maximum:
            raise InvalidRequestError(f"'days' must be an integer between 1 and {maximum}.")
        return days

    async def generate_plan(self, user_id: str, days: int) -> PlanView:
        user = require_user_id(user_id)
        total_days = self._require_days(days)
        settings = self.settings

        with session_scope(commit=False) as session:
            if learning_plans.get_active(session, user) is not None:
                raise InvalidRequestError("An active plan already exists; complete or abandon it first.")

        generation = load_generation_input(user, settings, days=total_days)
        parsed, reply, prompt = await request_generation(
            generation,
            PlanResponse,
            kind="plan",
            generator=self.generator,
            settings=settings,
        )
        response: PlanResponse = parsed

        plan_days = sorted(
            (day for day in response.days if day.day <= total_days), key=lambda day: day.day
        )
        if len(plan_days) != len(response.days):
            logger.warning(
                "Dropped %s generated plan day(s) beyond day %s for user_id=%s",
                len(response.days) - len(plan_days),
                total_days,
                user,
            )

        with session_scope() as session:
            folded = fold_result_analysis(
                session, user, response.result_analysis, generation.record_apps, ledger=self._ledger
            )
            model = learning_plans.create(
                session,
                user_id=user,
                title=response.title or f"{total_days}-day plan",
                description=response.description,
                total_days=total_days,
                plan_data=[{"day": day.day, "focus": day.focus} for day in plan_days],
                theory=[card.model_dump() for card in response.theory],
            )
            task_filter = TaskFilter(user, generation.eligible_app_ids, ledger=self._ledger)
            created: List[PlanTaskModel] = []
            for day in plan_days:
                accepted = task_filter.accept(session, day.tasks)
                for order_index, (task, fingerprint) in enumerate(accepted, start=1):
                    created.append(
                        learning_plans.add_task(
                            session,
                            model,
                            day_number=day.day,
                            focus=day.focus,
                            app_id=task.app_id,
                            order_index=order_index,
                            content=task.content,
                            fingerprint=fingerprint,
                        )
                    )
            consume_records(session, user, generation.record_ids)
            finished_at: Optional[datetime] = None
            if not created:
                finished_at = utcnow()
                learning_plans.transition(session, model.id, PlanStatus.COMPLETED, at=finished_at)
            view = plan_view(model, created)

        if finished_at is not None:
            # Nothing to practise, so the plan never occupies the active slot.
            view.status = PlanStatus.COMPLETED
            view.completed_at = finished_at
            view.message = NOTHING_NEW_MESSAGE

        write_generation_log(
            user_id=user,
            kind="plan",
            status="ok",
            prompt=prompt,
            reply=reply,
            reference_id=view.id,
        )
        emit_event(
            "plan_generated",
            user_id=user,
            plan_id=view.id,
            total_days=total_days,
            task_count=len(created),
            dropped_mastered=task_filter.dropped_mastered,
            dropped_invalid=task_filter.dropped_invalid,
            folded_results=folded,
            consumed_outcomes=len(generation.record_ids),
        )
        return view

    def complete_plan_tasks(self, user_id: str, task_ids: Iterable[Any]) -> PlanCompletion:
        user = require_user_id(user_id)
        ids = require_task_ids(task_ids)
        with session_scope() as session:
            plan = learning_plans.get_active(session, user)
            if plan is None:
                raise NotFoundError("No active plan.")
            completed = learning_plans.complete_tasks(session, plan.id, user, ids)
            status = PlanStatus.ACTIVE
            if learning_plans.count_pending(session, plan.id) == 0:
                if learning_plans.transition(session, plan.id, PlanStatus.COMPLETED):
                    status = PlanStatus.COMPLETED
            plan_id = plan.id

        if status is PlanStatus.COMPLETED:
            emit_event("plan_completed", user_id=user, plan_id=plan_id)
        return PlanCompletion(plan_id=plan_id, completed_tasks=completed, status=status)

    def abandon_plan(self, user_id: str) -> PlanView:
        user = require_user_id(user_id)
        with session_scope() as session:
            plan = learning_plans.get_active(session, user)
            if plan is None or not learning_plans.transition(session, plan.id, PlanStatus.ABANDONED):
                raise NotFoundError("No active plan to abandon.")
            view = plan_view(plan)
            view.status = PlanStatus.ABANDONED
        emit_event("plan_abandoned", user_id=user, plan_id=view.id)
        return view


plan_orchestrator = PlanOrchestrator()


def get_active_plan(user_id: str) -> ActivePlanResult:
    return plan_orchestrator.get_active_plan(user_id)


async def generate_plan(user_id: str, days: int) -> PlanView:
    return await plan_orchestrator.generate_plan(user_id, days)


def complete_plan_tasks(user_id: str, task_ids: Iterable[Any]) -> PlanCompletion:
    return plan_orchestrator.complete_plan_tasks(user_id, task_ids)


def abandon_plan(user_id: str) -> PlanView:
    return plan_orchestrator.abandon_plan(user_id)


__all__ = [
    "ActivePlanResult",
    "PlanCompletion",
    "PlanDayView",
    "PlanOrchestrator",
    "PlanView",
    "abandon_plan",
    "complete_plan_tasks",
    "generate_plan",
    "get_active_plan",
    "plan_orchestrator",
    "plan_view",
]
