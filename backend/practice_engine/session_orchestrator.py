"""Turns unprocessed outcome records into a filtered queue of new practice tasks."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .content_generator import (
    ContentGenerator,
    EligibleAppPayload,
    GeneratedTask,
    GeneratorReply,
    GeneratorRequest,
    PendingOutcomePayload,
    ResultAnalysisEntry,
    SessionResponse,
    build_prompt,
    get_content_generator,
    invoke_generator,
    parse_response,
)
from .db.models import PracticeSessionModel, SessionTaskModel
from .db.session import session_scope
from .errors import GenerationError, NotFoundError
from .fingerprints import content_fingerprint, is_empty_content
from .progress_ledger import ProgressLedger, progress_ledger
from .repositories.outcomes import raw_outcome_repository
from .repositories.sessions import (
    generation_logs,
    learner_preferences,
    learning_apps,
    practice_sessions,
)
from .states import TaskState
from .telemetry import emit_event
from .validation import require_task_ids, require_user_id

logger = logging.getLogger(__name__)

NOTHING_NEW_MESSAGE = (
    "Everything the generator suggested is already mastered. Keep practising and a new "
    "session will follow."
)
UNKNOWN_APP_ID = "unknown"


class Readiness(str, Enum):
    ACTIVE = "active"
    NOT_ENOUGH_DATA = "not_enough_data"
    READY = "ready"


class TheoryView(BaseModel):
    title: str
    content: str


class TaskView(BaseModel):
    id: int
    app_id: str
    order_index: int
    content: Any = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    day_number: Optional[int] = None
    focus: Optional[str] = None


class SessionView(BaseModel):
    id: str
    user_id: str
    topic: str = ""
    text: str = ""
    theory: List[TheoryView] = Field(default_factory=list)
    created_at: datetime
    tasks: List[TaskView] = Field(default_factory=list)
    message: Optional[str] = None


class AppSuggestion(BaseModel):
    id: str
    name: str
    description: str = ""
    icon: Optional[str] = None


class ActiveSessionResult(BaseModel):
    status: Readiness
    session: Optional[SessionView] = None
    pending_outcomes: int = 0
    suggested_apps: List[AppSuggestion] = Field(default_factory=list)


@dataclass
class GenerationInput:
    """Everything read before the generator call, detached from the ORM session."""

    user_id: str
    record_ids: List[int]
    record_apps: Dict[str, str]
    eligible_app_ids: Set[str]
    request: GeneratorRequest


@dataclass
class TaskFilter:
    """Drops empty, unknown-app, duplicate and already mastered tasks."""

    user_id: str
    eligible_app_ids: Set[str]
    ledger: ProgressLedger = progress_ledger
    seen: Set[str] = field(default_factory=set)
    dropped_mastered: int = 0
    dropped_invalid: int = 0

    def accept(self, session: Session, tasks: Sequence[GeneratedTask]) -> List[tuple[GeneratedTask, str]]:
        candidates: List[tuple[GeneratedTask, str]] = []
        for task in tasks:
            if is_empty_content(task.content):
                self.dropped_invalid += 1
                continue
            if self.eligible_app_ids and task.app_id not in self.eligible_app_ids:
                logger.warning("Skipping generated task for unknown app_id=%s", task.app_id)
                self.dropped_invalid += 1
                continue
            fingerprint = content_fingerprint(task.content)
            if fingerprint in self.seen:
                self.dropped_invalid += 1
                continue
            self.seen.add(fingerprint)
            candidates.append((task, fingerprint))

        mastery = self.ledger.mastery_for(session, self.user_id, [fp for _, fp in candidates])
        accepted: List[tuple[GeneratedTask, str]] = []
        for task, fingerprint in candidates:
            known = mastery.get(fingerprint)
            if known is not None and known.mastered:
                self.dropped_mastered += 1
                continue
            accepted.append((task, fingerprint))
        return accepted


def load_generation_input(user_id: str, settings: Settings, *, days: Optional[int] = None) -> GenerationInput:
    with session_scope(commit=False) as session:
        records = raw_outcome_repository.list_unprocessed(session, user_id)
        if not records:
            raise NotFoundError("No new results to generate from.")
        apps = learning_apps.list_eligible(session)
        language = learner_preferences.get_language(session, user_id) or settings.default_language

        names = {app.id: app.name for app in apps}
        request = GeneratorRequest(
            pending_outcomes=[
                PendingOutcomePayload(
                    result_id=record.id,
                    app_id=record.app_id,
                    app_name=names.get(record.app_id),
                    client_session_id=record.client_session_id,
                    content=record.content,
                )
                for record in records
            ],
            eligible_apps=[
                EligibleAppPayload(
                    id=app.id,
                    name=app.name,
                    description=app.description or "",
                    content_shape=app.content_shape,
                )
                for app in apps
            ],
            language_preference=language,
            days=days,
        )
        return GenerationInput(
            user_id=user_id,
            record_ids=[record.id for record in records],
            record_apps={str(record.id): record.app_id for record in records},
            eligible_app_ids=set(names),
            request=request,
        )


def fold_result_analysis(
    session: Session,
    user_id: str,
    entries: Iterable[ResultAnalysisEntry],
    record_apps: Dict[str, str],
    *,
    ledger: ProgressLedger = progress_ledger,
) -> int:
    """Record each graded result under the fingerprint of the content it echoes."""
    folded = 0
    for entry in entries:
        if is_empty_content(entry.question_hash_content):
            continue
        app_id = record_apps.get(str(entry.result_id), UNKNOWN_APP_ID)
        fingerprint = content_fingerprint(entry.question_hash_content)
        ledger.record(session, user_id, fingerprint, entry.is_correct, app_id=app_id)
        folded += 1
    return folded


def consume_records(session: Session, user_id: str, record_ids: Sequence[int]) -> int:
    flipped = raw_outcome_repository.mark_consumed(session, user_id, record_ids)
    if flipped != len(record_ids):
        logger.warning(
            "Consumed %s of %s outcome records for user_id=%s; a concurrent generation consumed the rest",
            flipped,
            len(record_ids),
            user_id,
        )
    return flipped


def write_generation_log(
    *,
    user_id: str,
    kind: str,
    status: str,
    prompt: str,
    reply: Optional[GeneratorReply],
    error: Optional[str] = None,
    reference_id: Optional[str] = None,
) -> None:
    """Persist the generator exchange. Failures here never fail the caller."""
    response = reply.text if reply is not None else None
    if error:
        response = f"ERROR: {error}" if response is None else f"ERROR: {error}\n{response}"
    try:
        with session_scope() as session:
            generation_logs.record(
                session,
                user_id=user_id,
                kind=kind,
                status=status,
                prompt=prompt,
                response=response,
                model=reply.model if reply is not None else None,
                latency_ms=reply.latency_ms if reply is not None else None,
                reference_id=reference_id,
            )
    except Exception:  # noqa: BLE001
        logger.exception("Failed to write generation log for user_id=%s", user_id)


async def request_generation(
    generation: GenerationInput,
    response_model: type,
    *,
    kind: str,
    generator: ContentGenerator,
    settings: Settings,
) -> tuple[Any, GeneratorReply, str]:
    prompt = build_prompt(generation.request, response_model)
    reply: Optional[GeneratorReply] = None
    try:
        reply = await invoke_generator(generator, prompt, timeout=settings.generator_timeout_seconds)
        parsed = parse_response(reply.text, response_model)
    except GenerationError as exc:
        write_generation_log(
            user_id=generation.user_id,
            kind=kind,
            status="failed",
            prompt=prompt,
            reply=reply,
            error=exc.message,
        )
        emit_event("generation_failed", user_id=generation.user_id, kind=kind, error=exc.message)
        raise
    return parsed, reply, prompt


def task_view(task: Any) -> TaskView:
    return TaskView(
        id=task.id,
        app_id=task.app_id,
        order_index=task.order_index,
        content=task.content,
        completed=task.state == TaskState.COMPLETED.value,
        completed_at=task.completed_at,
        day_number=getattr(task, "day_number", None),
        focus=getattr(task, "focus", None),
    )


def theory_views(theory: Optional[List[Dict[str, Any]]]) -> List[TheoryView]:
    return [
        TheoryView(title=str(card.get("title", "")), content=str(card.get("content", "")))
        for card in theory or []
        if isinstance(card, dict)
    ]


def session_view(model: PracticeSessionModel, tasks: Optional[List[SessionTaskModel]] = None) -> SessionView:
    return SessionView(
        id=model.id,
        user_id=model.user_id,
        topic=model.topic,
        text=model.text,
        theory=theory_views(model.theory),
        created_at=model.created_at,
        tasks=[task_view(task) for task in (tasks if tasks is not None else model.tasks)],
    )


def suggestions(session: Session, settings: Settings) -> List[AppSuggestion]:
    return [
        AppSuggestion(id=app.id, name=app.name, description=app.description or "", icon=app.icon)
        for app in learning_apps.random_suggestions(session, settings.suggested_app_count)
    ]


class SessionOrchestrator:
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

    def get_active_session(self, user_id: str) -> ActiveSessionResult:
        user = require_user_id(user_id)
        settings = self.settings
        with session_scope(commit=False) as session:
            active = practice_sessions.latest_with_pending(session, user)
            if active is not None:
                return ActiveSessionResult(status=Readiness.ACTIVE, session=session_view(active))

            pending = raw_outcome_repository.count_unprocessed(session, user)
            if pending < settings.min_pending_outcomes:
                return ActiveSessionResult(
                    status=Readiness.NOT_ENOUGH_DATA,
                    pending_outcomes=pending,
                    suggested_apps=suggestions(session, settings),
                )
            return ActiveSessionResult(status=Readiness.READY, pending_outcomes=pending)

    async def generate_session(self, user_id: str) -> SessionView:
        user = require_user_id(user_id)
        settings = self.settings
        generation = load_generation_input(user, settings)
        parsed, reply, prompt = await request_generation(
            generation,
            SessionResponse,
            kind="session",
            generator=self.generator,
            settings=settings,
        )
        response: SessionResponse = parsed

        with session_scope() as session:
            folded = fold_result_analysis(
                session, user, response.result_analysis, generation.record_apps, ledger=self._ledger
            )
            model = practice_sessions.create(
                session,
                user_id=user,
                topic=response.topic,
                text=response.text,
                theory=[card.model_dump() for card in response.theory],
            )
            task_filter = TaskFilter(user, generation.eligible_app_ids, ledger=self._ledger)
            created: List[SessionTaskModel] = []
            for order_index, (task, fingerprint) in enumerate(task_filter.accept(session, response.tasks), start=1):
                created.append(
                    practice_sessions.add_task(
                        session,
                        model,
                        app_id=task.app_id,
                        order_index=order_index,
                        content=task.content,
                        fingerprint=fingerprint,
                    )
                )
            consume_records(session, user, generation.record_ids)
            view = session_view(model, created)

        if not view.tasks:
            view.message = NOTHING_NEW_MESSAGE

        write_generation_log(
            user_id=user,
            kind="session",
            status="ok",
            prompt=prompt,
            reply=reply,
            reference_id=view.id,
        )
        emit_event(
            "session_generated",
            user_id=user,
            session_id=view.id,
            task_count=len(view.tasks),
            dropped_mastered=task_filter.dropped_mastered,
            dropped_invalid=task_filter.dropped_invalid,
            folded_results=folded,
            consumed_outcomes=len(generation.record_ids),
        )
        return view

    def complete_tasks(self, user_id: str, task_ids: Iterable[Any]) -> int:
        user = require_user_id(user_id)
        ids = require_task_ids(task_ids)
        with session_scope() as session:
            completed = practice_sessions.complete_tasks(session, user, ids)
        logger.info("Completed %s of %s session tasks for user_id=%s", completed, len(ids), user)
        return completed


session_orchestrator = SessionOrchestrator()


def get_active_session(user_id: str) -> ActiveSessionResult:
    return session_orchestrator.get_active_session(user_id)


async def generate_session(user_id: str) -> SessionView:
    return await session_orchestrator.generate_session(user_id)


def complete_tasks(user_id: str, task_ids: Iterable[Any]) -> int:
    return session_orchestrator.complete_tasks(user_id, task_ids)


__all__ = [
    "ActiveSessionResult",
    "AppSuggestion",
    "GenerationInput",
    "NOTHING_NEW_MESSAGE",
    "Readiness",
    "SessionOrchestrator",
    "SessionView",
    "TaskFilter",
    "TaskView",
    "TheoryView",
    "complete_tasks",
    "consume_records",
    "fold_result_analysis",
    "generate_session",
    "get_active_session",
    "load_generation_input",
    "request_generation",
    "session_orchestrator",
    "session_view",
    "suggestions",
    "task_view",
    "theory_views",
    "write_generation_log",
]
