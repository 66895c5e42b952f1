from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import select

from practice_engine.db.models import AuditEventModel, LearningPlanModel, RawOutcomeModel
from practice_engine.db.session import session_scope
from practice_engine.errors import GenerationError, InvalidRequestError, NotFoundError
from practice_engine.fingerprints import content_fingerprint
from practice_engine.outcome_intake import submit_raw_outcome
from practice_engine.plan_orchestrator import PlanOrchestrator
from practice_engine.progress_ledger import record_outcome
from practice_engine.repositories.sessions import learning_plans
from practice_engine.session_orchestrator import NOTHING_NEW_MESSAGE, Readiness
from practice_engine.states import PlanStatus
from practice_engine.telemetry_pipeline import install as install_audit_listener

from conftest import FakeGenerator, seed_apps

USER = "planner"


def _plan_response(days: int = 3) -> dict:
    return {
        "title": "Starke Verben",
        "description": "Drei Tage Präteritum",
        "theory": [{"title": "Ablaut", "content": "i - a - u"}],
        "days": [
            {
                "day": number,
                "focus": f"Tag {number}",
                "tasks": [
                    {"app_id": "verben", "content": {"question": f"day{number}-a"}},
                    {"app_id": "verben", "content": {"question": f"day{number}-b"}},
                ],
            }
            for number in range(1, days + 1)
        ],
    }


def _outcome_states() -> list[str]:
    with session_scope(commit=False) as session:
        rows = session.execute(select(RawOutcomeModel.state).where(RawOutcomeModel.user_id == USER))
        return sorted(row.state for row in rows)


def _orchestrator(payload=None) -> PlanOrchestrator:
    return PlanOrchestrator(generator=FakeGenerator(payload if payload is not None else _plan_response()))


@pytest.fixture
def ready_user(database):
    seed_apps(["verben"])
    for index in range(3):
        submit_raw_outcome(USER, "verben", "client", {"question": f"seed{index}"})
    return USER


def test_generated_plan_groups_tasks_by_day(ready_user) -> None:
    orchestrator = _orchestrator()
    view = asyncio.run(orchestrator.generate_plan(ready_user, 3))

    assert view.status is PlanStatus.ACTIVE
    assert view.total_days == 3
    assert [day.day for day in view.days] == [1, 2, 3]
    assert [day.focus for day in view.days] == ["Tag 1", "Tag 2", "Tag 3"]
    assert all([task.order_index for task in day.tasks] == [1, 2] for day in view.days)
    assert view.days[0].tasks[0].day_number == 1

    active = orchestrator.get_active_plan(ready_user)
    assert active.status is Readiness.ACTIVE
    assert active.plan is not None and active.plan.id == view.id


def test_days_beyond_requested_length_are_dropped(ready_user) -> None:
    view = asyncio.run(_orchestrator(_plan_response(5)).generate_plan(ready_user, 2))
    assert [day.day for day in view.days] == [1, 2]


@pytest.mark.parametrize("days", [0, -1, 8, "3", True, None])
def test_plan_length_is_validated(database, days) -> None:
    with pytest.raises(InvalidRequestError):
        asyncio.run(_orchestrator().generate_plan(USER, days))


def test_second_plan_is_rejected_while_one_is_active(ready_user) -> None:
    orchestrator = _orchestrator()
    asyncio.run(orchestrator.generate_plan(ready_user, 3))
    submit_raw_outcome(ready_user, "verben", "client", {"question": "later"})

    with pytest.raises(InvalidRequestError):
        asyncio.run(orchestrator.generate_plan(ready_user, 3))


def test_completing_every_task_completes_the_plan(ready_user) -> None:
    install_audit_listener()
    orchestrator = _orchestrator()
    view = asyncio.run(orchestrator.generate_plan(ready_user, 3))
    task_ids = [task.id for day in view.days for task in day.tasks]

    partial = orchestrator.complete_plan_tasks(ready_user, task_ids[:2])
    assert (partial.completed_tasks, partial.status) == (2, PlanStatus.ACTIVE)

    final = orchestrator.complete_plan_tasks(ready_user, task_ids)
    assert (final.completed_tasks, final.status) == (len(task_ids) - 2, PlanStatus.COMPLETED)

    with session_scope(commit=False) as session:
        plan = session.get(LearningPlanModel, view.id)
        assert plan.status == PlanStatus.COMPLETED.value
        assert plan.completed_at is not None
        events = session.execute(select(AuditEventModel.event_type)).scalars().all()
    assert "plan_completed" in events

    assert orchestrator.get_active_plan(ready_user).status is Readiness.NOT_ENOUGH_DATA
    with pytest.raises(NotFoundError):
        orchestrator.complete_plan_tasks(ready_user, task_ids)


def test_abandoned_plan_frees_the_slot(ready_user) -> None:
    orchestrator = _orchestrator()
    view = asyncio.run(orchestrator.generate_plan(ready_user, 3))

    abandoned = orchestrator.abandon_plan(ready_user)
    assert abandoned.id == view.id
    assert abandoned.status is PlanStatus.ABANDONED

    with pytest.raises(NotFoundError):
        orchestrator.abandon_plan(ready_user)

    for index in range(3):
        submit_raw_outcome(ready_user, "verben", "client", {"question": f"again{index}"})
    replacement = asyncio.run(orchestrator.generate_plan(ready_user, 3))
    assert replacement.id != view.id


def test_plan_without_outcomes_is_not_found(database) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(_orchestrator().generate_plan(USER, 3))


def test_plans_never_transition_back_to_active(ready_user) -> None:
    view = asyncio.run(_orchestrator().generate_plan(ready_user, 1))
    with session_scope() as session:
        with pytest.raises(ValueError):
            learning_plans.transition(session, view.id, PlanStatus.ACTIVE)


def test_all_mastered_plan_is_completed_and_frees_the_slot(ready_user) -> None:
    for number in range(1, 4):
        for suffix in ("a", "b"):
            fingerprint = content_fingerprint({"question": f"day{number}-{suffix}"})
            for _ in range(3):
                record_outcome(ready_user, fingerprint, True, app_id="verben")

    orchestrator = _orchestrator()
    view = asyncio.run(orchestrator.generate_plan(ready_user, 3))

    assert view.status is PlanStatus.COMPLETED
    assert view.completed_at is not None
    assert view.message == NOTHING_NEW_MESSAGE
    assert all(day.tasks == [] for day in view.days)
    assert _outcome_states() == ["consumed"] * 3
    with session_scope(commit=False) as session:
        assert session.get(LearningPlanModel, view.id).status == PlanStatus.COMPLETED.value

    assert orchestrator.get_active_plan(ready_user).status is Readiness.NOT_ENOUGH_DATA
    for index in range(3):
        submit_raw_outcome(ready_user, "verben", "client", {"question": f"next{index}"})
    next_plan = {"days": [{"day": 1, "tasks": [{"app_id": "verben", "content": {"question": "neu"}}]}]}
    fresh = asyncio.run(_orchestrator(next_plan).generate_plan(ready_user, 1))
    assert fresh.status is PlanStatus.ACTIVE


@pytest.mark.parametrize(
    "payload",
    [
        "not json at all",
        '{"title": "no days"}',
        '{"days": "monday"}',
        '{"days": [{"day": 0, "tasks": []}]}',
    ],
)
def test_malformed_plan_response_leaves_outcomes_unprocessed(ready_user, payload) -> None:
    with pytest.raises(GenerationError):
        asyncio.run(_orchestrator(payload).generate_plan(ready_user, 3))

    assert _outcome_states() == ["unprocessed"] * 3
    with session_scope(commit=False) as session:
        assert session.execute(select(LearningPlanModel)).scalars().all() == []
