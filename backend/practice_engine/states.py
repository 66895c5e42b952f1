"""Explicit lifecycle states for outcome records, tasks and plans.

Every transition below is applied as a single conditional ``UPDATE`` that
only matches rows still in the source state, so replaying a transition is a
no-op rather than an error.
"""

from __future__ import annotations

from enum import Enum


class OutcomeState(str, Enum):
    UNPROCESSED = "unprocessed"
    CONSUMED = "consumed"


class TaskState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class PlanStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


OUTCOME_TRANSITIONS: dict[OutcomeState, frozenset[OutcomeState]] = {
    OutcomeState.UNPROCESSED: frozenset({OutcomeState.CONSUMED}),
    OutcomeState.CONSUMED: frozenset(),
}

TASK_TRANSITIONS: dict[TaskState, frozenset[TaskState]] = {
    TaskState.PENDING: frozenset({TaskState.COMPLETED}),
    TaskState.COMPLETED: frozenset(),
}

PLAN_TRANSITIONS: dict[PlanStatus, frozenset[PlanStatus]] = {
    PlanStatus.ACTIVE: frozenset({PlanStatus.COMPLETED, PlanStatus.ABANDONED}),
    PlanStatus.COMPLETED: frozenset(),
    PlanStatus.ABANDONED: frozenset(),
}


def can_transition(current: Enum, target: Enum) -> bool:
    table: dict = {
        OutcomeState: OUTCOME_TRANSITIONS,
        TaskState: TASK_TRANSITIONS,
        PlanStatus: PLAN_TRANSITIONS,
    }[type(current)]
    return target in table[current]


__all__ = [
    "OUTCOME_TRANSITIONS",
    "OutcomeState",
    "PLAN_TRANSITIONS",
    "PlanStatus",
    "TASK_TRANSITIONS",
    "TaskState",
    "can_transition",
]
