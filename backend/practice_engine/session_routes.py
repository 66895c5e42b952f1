"""Practice session and learning plan endpoints."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from .errors import PracticeError
from .plan_orchestrator import (
    ActivePlanResult,
    PlanCompletion,
    PlanView,
    plan_orchestrator,
)
from .route_errors import raise_http
from .session_orchestrator import ActiveSessionResult, SessionView, session_orchestrator

router = APIRouter(prefix="/api/users", tags=["session"])
logger = logging.getLogger(__name__)


class CompleteTasksRequest(BaseModel):
    task_ids: List[int] = Field(default_factory=list)


class CompleteTasksResponse(BaseModel):
    completed: int


class GeneratePlanRequest(BaseModel):
    days: int = Field(default=3)


@router.get("/{user_id}/session", response_model=ActiveSessionResult)
def read_active_session(user_id: str) -> ActiveSessionResult:
    try:
        return session_orchestrator.get_active_session(user_id)
    except PracticeError as exc:
        raise_http(exc)


@router.post(
    "/{user_id}/session",
    response_model=SessionView,
    status_code=status.HTTP_201_CREATED,
)
async def create_session(user_id: str) -> SessionView:
    try:
        return await session_orchestrator.generate_session(user_id)
    except PracticeError as exc:
        logger.warning("Session generation failed for user_id=%s: %s", user_id, exc.message)
        raise_http(exc)


@router.put("/{user_id}/session/tasks", response_model=CompleteTasksResponse)
def finish_session_tasks(user_id: str, payload: CompleteTasksRequest) -> CompleteTasksResponse:
    try:
        completed = session_orchestrator.complete_tasks(user_id, payload.task_ids)
    except PracticeError as exc:
        raise_http(exc)
    return CompleteTasksResponse(completed=completed)


@router.get("/{user_id}/plan", response_model=ActivePlanResult)
def read_active_plan(user_id: str) -> ActivePlanResult:
    try:
        return plan_orchestrator.get_active_plan(user_id)
    except PracticeError as exc:
        raise_http(exc)


@router.post(
    "/{user_id}/plan",
    response_model=PlanView,
    status_code=status.HTTP_201_CREATED,
)
async def create_plan(user_id: str, payload: GeneratePlanRequest) -> PlanView:
    try:
        return await plan_orchestrator.generate_plan(user_id, payload.days)
    except PracticeError as exc:
        logger.warning("Plan generation failed for user_id=%s: %s", user_id, exc.message)
        raise_http(exc)


@router.put("/{user_id}/plan/tasks", response_model=PlanCompletion)
def finish_plan_tasks(user_id: str, payload: CompleteTasksRequest) -> PlanCompletion:
    try:
        return plan_orchestrator.complete_plan_tasks(user_id, payload.task_ids)
    except PracticeError as exc:
        raise_http(exc)


@router.post("/{user_id}/plan/abandon", response_model=PlanView)
def abandon_active_plan(user_id: str) -> PlanView:
    try:
        return plan_orchestrator.abandon_plan(user_id)
    except PracticeError as exc:
        raise_http(exc)


__all__ = ["router"]
