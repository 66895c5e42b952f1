"""Input normalisation shared by the service entry points."""

from __future__ import annotations

from typing import Any, Iterable, List

from .errors import InvalidRequestError


def require_text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise InvalidRequestError(f"'{field}' is required.")
    trimmed = value.strip()
    if not trimmed:
        raise InvalidRequestError(f"'{field}' cannot be empty.")
    return trimmed


def require_user_id(user_id: Any) -> str:
    return require_text(user_id, "user_id")


def require_task_ids(task_ids: Iterable[Any]) -> List[int]:
    ids: List[int] = []
    for value in task_ids or []:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidRequestError(f"Task id '{value}' is not an integer.")
        ids.append(value)
    if not ids:
        raise InvalidRequestError("At least one task id is required.")
    return ids


__all__ = ["require_task_ids", "require_text", "require_user_id"]
