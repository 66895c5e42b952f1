"""Translation of engine errors into HTTP responses."""

from __future__ import annotations

from typing import Dict, NoReturn

from fastapi import HTTPException, status

from .errors import PracticeError

_STATUS_BY_KIND: Dict[str, int] = {
    "validation": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "not_found": status.HTTP_404_NOT_FOUND,
    "generation": status.HTTP_502_BAD_GATEWAY,
    "persistence": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def raise_http(exc: PracticeError) -> NoReturn:
    status_code = _STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(
        status_code=status_code,
        detail={"kind": exc.kind, "message": exc.message},
    ) from exc


__all__ = ["raise_http"]
