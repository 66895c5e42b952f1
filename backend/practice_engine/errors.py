"""Error taxonomy shared by the ledger, evaluator and orchestrators."""

from __future__ import annotations


class PracticeError(RuntimeError):
    """Base class for errors surfaced to callers with a stable kind."""

    kind = "internal"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(PracticeError):
    """Missing or malformed required fields. Raised before any side effect."""

    kind = "validation"


class NotFoundError(PracticeError):
    kind = "not_found"


class GenerationError(PracticeError):
    """The content generator was unreachable, timed out or returned unusable output."""

    kind = "generation"


class ConflictError(PracticeError):
    """Uniqueness race. Recovered internally and never returned to callers."""

    kind = "conflict"


class PersistenceError(PracticeError):
    kind = "persistence"
    retryable = True


__all__ = [
    "ConflictError",
    "GenerationError",
    "InvalidRequestError",
    "NotFoundError",
    "PersistenceError",
    "PracticeError",
]
