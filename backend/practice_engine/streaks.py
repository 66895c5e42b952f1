"""Daily-activity streaks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from .db.base import utcnow
from .db.session import session_scope
from .repositories.progress import ProgressRepository, progress_repository
from .validation import require_user_id

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class StreakSummary:
    current_streak: int = 0
    longest_streak: int = 0
    total_active_days: int = 0
    last_activity_date: Optional[date] = None


def longest_run(dates: Iterable[date]) -> int:
    ordered = sorted(set(dates))
    if not ordered:
        return 0
    longest = run = 1
    for previous, current in zip(ordered, ordered[1:]):
        run = run + 1 if current - previous == ONE_DAY else 1
        longest = max(longest, run)
    return longest


def compute_streak(dates: Iterable[date], today: date) -> StreakSummary:
    """Summarise a learner's activity dates relative to ``today`` (UTC).

    The current streak only counts when the latest active day is today or
    yesterday; it then extends backwards over consecutive days.
    """
    descending = sorted(set(dates), reverse=True)
    if not descending:
        return StreakSummary()

    latest = descending[0]
    current = 0
    if latest in (today, today - ONE_DAY):
        current = 1
        for newer, older in zip(descending, descending[1:]):
            if newer - older != ONE_DAY:
                break
            current += 1

    return StreakSummary(
        current_streak=current,
        longest_streak=longest_run(descending),
        total_active_days=len(descending),
        last_activity_date=latest,
    )


def _utc_today() -> date:
    return utcnow().date()


class StreakTracker:
    def __init__(
        self,
        repository: ProgressRepository = progress_repository,
        clock: Callable[[], date] = _utc_today,
    ) -> None:
        self._repository = repository
        self._clock = clock

    def summary(self, session: Session, user_id: str) -> StreakSummary:
        dates = self._repository.activity_dates(session, user_id)
        return compute_streak(dates, self._clock())


streak_tracker = StreakTracker()


def get_streak(user_id: str, *, tracker: Optional[StreakTracker] = None) -> StreakSummary:
    user = require_user_id(user_id)
    with session_scope(commit=False) as session:
        return (tracker or streak_tracker).summary(session, user)


__all__ = [
    "StreakSummary",
    "StreakTracker",
    "compute_streak",
    "get_streak",
    "longest_run",
    "streak_tracker",
]
