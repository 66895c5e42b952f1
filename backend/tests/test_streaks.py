from __future__ import annotations

from datetime import date

from practice_engine.progress_ledger import record_activity
from practice_engine.streaks import StreakSummary, StreakTracker, compute_streak, get_streak

JAN = [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]


def test_gap_since_last_activity_breaks_current_streak() -> None:
    summary = compute_streak(JAN, date(2024, 1, 5))
    assert summary.current_streak == 0
    assert summary.longest_streak == 3
    assert summary.total_active_days == 3
    assert summary.last_activity_date == date(2024, 1, 3)


def test_activity_through_today_counts_as_current() -> None:
    summary = compute_streak(JAN, date(2024, 1, 3))
    assert summary.current_streak == 3
    assert summary.longest_streak == 3


def test_activity_through_yesterday_still_counts() -> None:
    assert compute_streak(JAN, date(2024, 1, 4)).current_streak == 3


def test_no_activity_yields_empty_summary() -> None:
    assert compute_streak([], date(2024, 1, 1)) == StreakSummary()


def test_longest_run_is_tracked_independently_of_current() -> None:
    dates = [date(2024, 1, d) for d in (1, 2, 3, 4, 10, 11)]
    summary = compute_streak(dates, date(2024, 1, 11))
    assert summary.current_streak == 2
    assert summary.longest_streak == 4
    assert summary.total_active_days == 6


def test_single_day_has_longest_streak_of_one() -> None:
    summary = compute_streak([date(2024, 3, 1)], date(2024, 6, 1))
    assert summary.longest_streak == 1
    assert summary.current_streak == 0


def test_get_streak_reads_stored_days_with_injected_clock(database) -> None:
    for day in JAN:
        record_activity("learner", day)
    record_activity("other", date(2024, 1, 3))

    tracker = StreakTracker(clock=lambda: date(2024, 1, 3))
    summary = get_streak("learner", tracker=tracker)
    assert summary.current_streak == 3
    assert summary.total_active_days == 3
