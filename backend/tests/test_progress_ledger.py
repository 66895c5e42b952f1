from __future__ import annotations

import itertools
from datetime import date

import pytest

from practice_engine.errors import InvalidRequestError
from practice_engine.progress_ledger import (
    Mastery,
    ProgressLedger,
    get_mastery,
    is_mastered,
    is_perfect,
    record_activity,
    record_answer,
    record_outcome,
)
from practice_engine.db.session import session_scope
from practice_engine.repositories.progress import ProgressRepository, progress_repository


@pytest.mark.parametrize(
    "sequence",
    sorted(set(itertools.permutations([True, True, False, True, False]))),
)
def test_counters_match_outcomes_in_any_order(database, sequence) -> None:
    for correct in sequence:
        record_outcome("learner-1", "exercise-1", correct, app_id="verben")

    mastery = get_mastery("learner-1", "exercise-1")
    assert mastery.success_count == sequence.count(True)
    assert mastery.failure_count == sequence.count(False)


def test_interleaved_users_do_not_share_counters(database) -> None:
    for index in range(6):
        record_outcome("alice", "shared", index % 2 == 0, app_id="kasus")
        record_outcome("bob", "shared", True, app_id="kasus")

    assert get_mastery("alice", "shared") == Mastery(success_count=3, failure_count=3)
    assert get_mastery("bob", "shared") == Mastery(success_count=6, failure_count=0)


def test_missing_record_reads_as_zero(database) -> None:
    mastery = get_mastery("nobody", "nothing")
    assert mastery == Mastery()
    assert not mastery.perfect
    assert not mastery.mastered


def test_mastered_after_three_clean_successes_and_stays_mastered(database) -> None:
    states = []
    for _ in range(6):
        record_outcome("learner", "ex", True, app_id="verben")
        states.append(get_mastery("learner", "ex").mastered)
    assert states == [False, False, True, True, True, True]


def test_single_failure_blocks_mastery(database) -> None:
    record_outcome("learner", "ex", False, app_id="verben")
    for _ in range(5):
        record_outcome("learner", "ex", True, app_id="verben")
    mastery = get_mastery("learner", "ex")
    assert mastery.success_count == 5
    assert not mastery.mastered
    assert not mastery.perfect


@pytest.mark.parametrize(
    ("success", "failure", "perfect", "mastered"),
    [
        (0, 0, False, False),
        (1, 0, True, False),
        (2, 0, True, False),
        (3, 0, True, True),
        (3, 1, False, False),
    ],
)
def test_derived_predicates(success, failure, perfect, mastered) -> None:
    assert is_perfect(success, failure) is perfect
    assert is_mastered(success, failure) is mastered


def test_activity_day_insert_is_idempotent(database) -> None:
    assert record_activity("learner", date(2024, 1, 1)) is True
    assert record_activity("learner", date(2024, 1, 1)) is False
    with session_scope(commit=False) as session:
        assert progress_repository.activity_dates(session, "learner") == [date(2024, 1, 1)]


def test_record_answer_resolves_categories_and_marks_today_active(database) -> None:
    first = record_answer("learner", "kopfrechnen", True, category="addition")
    second = record_answer("learner", "kopfrechnen", True, category="addition")
    assert first == second
    assert get_mastery("learner", first).success_count == 2
    with session_scope(commit=False) as session:
        assert len(progress_repository.activity_dates(session, "learner")) == 1


def test_record_answer_requires_exactly_one_reference(database) -> None:
    with pytest.raises(InvalidRequestError):
        record_answer("learner", "verben", True)
    with pytest.raises(InvalidRequestError):
        record_answer("learner", "verben", True, exercise_id="a", category="b")


def test_blank_user_is_rejected_before_any_write(database) -> None:
    with pytest.raises(InvalidRequestError):
        record_outcome("  ", "ex", True, app_id="verben")
    with session_scope(commit=False) as session:
        assert progress_repository.totals(session, "  ").distinct_exercises == 0


def test_lost_row_creation_race_still_counts_the_outcome(database) -> None:
    record_outcome("learner", "contested", True, app_id="verben")

    class RowAppearsConcurrently(ProgressRepository):
        def __init__(self) -> None:
            self.updates = 0

        def _apply_increment(self, session, user_id, exercise_id, correct, at) -> bool:
            self.updates += 1
            if self.updates == 1:
                return False
            return super()._apply_increment(session, user_id, exercise_id, correct, at)

    repository = RowAppearsConcurrently()
    with session_scope() as session:
        ProgressLedger(repository).record(session, "learner", "contested", True, app_id="verben")
        ProgressLedger(repository).record(session, "learner", "contested", False, app_id="verben")

    assert repository.updates == 3
    assert get_mastery("learner", "contested") == Mastery(success_count=2, failure_count=1)
