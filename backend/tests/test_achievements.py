from __future__ import annotations

from datetime import date

from practice_engine.achievements import (
    ACHIEVEMENTS,
    AchievementEvaluator,
    StatAtLeast,
    StatKey,
    StatsSnapshot,
    check_achievements,
    compute_snapshot,
    list_achievements,
)
from practice_engine.db.session import session_scope
from practice_engine.outcome_intake import submit_feedback
from practice_engine.progress_ledger import record_activity, record_outcome
from practice_engine.repositories.achievements import awarded_achievement_repository


def test_catalog_ids_are_unique_and_predicates_are_data() -> None:
    ids = [entry.id for entry in ACHIEVEMENTS]
    assert len(ids) == len(set(ids)) == 21
    assert all(isinstance(entry.predicate, StatAtLeast) for entry in ACHIEVEMENTS)


def test_stat_at_least_compares_against_snapshot() -> None:
    predicate = StatAtLeast(StatKey.TOTAL_CORRECT, 10)
    assert predicate(StatsSnapshot(total_correct=10))
    assert not predicate(StatsSnapshot(total_correct=9))


def test_snapshot_collects_all_statistics(database) -> None:
    for _ in range(3):
        record_outcome("learner", "ex-1", True, app_id="verben")
    record_outcome("learner", "ex-2", False, app_id="kasus")
    record_outcome("learner", "ex-3", True, app_id="kasus")
    for day in (1, 2, 3, 5):
        record_activity("learner", date(2024, 2, day))
    submit_feedback("learner", "verben", "Typo in sentence 3")

    with session_scope(commit=False) as session:
        snapshot = compute_snapshot(session, "learner")

    assert snapshot == StatsSnapshot(
        total_answered=5,
        total_correct=4,
        distinct_apps=2,
        longest_streak=3,
        completed_sessions=0,
        feedback_count=1,
        perfect_exercises=2,
        mastered_exercises=1,
        distinct_exercises=3,
    )


def test_second_check_returns_nothing_new(database) -> None:
    record_outcome("learner", "ex-1", True, app_id="verben")

    first = check_achievements("learner")
    second = check_achievements("learner")

    assert {award.achievement.id for award in first} == {"first_question", "first_perfect"}
    assert second == []


def test_award_claimed_concurrently_is_not_reported(database) -> None:
    record_outcome("learner", "ex-1", False, app_id="verben")

    with session_scope() as session:
        awarded_achievement_repository.insert(session, "learner", "first_question")

    class StaleAwardedSet(type(awarded_achievement_repository)):
        def awarded(self, session, user_id):
            return {}

    evaluator = AchievementEvaluator(repository=StaleAwardedSet())
    with session_scope() as session:
        awards = evaluator.check(session, "learner")

    assert awards == []
    earned = {view.achievement.id for view in list_achievements("learner") if view.earned}
    assert earned == {"first_question"}


def test_list_marks_earned_entries_with_timestamp(database) -> None:
    record_outcome("learner", "ex-1", True, app_id="verben")
    check_achievements("learner")

    views = {view.achievement.id: view for view in list_achievements("learner")}
    assert len(views) == len(ACHIEVEMENTS)
    assert views["first_question"].earned and views["first_question"].awarded_at is not None
    assert not views["questions_10"].earned and views["questions_10"].awarded_at is None
