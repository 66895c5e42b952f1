from __future__ import annotations

import pytest
from sqlalchemy import select

from practice_engine.db.models import FeedbackModel, RawOutcomeModel
from practice_engine.db.session import session_scope
from practice_engine.errors import InvalidRequestError
from practice_engine.outcome_intake import (
    DEFAULT_ERROR_TYPE,
    get_language_preference,
    set_language_preference,
    submit_feedback,
    submit_raw_outcome,
)


def test_raw_outcome_is_stored_unprocessed_with_canonical_content(database) -> None:
    record_id = submit_raw_outcome(" learner ", "verben", "client-9", {"b": 2, "a": "ä"})

    with session_scope(commit=False) as session:
        record = session.get(RawOutcomeModel, record_id)
    assert record.user_id == "learner"
    assert record.state == "unprocessed"
    assert record.content == '{"a":"ä","b":2}'


@pytest.mark.parametrize(
    "arguments",
    [
        ("", "verben", "client", "text"),
        ("learner", " ", "client", "text"),
        ("learner", "verben", None, "text"),
        ("learner", "verben", "client", {}),
        ("learner", "verben", "client", "   "),
        ("learner", "verben", "client", 42),
    ],
)
def test_raw_outcome_requires_every_field(database, arguments) -> None:
    with pytest.raises(InvalidRequestError):
        submit_raw_outcome(*arguments)


def test_feedback_defaults_and_truncates_error_type(database) -> None:
    first = submit_feedback("learner", "verben", "Die Lösung ist falsch", content={"question": "ging"})
    second = submit_feedback(None, "kasus", "Tippfehler", error_type="x" * 50)

    with session_scope(commit=False) as session:
        stored = {row.id: row for row in session.execute(select(FeedbackModel)).scalars()}
    assert stored[first].error_type == DEFAULT_ERROR_TYPE
    assert stored[first].content == '{"question": "ging"}'
    assert stored[second].user_id is None
    assert stored[second].error_type == "x" * 32


def test_feedback_requires_a_comment(database) -> None:
    with pytest.raises(InvalidRequestError):
        submit_feedback("learner", "verben", "  ")


def test_language_preference_falls_back_to_default(database) -> None:
    assert get_language_preference("learner") == "de-CH"
    assert set_language_preference("learner", " de-DE ") == "de-DE"
    assert get_language_preference("learner") == "de-DE"
    set_language_preference("learner", "de-AT")
    assert get_language_preference("learner") == "de-AT"
