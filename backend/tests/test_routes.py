from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from practice_engine import plan_orchestrator as plan_module
from practice_engine import session_orchestrator as session_module
from practice_engine.main import app

from conftest import FakeGenerator, seed_apps

USER = "route-learner"


@pytest.fixture
def client(database) -> TestClient:
    return TestClient(app)


def _submit_outcomes(client: TestClient, count: int = 3) -> None:
    for index in range(count):
        response = client.post(
            f"/api/users/{USER}/outcomes",
            json={"app_id": "verben", "client_session_id": "c-1", "content": {"q": index}},
        )
        assert response.status_code == 201


def test_progress_roundtrip_awards_achievements_in_background(client) -> None:
    response = client.post(f"/api/users/{USER}/progress", json={"app_id": "verben", "category": "Präteritum", "correct": True})
    assert response.status_code == 200
    exercise_id = response.json()["exercise_id"]

    mastery = client.get(f"/api/users/{USER}/progress/{exercise_id}").json()
    assert mastery == {
        "exercise_id": exercise_id,
        "success_count": 1,
        "failure_count": 0,
        "perfect": True,
        "mastered": False,
    }

    streak = client.get(f"/api/users/{USER}/streak").json()
    assert streak["current_streak"] == 1

    earned = {item["id"] for item in client.get(f"/api/users/{USER}/achievements").json() if item["earned"]}
    assert {"first_question", "first_perfect"} <= earned
    assert client.post(f"/api/users/{USER}/achievements/check").json() == []

    stats = client.get(f"/api/users/{USER}/stats").json()
    assert stats["overview"]["total_answers"] == 1


def test_progress_requires_exactly_one_exercise_reference(client) -> None:
    response = client.post(
        f"/api/users/{USER}/progress",
        json={"app_id": "verben", "correct": True, "exercise_id": "ex-1", "category": "Kommas"},
    )
    assert response.status_code == 422
    assert response.json()["detail"]["kind"] == "validation"


@pytest.mark.parametrize(
    "overrides",
    [
        {"exercise_id": "x" * 129},
        {"app_id": "a" * 65, "exercise_id": "ex-1"},
        {"category": "K" * 257},
    ],
)
def test_progress_rejects_references_wider_than_their_columns(client, overrides) -> None:
    payload = {"app_id": "verben", "correct": True, **overrides}
    response = client.post(f"/api/users/{USER}/progress", json=payload)
    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"][0] == "body"


def test_unknown_mastery_reads_as_zero(client) -> None:
    body = client.get(f"/api/users/{USER}/progress/never-seen").json()
    assert (body["success_count"], body["failure_count"], body["mastered"]) == (0, 0, False)


def test_generation_without_outcomes_is_404(client) -> None:
    response = client.post(f"/api/users/{USER}/session")
    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"


def test_generation_without_configured_generator_is_502(client) -> None:
    seed_apps(["verben"])
    _submit_outcomes(client)

    response = client.post(f"/api/users/{USER}/session")
    assert response.status_code == 502
    assert response.json()["detail"]["kind"] == "generation"
    assert client.get(f"/api/users/{USER}/session").json()["status"] == "ready"


def test_session_lifecycle_over_http(client, monkeypatch) -> None:
    seed_apps(["verben"])
    generator = FakeGenerator(
        {"topic": "Verben", "tasks": [{"app_id": "verben", "content": {"question": "ging"}}]}
    )
    monkeypatch.setattr(session_module, "get_content_generator", lambda: generator)
    _submit_outcomes(client)

    created = client.post(f"/api/users/{USER}/session")
    assert created.status_code == 201
    task_id = created.json()["tasks"][0]["id"]

    active = client.get(f"/api/users/{USER}/session").json()
    assert active["status"] == "active"

    assert client.put(f"/api/users/{USER}/session/tasks", json={"task_ids": []}).status_code == 422
    completed = client.put(f"/api/users/{USER}/session/tasks", json={"task_ids": [task_id]})
    assert completed.json() == {"completed": 1}
    assert client.get(f"/api/users/{USER}/session").json()["status"] == "not_enough_data"


def test_plan_lifecycle_over_http(client, monkeypatch) -> None:
    seed_apps(["verben"])
    generator = FakeGenerator(
        {
            "title": "Zwei Tage",
            "days": [
                {"day": 1, "focus": "A", "tasks": [{"app_id": "verben", "content": {"question": "a"}}]},
                {"day": 2, "focus": "B", "tasks": [{"app_id": "verben", "content": {"question": "b"}}]},
            ],
        }
    )
    monkeypatch.setattr(plan_module, "get_content_generator", lambda: generator)
    _submit_outcomes(client)

    assert client.post(f"/api/users/{USER}/plan", json={"days": 0}).status_code == 422
    created = client.post(f"/api/users/{USER}/plan", json={"days": 2})
    assert created.status_code == 201
    assert [day["day"] for day in created.json()["days"]] == [1, 2]

    abandoned = client.post(f"/api/users/{USER}/plan/abandon")
    assert abandoned.json()["status"] == "abandoned"
    assert client.post(f"/api/users/{USER}/plan/abandon").status_code == 404
    assert client.put(f"/api/users/{USER}/plan/tasks", json={"task_ids": [1]}).status_code == 404


def test_feedback_and_preferences(client) -> None:
    response = client.post(
        f"/api/users/{USER}/feedback",
        json={"app_id": "verben", "comment": "Falsche Lösung", "error_type": "wrong_answer"},
    )
    assert response.status_code == 201
    assert response.json()["id"]

    assert client.get(f"/api/users/{USER}/preferences").json() == {"language_preference": "de-CH"}
    updated = client.put(f"/api/users/{USER}/preferences", json={"language_preference": "de-DE"})
    assert updated.json() == {"language_preference": "de-DE"}
    assert client.get(f"/api/users/{USER}/preferences").json() == {"language_preference": "de-DE"}
