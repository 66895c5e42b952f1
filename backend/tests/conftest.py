from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Iterator, List

import pytest
from sqlalchemy.engine import Engine

from practice_engine.cache import content_id_cache
from practice_engine.config import get_settings
from practice_engine.content_generator import GeneratorReply
from practice_engine.db import models  # noqa: F401
from practice_engine.db.base import Base
from practice_engine.db.session import dispose_engine, get_engine, session_scope
from practice_engine.repositories.sessions import learning_apps


@pytest.fixture
def database(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Engine]:
    db_path = tmp_path / "practice.db"
    monkeypatch.setenv("PRACTICE_DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    dispose_engine()
    content_id_cache.clear()
    engine = get_engine()
    Base.metadata.create_all(engine)
    yield engine
    dispose_engine()
    get_settings.cache_clear()
    content_id_cache.clear()


def seed_apps(app_ids: Iterable[str], *, kind: str = "learning") -> None:
    with session_scope() as session:
        for app_id in app_ids:
            learning_apps.upsert(
                session,
                app_id,
                name=app_id.title(),
                description=f"{app_id} exercises",
                icon="*",
                kind=kind,
                tags=[],
                content_shape={"type": "object"},
            )


class FakeGenerator:
    """Returns canned responses and remembers every prompt it was given."""

    def __init__(self, payload: Any) -> None:
        self.payload = payload
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> GeneratorReply:
        self.prompts.append(prompt)
        if isinstance(self.payload, Exception):
            raise self.payload
        text = self.payload if isinstance(self.payload, str) else json.dumps(self.payload)
        return GeneratorReply(text=text, model="fake-model", latency_ms=1.5)
