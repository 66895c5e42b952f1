"""Stable exercise ids for procedurally generated categories."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .cache.content_cache import ContentIdCache, content_id_cache
from .db.session import session_scope
from .errors import ConflictError, PersistenceError
from .fingerprints import canonical_json
from .repositories.content import ExerciseItemRepository, exercise_item_repository
from .validation import require_text

logger = logging.getLogger(__name__)

# Session.info key holding ids created by the current session, not yet committed.
_CREATED_IDS = "practice_engine.created_exercise_ids"


def procedural_payload(category: str) -> Dict[str, Any]:
    return {"category": category, "procedural": True}


def canonical_descriptor(category: str) -> str:
    return canonical_json(procedural_payload(category))


class ContentResolver:
    """Maps ``(app_id, category)`` to exactly one exercise item id.

    Lookups go cache, then store, then create. A lost creation race is
    resolved by re-reading the winner's row, so every caller receives the
    same id. Ids created by a session are only cached from a later session,
    once the store holds them. Pass ``cache=None`` to run without the
    process-local cache.
    """

    def __init__(
        self,
        repository: ExerciseItemRepository = exercise_item_repository,
        cache: Optional[ContentIdCache] = content_id_cache,
    ) -> None:
        self._repository = repository
        self._cache = cache

    @property
    def cache(self) -> Optional[ContentIdCache]:
        return self._cache

    def resolve(self, session: Session, app_id: str, category: str) -> str:
        app = require_text(app_id, "app_id")
        name = require_text(category, "category")

        if self._cache is not None:
            cached = self._cache.get(app, name)
            if cached is not None:
                return cached

        descriptor = canonical_descriptor(name)
        exercise_id = self._repository.find_by_descriptor(session, app, descriptor)
        if exercise_id is None:
            try:
                exercise_id = self._repository.create(
                    session,
                    app_id=app,
                    content=procedural_payload(name),
                    descriptor_key=descriptor,
                )
                session.info.setdefault(_CREATED_IDS, set()).add(exercise_id)
                logger.info("Created procedural exercise %s for %s:%s", exercise_id, app, name)
                return exercise_id
            except ConflictError:
                exercise_id = self._repository.find_by_descriptor(session, app, descriptor)
                if exercise_id is None:
                    raise PersistenceError(
                        f"Exercise item for {app}:{name} vanished after a uniqueness conflict."
                    )
                logger.info("Resolved concurrent creation of %s:%s to %s", app, name, exercise_id)

        if self._cache is not None and exercise_id not in session.info.get(_CREATED_IDS, ()):
            self._cache.set(app, name, exercise_id)
        return exercise_id


content_resolver = ContentResolver()


def resolve_exercise_id(app_id: str, category: str) -> str:
    with session_scope() as session:
        return content_resolver.resolve(session, app_id, category)


__all__ = [
    "ContentResolver",
    "canonical_descriptor",
    "content_resolver",
    "procedural_payload",
    "resolve_exercise_id",
]
