"""Process-local cache mapping procedural categories to exercise ids."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional


def cache_key(app_id: str, category: str) -> str:
    app = app_id.strip()
    name = category.strip()
    if not app or not name:
        raise ValueError("App id and category are required when caching exercise ids.")
    return f"{app}:{name}"


@dataclass
class _ContentEntry:
    exercise_id: str
    cached_at: datetime


class ContentIdCache:
    """Never-evicted lookup table in front of the exercise item store.

    Entries are only ever written after the store confirmed the id, so the
    cache can be dropped at any time without affecting correctness.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _ContentEntry] = {}
        self._lock = Lock()

    def get(self, app_id: str, category: str) -> Optional[str]:
        entry = self._entries.get(cache_key(app_id, category))
        if entry is None:
            return None
        return entry.exercise_id

    def set(self, app_id: str, category: str, exercise_id: str) -> None:
        key = cache_key(app_id, category)
        with self._lock:
            self._entries[key] = _ContentEntry(
                exercise_id=exercise_id,
                cached_at=datetime.now(timezone.utc),
            )

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


content_id_cache = ContentIdCache()

__all__ = ["ContentIdCache", "cache_key", "content_id_cache"]
