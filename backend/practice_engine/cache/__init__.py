"""In-memory caches shared across backend services."""

from .content_cache import ContentIdCache, content_id_cache

__all__ = ["ContentIdCache", "content_id_cache"]
