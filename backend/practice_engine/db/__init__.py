"""Relational storage for progress, content, sessions and plans."""

from .base import Base, utcnow
from .session import dispose_engine, get_engine, get_session_factory, session_scope

__all__ = [
    "Base",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "utcnow",
]
