"""Raw outcome submission, learner feedback and language preferences."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from .config import get_settings
from .db.session import session_scope
from .fingerprints import canonical_json
from .repositories.outcomes import feedback_repository, raw_outcome_repository
from .repositories.sessions import learner_preferences
from .validation import require_text, require_user_id

logger = logging.getLogger(__name__)

DEFAULT_ERROR_TYPE = "general"
MAX_ERROR_TYPE_LENGTH = 32


def _content_text(content: Any) -> str:
    if isinstance(content, (dict, list)):
        if not content:
            return ""
        return canonical_json(content)
    if isinstance(content, str):
        return content.strip()
    return ""


def submit_raw_outcome(user_id: str, app_id: str, client_session_id: str, content: Any) -> int:
    """Store one finished exercise result for the next generation batch."""
    user = require_user_id(user_id)
    app = require_text(app_id, "app_id")
    client_session = require_text(client_session_id, "client_session_id")
    text = require_text(_content_text(content), "content")
    with session_scope() as session:
        record_id = raw_outcome_repository.create(
            session,
            user_id=user,
            app_id=app,
            client_session_id=client_session,
            content=text,
        )
    logger.debug("Stored raw outcome %s for user_id=%s app_id=%s", record_id, user, app)
    return record_id


def submit_feedback(
    user_id: Optional[str],
    app_id: str,
    comment: str,
    *,
    client_session_id: Optional[str] = None,
    content: Any = None,
    error_type: Optional[str] = None,
) -> str:
    user = require_user_id(user_id) if user_id is not None else None
    app = require_text(app_id, "app_id")
    text = require_text(comment, "comment")
    kind = (error_type or "").strip()[:MAX_ERROR_TYPE_LENGTH] or DEFAULT_ERROR_TYPE
    serialised = None
    if content is not None:
        serialised = content if isinstance(content, str) else json.dumps(content, ensure_ascii=False)
    with session_scope() as session:
        return feedback_repository.create(
            session,
            user_id=user,
            app_id=app,
            comment=text,
            client_session_id=client_session_id,
            content=serialised,
            error_type=kind,
        )


def get_language_preference(user_id: str) -> str:
    user = require_user_id(user_id)
    with session_scope(commit=False) as session:
        stored = learner_preferences.get_language(session, user)
    return stored or get_settings().default_language


def set_language_preference(user_id: str, language: str) -> str:
    user = require_user_id(user_id)
    value = require_text(language, "language_preference")
    with session_scope() as session:
        learner_preferences.set_language(session, user, value)
    return value


__all__ = [
    "DEFAULT_ERROR_TYPE",
    "get_language_preference",
    "set_language_preference",
    "submit_feedback",
    "submit_raw_outcome",
]
