"""Deterministic fingerprints for exercise content."""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def content_fingerprint(content: Any) -> str:
    """Return the SHA-256 hex digest identifying ``content``.

    Strings holding a JSON object or array are parsed first so that a
    generator echoing task content back as text (``question_hash_content``)
    lands on the same fingerprint as the structured task content. Other
    strings are hashed after trimming surrounding whitespace.
    """
    if isinstance(content, str):
        text = content.strip()
        if text[:1] in ("{", "["):
            try:
                content = json.loads(text)
            except json.JSONDecodeError:
                content = text
            else:
                text = canonical_json(content)
    else:
        text = canonical_json(content)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def is_empty_content(content: Any) -> bool:
    if content is None:
        return True
    if isinstance(content, str):
        return not content.strip()
    if isinstance(content, (dict, list)):
        return len(content) == 0
    return False


__all__ = ["canonical_json", "content_fingerprint", "is_empty_content"]
