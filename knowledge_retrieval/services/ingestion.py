"""Document validation, text cleanup and lightweight metadata extraction."""

from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Mapping, Optional

from knowledge_retrieval.exceptions import ValidationError

MIN_CONTENT_CHARS = 50
MAX_CONTENT_CHARS = 1_000_000
WORDS_PER_MINUTE = 200

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n+")


def validate_document(
    title: Optional[str],
    content: Optional[str],
    *,
    min_chars: int = MIN_CONTENT_CHARS,
    max_chars: int = MAX_CONTENT_CHARS,
) -> None:
    """Raise :class:`ValidationError` listing every problem with ``title``/``content``."""

    errors: List[str] = []
    stripped = (content or "").strip()

    if not title or not title.strip():
        errors.append("Title is required")
    if not stripped:
        errors.append("Content is required")
    if content and len(stripped) < min_chars:
        errors.append(f"Content too short (minimum {min_chars} characters)")
    if content and len(stripped) > max_chars:
        errors.append(f"Content too large (maximum {max_chars} characters)")

    if errors:
        raise ValidationError(errors)


def _json_native(value: Any, path: str, errors: List[str]) -> Any:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_native(item, f"{path}[{index}]", errors) for index, item in enumerate(value)]
    if isinstance(value, Mapping):
        native: Dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                errors.append(f"Metadata key {key!r} in '{path}' must be a string")
                continue
            native[key] = _json_native(item, f"{path}.{key}", errors)
        return native
    errors.append(f"Metadata field '{path}' has unsupported type {type(value).__name__}")
    return None


def normalize_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Copy ``metadata`` using JSON types only, turning tuples into lists.

    Raises :class:`ValidationError` naming every value JSON cannot hold,
    such as dates or sets.
    """

    errors: List[str] = []
    native: Dict[str, Any] = {}
    for key, value in (metadata or {}).items():
        if not isinstance(key, str):
            errors.append(f"Metadata key {key!r} must be a string")
            continue
        native[key] = _json_native(value, key, errors)
    if errors:
        raise ValidationError(errors)
    return native


def preprocess_text(text: str) -> str:
    return " ".join(text.split())


def _headings(content: str) -> List[str]:
    headings = []
    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue
        if trimmed.endswith(":") or (trimmed == trimmed.upper() and len(trimmed) > 3):
            headings.append(trimmed)
    return headings


def extract_metadata(content: str) -> Dict[str, Any]:
    """Word/character/paragraph counts, reading time and heading-like lines.

    A heading is a line ending with ``:`` or an all-caps line longer than three
    characters. ``headings`` is omitted when there are none.
    """

    word_count = len(content.split())
    metadata: Dict[str, Any] = {
        "word_count": word_count,
        "char_count": len(content),
        "paragraphs": len([part for part in _PARAGRAPH_BREAK.split(content) if part.strip()]),
        "estimated_read_time": math.ceil(word_count / WORDS_PER_MINUTE),
    }

    headings = _headings(content)
    if headings:
        metadata["headings"] = headings
    return metadata


__all__ = ["extract_metadata", "normalize_metadata", "preprocess_text", "validate_document"]
