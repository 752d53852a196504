from __future__ import annotations

import re
from typing import List

MIN_TOKEN_LENGTH = 3

_NON_WORD_RE = re.compile(r"[^\w\s]+")


def tokenize(text: str) -> List[str]:
    """Lowercase ``text``, blank out punctuation and keep tokens of 3+ characters.

    Every scorer uses this function for both indexed chunks and queries.
    """

    if not text:
        return []
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [token for token in cleaned.split() if len(token) >= MIN_TOKEN_LENGTH]


def split_words(text: str) -> List[str]:
    """Whitespace word split used for chunk windows and word counts."""

    return text.split() if text else []


__all__ = ["MIN_TOKEN_LENGTH", "split_words", "tokenize"]
