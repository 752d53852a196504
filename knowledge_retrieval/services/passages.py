"""Turn ranked results into citations, bounded LLM context and highlighted passages."""

from __future__ import annotations

import math
import re
from typing import List, Optional, Sequence

from knowledge_retrieval.core.models import SearchResult

DEFAULT_SNIPPET_SEP = "\n\n-----\n\n"
_SENTENCE_BOUNDARY = re.compile(r"[.!?]+")


def format_source_citations(results: Sequence[SearchResult]) -> str:
    """``[1] Title (Relevance: 87%)``, one line per result."""

    return "\n".join(
        f"[{position}] {result.document.title} (Relevance: {round(result.relevance * 100)}%)"
        for position, result in enumerate(results, start=1)
    )


def compose_context(
    results: Sequence[SearchResult],
    *,
    max_total_chars: int = 12000,
    snippet_sep: str = DEFAULT_SNIPPET_SEP,
    header: Optional[str] = None,
    footer: Optional[str] = None,
) -> str:
    """Compose a bounded-size context string suitable for passing to an LLM.

    Each block is a numbered citation line followed by the chunk text. The
    total never exceeds ``max_total_chars``; the block that crosses the limit
    is truncated and marked, and later blocks are dropped.
    """

    parts: List[str] = []
    total = 0

    if header:
        parts.append(header[:max_total_chars])
        total += len(parts[0])

    for position, result in enumerate(results, start=1):
        citation = f"[{position}] {result.document.title} (relevance={result.relevance:.2f})"
        snippet = result.chunk.content
        block = f"{citation}\n{snippet}"
        sep = snippet_sep if parts else ""
        extra = len(sep) + len(block)
        if total + extra > max_total_chars:
            remaining = max_total_chars - total - len(sep)
            marker = "\n... [truncated]"
            take = remaining - len(citation) - 1 - len(marker)
            if take > 0:
                parts.append(f"{sep}{citation}\n{snippet[:take]}{marker}")
                total += len(parts[-1])
            break
        parts.append(sep + block)
        total += extra

    if footer and total < max_total_chars:
        sep = snippet_sep if parts else ""
        room = max_total_chars - total - len(sep)
        if room > 0:
            parts.append(sep + footer[:room])

    return "".join(parts)


def extract_relevant_passages(content: str, query: str, max_sentences: int = 3) -> str:
    """Pick the sentences sharing the most words with ``query``, normalized by sentence length."""

    query_words = set(query.lower().split())
    if not query_words:
        return ""

    scored = []
    for sentence in _SENTENCE_BOUNDARY.split(content):
        words = sentence.lower().split()
        if not words:
            continue
        matches = sum(1 for word in words if word in query_words)
        if matches:
            scored.append((matches / math.sqrt(len(words)), sentence.strip()))

    scored.sort(key=lambda item: -item[0])
    return ". ".join(sentence for _, sentence in scored[:max_sentences])


def highlight_matches(text: str, query: str) -> str:
    """Wrap whole-word, case-insensitive occurrences of each query word in ``**``."""

    words = list(dict.fromkeys(query.lower().split()))
    if not words:
        return text
    pattern = re.compile(
        r"\b(" + "|".join(re.escape(word) for word in sorted(words, key=len, reverse=True)) + r")\b",
        re.IGNORECASE,
    )
    return pattern.sub(lambda match: f"**{match.group(0)}**", text)


__all__ = [
    "compose_context",
    "extract_relevant_passages",
    "format_source_citations",
    "highlight_matches",
]
