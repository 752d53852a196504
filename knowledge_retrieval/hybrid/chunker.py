"""Split document content into overlapping word windows."""

from __future__ import annotations

from typing import List

from knowledge_retrieval.core.models import Chunk
from knowledge_retrieval.exceptions import ConfigError

from .tokenizer import split_words

DEFAULT_CHUNK_SIZE = 500
DEFAULT_OVERLAP = 50


def chunk_document(
    content: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    *,
    document_id: str = "",
) -> List[Chunk]:
    """Slide a ``chunk_size`` word window over ``content`` in steps of ``chunk_size - overlap``.

    The window stops once it has covered the last word, so content shorter than
    ``chunk_size`` yields a single chunk. Chunk ids derive from the start word
    index, which keeps re-chunking of unchanged content idempotent.
    """

    if chunk_size <= 0:
        raise ConfigError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ConfigError(f"overlap must not be negative, got {overlap}")
    if overlap >= chunk_size:
        raise ConfigError(
            f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )

    words = split_words(content)
    step = chunk_size - overlap
    chunks: List[Chunk] = []

    for start in range(0, len(words), step):
        window = words[start : start + chunk_size]
        text = " ".join(window)
        if text.strip():
            chunks.append(
                Chunk(
                    id=f"chunk-{start}",
                    document_id=document_id,
                    content=text,
                    start_index=start,
                    word_count=len(window),
                )
            )
        if start + chunk_size >= len(words):
            break

    return chunks


__all__ = ["DEFAULT_CHUNK_SIZE", "DEFAULT_OVERLAP", "chunk_document"]
