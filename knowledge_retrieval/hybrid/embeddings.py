from __future__ import annotations

import math
import zlib
from typing import List, Protocol, Sequence

import numpy as np

from .tokenizer import tokenize

DEFAULT_DIMENSION = 384


class Embedder(Protocol):
    """Simple embedding interface for pluggable models.

    ``semantic`` tells the ranker whether cosine similarity between these
    vectors carries meaning. Real models set it to ``True``.
    """

    dimension: int
    semantic: bool

    def embed(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        """Return vector representations for the provided texts."""


def normalize(vector: Sequence[float]) -> np.ndarray:
    """Scale ``vector`` to unit length; the zero vector is returned unchanged."""

    array = np.asarray(vector, dtype=np.float64)
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return array
    return array / norm


class HashingEmbedder:
    """Deterministic, non-semantic placeholder embedder.

    Each character of each token adds a periodic contribution to a bucket picked
    from a stable CRC32 hash of the token, the character code and its position.
    Identical text always yields bit-identical vectors; nearby vectors do not
    imply related meaning.
    """

    semantic = False
    model_name = "hashing-placeholder"

    def __init__(self, dimension: int = DEFAULT_DIMENSION) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        if isinstance(texts, str):
            raise TypeError("embed() expects a sequence of texts; use embed_text() for a single string")
        return [self._embed_one(text).tolist() for text in texts]

    def embed_text(self, text: str) -> List[float]:
        return self._embed_one(text).tolist()

    def _embed_one(self, text: str) -> np.ndarray:
        vector = np.zeros(self.dimension, dtype=np.float64)
        for token_index, token in enumerate(tokenize(text)):
            token_hash = zlib.crc32(token.encode("utf-8"))
            for position, char in enumerate(token):
                code = ord(char)
                bucket = (token_hash + code * (position + 1) * 31 + token_index) % self.dimension
                vector[bucket] += math.sin(code * 0.1 + position + token_index * 0.01)
        return normalize(vector)


__all__ = ["DEFAULT_DIMENSION", "Embedder", "HashingEmbedder", "normalize"]
