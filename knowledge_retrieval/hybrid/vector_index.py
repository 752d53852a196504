from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from knowledge_retrieval.exceptions import DimensionMismatchError

from .embeddings import DEFAULT_DIMENSION

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of ``a`` and ``b``.

    Returns 0.0 instead of raising for empty, zero-magnitude or
    mismatched-length inputs.
    """

    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    if vec_a.ndim != 1 or vec_a.shape != vec_b.shape or vec_a.size == 0:
        return 0.0
    # sqrt(aa * bb) makes a vector's similarity with itself exactly 1.0.
    dot_aa = float(np.dot(vec_a, vec_a))
    dot_bb = float(np.dot(vec_b, vec_b))
    if dot_aa == 0.0 or dot_bb == 0.0:
        return 0.0
    similarity = float(np.dot(vec_a, vec_b)) / math.sqrt(dot_aa * dot_bb)
    return max(-1.0, min(1.0, similarity))


class VectorIndex:
    """Exact in-memory cosine index over fixed-dimension embeddings.

    Holds no durable state; the retrieval service rebuilds it from stored
    chunks or from a snapshot.
    """

    def __init__(self, dimension: int = DEFAULT_DIMENSION) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension
        # Dict order doubles as insertion order for tie breaking.
        self._vectors: Dict[str, np.ndarray] = {}

    def upsert(self, entry_id: str, embedding: Sequence[float]) -> None:
        vector = np.asarray(embedding, dtype=np.float64)
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            actual = int(vector.shape[-1]) if vector.ndim else 0
            raise DimensionMismatchError(self.dimension, actual)
        self._vectors[entry_id] = vector

    def remove(self, entry_id: str) -> bool:
        return self._vectors.pop(entry_id, None) is not None

    def get(self, entry_id: str) -> Optional[List[float]]:
        vector = self._vectors.get(entry_id)
        return None if vector is None else vector.tolist()

    def search(self, query_embedding: Sequence[float], top_k: int = 5) -> List[Tuple[str, float]]:
        """Return ``(entry_id, similarity)`` pairs, most similar first."""

        query = np.asarray(query_embedding, dtype=np.float64)
        if query.ndim != 1 or query.shape[0] != self.dimension:
            actual = int(query.shape[-1]) if query.ndim else 0
            raise DimensionMismatchError(self.dimension, actual)
        if top_k <= 0 or not self._vectors:
            return []

        ids = list(self._vectors)
        scores = self._similarities(query, np.vstack([self._vectors[i] for i in ids]))
        # sorted() is stable, so equal scores keep insertion order.
        order = sorted(range(len(ids)), key=lambda idx: -scores[idx])
        return [(ids[idx], float(scores[idx])) for idx in order[:top_k]]

    def similarities(self, query_embedding: Sequence[float]) -> Dict[str, float]:
        """Similarity of every stored entry to the query, keyed by entry id."""

        return dict(self.search(query_embedding, top_k=len(self._vectors)))

    @staticmethod
    def _similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
        query_norm = float(np.linalg.norm(query))
        row_norms = np.linalg.norm(matrix, axis=1)
        if query_norm == 0.0:
            return np.zeros(matrix.shape[0])
        denominators = row_norms * query_norm
        dots = matrix @ query
        scores = np.divide(dots, denominators, out=np.zeros_like(dots), where=denominators > 0)
        return np.clip(scores, -1.0, 1.0)

    def ids(self) -> List[str]:
        return list(self._vectors)

    def size(self) -> int:
        return len(self._vectors)

    def clear(self) -> None:
        logger.debug("Clearing vector index with %s entries", len(self._vectors))
        self._vectors.clear()

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._vectors


__all__ = ["VectorIndex", "cosine_similarity"]
