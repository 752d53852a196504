"""Hybrid ranking: heuristic semantic overlap plus BM25, followed by boost-based reranking."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

from knowledge_retrieval.core.models import Chunk, Document, SearchResult

from .bm25_index import BM25Index
from .tokenizer import tokenize

logger = logging.getLogger(__name__)

SEMANTIC_WEIGHT = 0.6
KEYWORD_WEIGHT = 0.4
RELEVANCE_SCALE = 5.0

TITLE_BOOST = 1.3
EXACT_MATCH_BOOST = 1.5
TAG_BOOST = 1.2

CONFIDENCE_SATURATION = 3

Candidate = Tuple[Document, Sequence[Chunk]]


def heuristic_semantic_score(query_tokens: Iterable[str], chunk_tokens: Iterable[str]) -> float:
    """Bag-of-words stand-in for embedding similarity.

    ``0.7`` x share of distinct query tokens found in the chunk plus ``0.3`` x
    share of chunk tokens that are query tokens. Not an embedding comparison.
    """

    query_set = set(query_tokens)
    counts = chunk_tokens if isinstance(chunk_tokens, Counter) else Counter(chunk_tokens)
    total = sum(counts.values())
    if not query_set or not total:
        return 0.0
    found = sum(1 for token in query_set if counts.get(token, 0))
    matching = sum(counts.get(token, 0) for token in query_set)
    return 0.7 * (found / len(query_set)) + 0.3 * (matching / total)


def calculate_confidence(sources: Sequence[SearchResult]) -> float:
    """``0.7 * mean relevance + 0.3 * min(n / 3, 1)``; 0 without sources."""

    if not sources:
        return 0.0
    avg_relevance = sum(source.relevance for source in sources) / len(sources)
    coverage = min(len(sources) / CONFIDENCE_SATURATION, 1.0)
    return avg_relevance * 0.7 + coverage * 0.3


class HybridRanker:
    """Score documents by their best chunk, then apply title/phrase/tag boosts."""

    def __init__(
        self,
        bm25_index: BM25Index,
        *,
        semantic_weight: float = SEMANTIC_WEIGHT,
        keyword_weight: float = KEYWORD_WEIGHT,
        relevance_scale: float = RELEVANCE_SCALE,
    ) -> None:
        if relevance_scale <= 0:
            raise ValueError("relevance_scale must be positive")
        self.bm25 = bm25_index
        self.semantic_weight = semantic_weight
        self.keyword_weight = keyword_weight
        self.relevance_scale = relevance_scale

    def relevance(self, score: float) -> float:
        return min(max(score, 0.0) / self.relevance_scale, 1.0)

    def score_documents(
        self,
        query: str,
        candidates: Iterable[Candidate],
        *,
        vector_scores: Optional[Mapping[str, float]] = None,
    ) -> List[SearchResult]:
        """First pass: one result per document, represented by its best chunk.

        When ``vector_scores`` (chunk key -> cosine similarity) is supplied the
        semantic signal comes from it instead of the token overlap heuristic.
        """

        query_tokens = tokenize(query)
        results: List[SearchResult] = []

        for document, chunks in candidates:
            best: Optional[SearchResult] = None
            for chunk in chunks:
                semantic, keyword = self._chunk_signals(query_tokens, chunk, vector_scores)
                combined = self.semantic_weight * semantic + self.keyword_weight * keyword
                if best is None or combined > best.score:
                    best = SearchResult(
                        document=document,
                        chunk=chunk,
                        score=combined,
                        relevance=self.relevance(combined),
                        semantic_score=semantic,
                        keyword_score=keyword,
                    )
            if best is not None:
                results.append(best)

        results.sort(key=lambda result: -result.score)
        return results

    def rerank(self, query: str, results: Iterable[SearchResult]) -> List[SearchResult]:
        """Second pass: multiply scores by each matching boost once and re-sort."""

        query_tokens = tokenize(query)
        phrase = " ".join(query.lower().split())
        reranked: List[SearchResult] = []

        for result in results:
            boost = 1.0
            reasons: List[str] = []

            title = result.document.title.lower()
            if any(token in title for token in query_tokens):
                boost *= TITLE_BOOST
                reasons.append("title match")

            if phrase and phrase in result.chunk.content.lower():
                boost *= EXACT_MATCH_BOOST
                reasons.append("exact phrase")

            tags = [tag.lower() for tag in result.document.tags]
            if any(token in tag for tag in tags for token in query_tokens):
                boost *= TAG_BOOST
                reasons.append("tag match")

            score = result.score * boost
            reranked.append(
                replace(
                    result,
                    score=score,
                    relevance=self.relevance(score),
                    relevance_reason=", ".join(reasons) or None,
                )
            )

        reranked.sort(key=lambda result: -result.score)
        return reranked

    def rank_documents(
        self,
        query: str,
        candidates: Iterable[Candidate],
        top_k: Optional[int] = None,
        *,
        vector_scores: Optional[Mapping[str, float]] = None,
    ) -> List[SearchResult]:
        scored = self.score_documents(query, candidates, vector_scores=vector_scores)
        ranked = self.rerank(query, scored)
        logger.debug("Ranked %s documents for query %r", len(ranked), query)
        return ranked if top_k is None else ranked[:top_k]

    def _chunk_signals(
        self,
        query_tokens: Sequence[str],
        chunk: Chunk,
        vector_scores: Optional[Mapping[str, float]],
    ) -> Tuple[float, float]:
        if chunk.key in self.bm25:
            chunk_tokens: Iterable[str] = self.bm25.tokens_for(chunk.key)
            keyword = self.bm25.score(query_tokens, chunk.key)
        else:
            chunk_tokens = tokenize(chunk.content)
            keyword = self.bm25.score_text(query_tokens, chunk.content)

        if vector_scores is not None:
            semantic = max(0.0, float(vector_scores.get(chunk.key, 0.0)))
        else:
            semantic = heuristic_semantic_score(query_tokens, chunk_tokens)
        return semantic, keyword


__all__ = [
    "EXACT_MATCH_BOOST",
    "HybridRanker",
    "TAG_BOOST",
    "TITLE_BOOST",
    "calculate_confidence",
    "heuristic_semantic_score",
]
