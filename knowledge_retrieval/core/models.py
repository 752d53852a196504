"""Core dataclasses shared by the store, the indices and the retrieval service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Document:
    """A text document owned by the :class:`~knowledge_retrieval.core.store.DocumentStore`."""

    id: str
    title: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def tags(self) -> List[str]:
        tags = self.metadata.get("tags")
        if not isinstance(tags, (list, tuple)):
            return []
        return [str(tag) for tag in tags if tag is not None]


@dataclass(frozen=True)
class Chunk:
    """An overlapping word window of a document.

    ``document_id`` is a back-reference only; the chunk never holds a copy of
    its parent document.
    """

    id: str
    document_id: str
    content: str
    start_index: int
    word_count: int

    @property
    def key(self) -> str:
        """Corpus-wide identifier used by the vector and BM25 indices."""

        return f"{self.document_id}:{self.id}"

    @property
    def end_index(self) -> int:
        return self.start_index + self.word_count


@dataclass(frozen=True)
class SearchResult:
    """A ranked document paired with the chunk that represents it."""

    document: Document
    chunk: Chunk
    score: float
    relevance: float
    relevance_reason: Optional[str] = None
    semantic_score: float = 0.0
    keyword_score: float = 0.0


class AnswerStatus(str, Enum):
    OK = "ok"
    EMPTY_CORPUS = "empty_corpus"
    NO_MATCHES = "no_matches"


@dataclass
class Answer:
    """Ranked sources for a question, ready for an answer-generation model.

    The answer text is produced outside the engine from ``context``.
    """

    question: str
    sources: List[SearchResult] = field(default_factory=list)
    confidence: float = 0.0
    status: AnswerStatus = AnswerStatus.OK
    context: str = ""
    citations: str = ""

    @property
    def message(self) -> Optional[str]:
        if self.status is AnswerStatus.EMPTY_CORPUS:
            return "No documents are indexed yet. Add documents to the knowledge base first."
        if self.status is AnswerStatus.NO_MATCHES:
            return (
                "No relevant information was found. Try rephrasing the question "
                "or add more documents to the knowledge base."
            )
        return None


@dataclass(frozen=True)
class IndexStats:
    document_count: int
    chunk_count: int
    total_tokens: int
    average_chunk_length: float
    tags: List[str] = field(default_factory=list)
