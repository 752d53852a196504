"""Core data model, document store and locking primitives."""

from .locking import ReadWriteLock
from .models import Answer, AnswerStatus, Chunk, Document, IndexStats, SearchResult
from .store import DocumentStore

__all__ = [
    "Answer",
    "AnswerStatus",
    "Chunk",
    "Document",
    "DocumentStore",
    "IndexStats",
    "ReadWriteLock",
    "SearchResult",
]
