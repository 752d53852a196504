"""Hybrid (semantic + BM25) document retrieval for retrieval-augmented generation."""

from .core.models import Answer, AnswerStatus, Chunk, Document, IndexStats, SearchResult
from .exceptions import (
    ConfigError,
    DimensionMismatchError,
    DocumentNotFoundError,
    EmptyQueryError,
    ExternalProviderError,
    RetrievalError,
    SnapshotError,
    ValidationError,
)
from .services.retrieval_service import RetrievalService
from .settings import RetrievalSettings

__all__ = [
    "Answer",
    "AnswerStatus",
    "Chunk",
    "ConfigError",
    "DimensionMismatchError",
    "Document",
    "DocumentNotFoundError",
    "EmptyQueryError",
    "ExternalProviderError",
    "IndexStats",
    "RetrievalError",
    "RetrievalService",
    "RetrievalSettings",
    "SearchResult",
    "SnapshotError",
    "ValidationError",
]
