"""Custom exception hierarchy for the knowledge retrieval engine."""

from __future__ import annotations

from typing import Iterable, List


class RetrievalError(Exception):
    """Base exception for retrieval engine errors."""


class ConfigError(RetrievalError):
    """Raised when configuration is invalid or incomplete."""


class ValidationError(RetrievalError):
    """Raised when a document fails ingestion validation.

    ``errors`` lists every violation, not just the first one found.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid document")


class EmptyQueryError(RetrievalError):
    """Raised when a search query is blank."""

    def __init__(self, message: str = "Search query is required") -> None:
        super().__init__(message)


class DimensionMismatchError(RetrievalError):
    """Raised when an embedding length disagrees with the index dimension."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Embedding dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class DocumentNotFoundError(RetrievalError):
    """Raised when a document id is not present in the store."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"Document not found: {document_id}")
        self.document_id = document_id


class ExternalProviderError(RetrievalError):
    """Wraps failures of the optional external selection collaborator."""


class SnapshotError(RetrievalError):
    """Raised when a persisted snapshot cannot be read or restored."""
