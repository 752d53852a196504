"""Service layer: ingestion, passage formatting, external selection and retrieval."""

from .ingestion import extract_metadata, preprocess_text, validate_document
from .passages import (
    compose_context,
    extract_relevant_passages,
    format_source_citations,
    highlight_matches,
)
from .retrieval_service import RetrievalService
from .selection_service import (
    DocumentSelectionService,
    SelectionProvider,
    SelectionResult,
    parse_selection,
)

__all__ = [
    "DocumentSelectionService",
    "RetrievalService",
    "SelectionProvider",
    "SelectionResult",
    "compose_context",
    "extract_metadata",
    "extract_relevant_passages",
    "format_source_citations",
    "highlight_matches",
    "parse_selection",
    "preprocess_text",
    "validate_document",
]
