from datetime import date

import pytest

from knowledge_retrieval.exceptions import ValidationError
from knowledge_retrieval.services.ingestion import (
    extract_metadata,
    normalize_metadata,
    preprocess_text,
    validate_document,
)

VALID_CONTENT = "A" * 60


def test_valid_document_passes():
    validate_document("Title", VALID_CONTENT)


def test_missing_title_and_content_are_both_reported():
    with pytest.raises(ValidationError) as excinfo:
        validate_document("", "")

    assert excinfo.value.errors == ["Title is required", "Content is required"]
    assert str(excinfo.value) == "Title is required; Content is required"


def test_whitespace_content_is_missing_and_too_short():
    with pytest.raises(ValidationError) as excinfo:
        validate_document("Title", "   ")

    assert excinfo.value.errors == [
        "Content is required",
        "Content too short (minimum 50 characters)",
    ]


def test_content_limits_follow_arguments():
    with pytest.raises(ValidationError) as excinfo:
        validate_document("Title", "x" * 30, min_chars=10, max_chars=20)

    assert excinfo.value.errors == ["Content too large (maximum 20 characters)"]


def test_preprocess_text_collapses_whitespace():
    assert preprocess_text("  hello \n\n  world\t again ") == "hello world again"


def test_extract_metadata_counts_and_headings():
    content = "OVERVIEW\nThe engine ranks documents.\n\nDetails:\nIt uses BM25 and a heuristic."

    metadata = extract_metadata(content)

    assert metadata["word_count"] == 12
    assert metadata["char_count"] == len(content)
    assert metadata["paragraphs"] == 2
    assert metadata["estimated_read_time"] == 1
    assert metadata["headings"] == ["OVERVIEW", "Details:"]


def test_extract_metadata_omits_headings_when_absent():
    metadata = extract_metadata("plain text without any heading lines at all")

    assert "headings" not in metadata
    assert metadata["estimated_read_time"] == 1


def test_normalize_metadata_converts_tuples_to_lists():
    metadata = {"tags": ("ai", "ml"), "source": {"pages": (1, 2)}, "score": 0.5, "draft": None}

    assert normalize_metadata(metadata) == {
        "tags": ["ai", "ml"],
        "source": {"pages": [1, 2]},
        "score": 0.5,
        "draft": None,
    }
    assert normalize_metadata(None) == {}


def test_normalize_metadata_reports_every_unsupported_value():
    with pytest.raises(ValidationError) as excinfo:
        normalize_metadata({"published": date(2024, 1, 1), "labels": {"a"}, "nested": {"when": [date(2024, 1, 2)]}})

    assert excinfo.value.errors == [
        "Metadata field 'published' has unsupported type date",
        "Metadata field 'labels' has unsupported type set",
        "Metadata field 'nested.when[0]' has unsupported type date",
    ]
