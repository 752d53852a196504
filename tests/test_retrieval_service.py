from __future__ import annotations

import threading
from datetime import date
from typing import Sequence

import pytest

from knowledge_retrieval.core.models import AnswerStatus
from knowledge_retrieval.exceptions import (
    ConfigError,
    DocumentNotFoundError,
    EmptyQueryError,
    ValidationError,
)
from knowledge_retrieval.hybrid.ranker import calculate_confidence
from knowledge_retrieval.services.retrieval_service import RetrievalService
from knowledge_retrieval.settings import RetrievalSettings

ML_CONTENT = (
    "Machine learning is a subset of artificial intelligence. "
    "Machine learning systems learn from data."
)
DEEP_LEARNING_CONTENT = (
    "Deep learning extends machine learning with layered neural networks "
    "trained on large data sets."
)
COOKING_CONTENT = (
    "Slow cooking recipes need patience, fresh herbs, good stock and careful "
    "seasoning every time."
)


class StaticEmbedder:
    """Semantic embedder mapping keywords to fixed vectors."""

    semantic = True
    dimension = 2

    def embed(self, texts: Sequence[str]) -> Sequence[Sequence[float]]:
        vectors = []
        for text in texts:
            lowered = text.lower()
            if "cooking" in lowered or "kitchen" in lowered:
                vectors.append([0.0, 1.0])
            else:
                vectors.append([1.0, 0.0])
        return vectors


def test_single_document_query_is_relevant(service: RetrievalService):
    service.add_document(
        "Machine Learning",
        "Machine learning is a subset of artificial intelligence...",
        document_id="a",
    )

    results = service.search("machine learning")

    assert results[0].document.id == "a"
    assert results[0].relevance > 0.5
    assert results[0].relevance_reason == "title match, exact phrase"


def test_empty_corpus_returns_no_results(service: RetrievalService):
    assert service.search("anything") == []


@pytest.mark.parametrize("query", ["", "   ", "\n\t"])
def test_blank_query_raises(service: RetrievalService, query: str):
    with pytest.raises(EmptyQueryError):
        service.search(query)


def test_zero_score_documents_are_dropped(corpus_service: RetrievalService):
    results = corpus_service.search("machine learning", top_k=10)

    assert [result.document.id for result in results] == ["ml", "dl"]


def test_threshold_and_top_k_filter_results(corpus_service: RetrievalService):
    assert len(corpus_service.search("machine learning", top_k=1)) == 1
    assert corpus_service.search("machine learning", threshold=1.0) == []
    assert corpus_service.search("machine learning", top_k=0) == []


def test_equal_scores_keep_insertion_order(service: RetrievalService):
    content = "Vector databases store embeddings for fast similarity lookups at scale."
    service.add_document("Note", content, document_id="first")
    service.add_document("Note", content, document_id="second")

    results = service.search("vector embeddings")

    assert [result.document.id for result in results] == ["first", "second"]
    assert results[0].score == results[1].score


def test_search_is_deterministic(corpus_service: RetrievalService):
    first = [(r.document.id, r.score) for r in corpus_service.search("learning data")]
    second = [(r.document.id, r.score) for r in corpus_service.search("learning data")]

    assert first == second


def test_add_document_rejects_invalid_input_with_every_error(service: RetrievalService):
    with pytest.raises(ValidationError) as excinfo:
        service.add_document("", "too short")

    assert excinfo.value.errors == [
        "Title is required",
        "Content too short (minimum 50 characters)",
    ]
    assert len(service) == 0


def test_add_document_merges_extracted_metadata(service: RetrievalService):
    document = service.add_document("Machine Learning", ML_CONTENT, {"tags": ["ai"]})

    assert document.metadata["tags"] == ["ai"]
    assert document.metadata["auto"]["word_count"] == len(ML_CONTENT.split())
    assert len(document.id) == 32


def test_add_document_rejects_metadata_json_cannot_hold(service: RetrievalService):
    with pytest.raises(ValidationError, match="published"):
        service.add_document("Machine Learning", ML_CONTENT, {"published": date(2024, 1, 1)})

    assert len(service) == 0


def test_batch_ingestion_is_all_or_nothing(service: RetrievalService):
    items = [
        {"title": "Machine Learning", "content": ML_CONTENT},
        {"title": "", "content": "tiny"},
    ]

    with pytest.raises(ValidationError):
        service.add_documents(items)

    assert len(service) == 0


def test_batch_ingestion_preserves_order(service: RetrievalService):
    documents = service.add_documents(
        [
            {"title": "Machine Learning", "content": ML_CONTENT, "id": "ml"},
            {"title": "Deep Learning", "content": DEEP_LEARNING_CONTENT, "id": "dl"},
            {"title": "Kitchen Notes", "content": COOKING_CONTENT, "id": "cook"},
        ]
    )

    assert [document.id for document in documents] == ["ml", "dl", "cook"]
    assert [document.id for document in service.list_documents()] == ["ml", "dl", "cook"]
    assert service.stats().chunk_count == 3


def test_update_document_rebuilds_chunks(corpus_service: RetrievalService):
    created_at = corpus_service.get_document("cook").created_at
    corpus_service.update_document(
        "cook",
        content="Quantum computing uses qubits and superposition to explore many states at once.",
    )

    assert corpus_service.search("slow cooking recipes") == []
    results = corpus_service.search("quantum qubits")
    assert results[0].document.id == "cook"
    updated = corpus_service.get_document("cook")
    assert updated.title == "Kitchen Notes"
    assert updated.tags == ["food"]
    assert updated.created_at == created_at


def test_update_unknown_document_raises(service: RetrievalService):
    with pytest.raises(DocumentNotFoundError):
        service.update_document("missing", title="Anything")


def test_remove_document_drops_it_from_indices(corpus_service: RetrievalService):
    assert corpus_service.remove_document("ml") is True
    assert corpus_service.remove_document("ml") is False

    assert [r.document.id for r in corpus_service.search("machine learning")] == ["dl"]
    stats = corpus_service.stats()
    assert stats.document_count == 2
    assert stats.chunk_count == 2
    assert len(corpus_service.vector_index) == 2


def test_reindex_and_clear(corpus_service: RetrievalService):
    before = [(r.document.id, r.score) for r in corpus_service.search("learning")]

    assert corpus_service.reindex() == 3
    assert [(r.document.id, r.score) for r in corpus_service.search("learning")] == before

    corpus_service.clear()
    assert len(corpus_service) == 0
    assert corpus_service.stats().chunk_count == 0


def test_reads_and_stats(corpus_service: RetrievalService):
    assert corpus_service.get_document("missing") is None
    assert [doc.id for doc in corpus_service.documents_with_tag("AI")] == ["ml", "dl"]

    stats = corpus_service.stats()
    assert stats.document_count == 3
    assert stats.tags == ["ai", "food", "neural"]
    assert stats.total_tokens > 0
    assert stats.average_chunk_length == pytest.approx(stats.total_tokens / 3)


def test_find_similar_documents_excludes_target(corpus_service: RetrievalService):
    results = corpus_service.find_similar_documents("ml")

    assert [result.document.id for result in results] == ["dl"]


def test_find_similar_unknown_document_raises(corpus_service: RetrievalService):
    with pytest.raises(DocumentNotFoundError):
        corpus_service.find_similar_documents("missing")


def test_answer_reports_empty_corpus(service: RetrievalService):
    answer = service.answer("What is machine learning?")

    assert answer.status is AnswerStatus.EMPTY_CORPUS
    assert answer.sources == []
    assert answer.confidence == 0.0
    assert answer.message


def test_answer_reports_no_matches(corpus_service: RetrievalService):
    answer = corpus_service.answer("astronomy telescopes")

    assert answer.status is AnswerStatus.NO_MATCHES
    assert answer.message


def test_answer_collects_sources_context_and_citations(corpus_service: RetrievalService):
    answer = corpus_service.answer("machine learning")

    assert answer.status is AnswerStatus.OK
    assert answer.message is None
    assert [source.document.id for source in answer.sources] == ["ml", "dl"]
    assert answer.confidence == pytest.approx(calculate_confidence(answer.sources))
    assert answer.citations.splitlines()[0].startswith("[1] Machine Learning (Relevance: ")
    assert ML_CONTENT in answer.context


def test_semantic_embedder_supplies_vector_scores(settings: RetrievalSettings):
    service = RetrievalService(
        settings.model_copy(update={"embedding_dimension": 2}), embedder=StaticEmbedder()
    )
    service.add_document("Machine Learning", ML_CONTENT, document_id="ml")
    service.add_document("Kitchen Notes", COOKING_CONTENT, document_id="cook")

    results = service.search("kitchen", top_k=5)

    assert results[0].document.id == "cook"
    assert results[0].semantic_score == pytest.approx(1.0)
    assert [r.document.id for r in results] == ["cook"]


def test_embedder_dimension_must_match_settings(settings: RetrievalSettings):
    with pytest.raises(ConfigError):
        RetrievalService(settings, embedder=StaticEmbedder())


def test_services_are_independent(settings: RetrievalSettings):
    first = RetrievalService(settings)
    second = RetrievalService(settings)
    first.add_document("Machine Learning", ML_CONTENT)

    assert len(first) == 1
    assert len(second) == 0


def test_concurrent_searches_and_ingestion(service: RetrievalService):
    service.add_document("Machine Learning", ML_CONTENT, document_id="seed")
    errors: list[BaseException] = []

    def search_loop() -> None:
        try:
            for _ in range(50):
                results = service.search("machine learning", top_k=10)
                assert results and results[0].document.id
        except BaseException as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    def ingest_loop() -> None:
        try:
            for index in range(20):
                service.add_document(f"Deep Learning {index}", DEEP_LEARNING_CONTENT)
        except BaseException as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=search_loop) for _ in range(3)]
    threads.append(threading.Thread(target=ingest_loop))
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert len(service) == 21
