from __future__ import annotations

import logging
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from knowledge_retrieval.core.locking import ReadWriteLock
from knowledge_retrieval.core.models import (
    Answer,
    AnswerStatus,
    Chunk,
    Document,
    IndexStats,
    SearchResult,
)
from knowledge_retrieval.core.store import DocumentStore
from knowledge_retrieval.exceptions import (
    ConfigError,
    DimensionMismatchError,
    DocumentNotFoundError,
    EmptyQueryError,
    SnapshotError,
)
from knowledge_retrieval.hybrid.bm25_index import BM25Index
from knowledge_retrieval.hybrid.chunker import chunk_document
from knowledge_retrieval.hybrid.embeddings import Embedder, HashingEmbedder
from knowledge_retrieval.hybrid.ranker import HybridRanker, calculate_confidence
from knowledge_retrieval.hybrid.vector_index import VectorIndex
from knowledge_retrieval.services.ingestion import (
    extract_metadata,
    normalize_metadata,
    validate_document,
)
from knowledge_retrieval.services.passages import compose_context, format_source_citations
from knowledge_retrieval.services.selection_service import DocumentSelectionService
from knowledge_retrieval.settings import RetrievalSettings
from knowledge_retrieval.storage.snapshot import SNAPSHOT_VERSION, read_snapshot, write_snapshot

logger = logging.getLogger(__name__)


@dataclass
class _PreparedDocument:
    document: Document
    chunks: List[Chunk]
    embeddings: List[Sequence[float]]


class RetrievalService:
    """
    Own a corpus of documents and answer hybrid (semantic + BM25) queries over it.

    Every service holds its own store and indices, so several can live in one
    process. Ingestion, updates and removals are serialized by a writer lock;
    searches share a reader lock and always observe a consistent corpus.
    """

    def __init__(
        self,
        settings: Optional[RetrievalSettings] = None,
        *,
        embedder: Optional[Embedder] = None,
        selector: Optional[DocumentSelectionService] = None,
    ) -> None:
        self.settings = settings or RetrievalSettings()
        self.embedder: Embedder = embedder or HashingEmbedder(self.settings.embedding_dimension)
        if self.embedder.dimension != self.settings.embedding_dimension:
            raise ConfigError(
                f"Embedder dimension {self.embedder.dimension} does not match "
                f"embedding_dimension {self.settings.embedding_dimension}"
            )
        self.selector = selector if selector is not None else self.settings.build_selection_service()

        self.store = DocumentStore()
        self.vector_index = VectorIndex(self.settings.embedding_dimension)
        self.bm25 = BM25Index(k1=self.settings.bm25_k1, b=self.settings.bm25_b)
        self.ranker = HybridRanker(
            self.bm25,
            semantic_weight=self.settings.semantic_weight,
            keyword_weight=self.settings.keyword_weight,
            relevance_scale=self.settings.relevance_scale,
        )
        self._lock = ReadWriteLock()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def add_document(
        self,
        title: str,
        content: str,
        metadata: Optional[Mapping[str, Any]] = None,
        *,
        document_id: Optional[str] = None,
    ) -> Document:
        """Validate, chunk, embed and index one document.

        Raises :class:`~knowledge_retrieval.exceptions.ValidationError` listing
        every problem; nothing is indexed in that case. Re-using an existing
        ``document_id`` replaces that document.
        """

        prepared = self._prepare(title, content, metadata, document_id=document_id)
        with self._lock.write():
            self._insert(prepared)
        logger.info(
            "Indexed document %s (%r) with %s chunks",
            prepared.document.id,
            prepared.document.title,
            len(prepared.chunks),
        )
        return prepared.document

    def add_documents(self, items: Iterable[Mapping[str, Any]]) -> List[Document]:
        """Index a batch of ``{"title", "content", "metadata"?, "id"?}`` mappings.

        Items are prepared concurrently and inserted together; if any item is
        invalid the error propagates and none of the batch is indexed.
        """

        batch = list(items)
        if not batch:
            return []

        with ThreadPoolExecutor(max_workers=self.settings.ingest_workers) as executor:
            prepared = list(executor.map(self._prepare_item, batch))

        with self._lock.write():
            for entry in prepared:
                self._insert(entry)
        logger.info(
            "Indexed batch of %s documents (%s chunks)",
            len(prepared),
            sum(len(entry.chunks) for entry in prepared),
        )
        return [entry.document for entry in prepared]

    def update_document(
        self,
        document_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Document:
        """Replace a document wholesale, keeping unspecified fields, and rebuild its chunks."""

        with self._lock.write():
            existing = self.store.get(document_id)
            if existing is None:
                raise DocumentNotFoundError(document_id)
            if metadata is None:
                metadata = {key: value for key, value in existing.metadata.items() if key != "auto"}
            prepared = self._prepare(
                existing.title if title is None else title,
                existing.content if content is None else content,
                metadata,
                document_id=document_id,
                created_at=existing.created_at,
            )
            self._insert(prepared)
        logger.info("Updated document %s (%s chunks)", document_id, len(prepared.chunks))
        return prepared.document

    def remove_document(self, document_id: str) -> bool:
        with self._lock.write():
            removed = self._discard(document_id)
        if removed:
            logger.info("Removed document %s", document_id)
        return removed

    def reindex(self) -> int:
        """Re-chunk and re-embed every document; return the number of documents indexed."""

        with self._lock.write():
            documents = list(self.store.documents.values())
            prepared = [self._chunk_and_embed(document) for document in documents]
            self._reset_indices()
            for entry in prepared:
                self._insert(entry)
        logger.info("Reindexed %s documents", len(prepared))
        return len(prepared)

    def clear(self) -> None:
        with self._lock.write():
            self._reset_indices()
        logger.info("Cleared all documents")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_document(self, document_id: str) -> Optional[Document]:
        with self._lock.read():
            return self.store.get(document_id)

    def list_documents(self) -> List[Document]:
        with self._lock.read():
            return list(self.store.documents.values())

    def documents_with_tag(self, tag: str) -> List[Document]:
        wanted = tag.strip().lower()
        with self._lock.read():
            return [
                document
                for document in self.store.documents.values()
                if wanted in (item.lower() for item in document.tags)
            ]

    def stats(self) -> IndexStats:
        with self._lock.read():
            tags = sorted({tag for document in self.store.documents.values() for tag in document.tags})
            return IndexStats(
                document_count=len(self.store),
                chunk_count=len(self.bm25),
                total_tokens=self.bm25.total_tokens,
                average_chunk_length=self.bm25.avg_chunk_length,
                tags=tags,
            )

    def __len__(self) -> int:
        with self._lock.read():
            return len(self.store)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def search(
        self,
        query: str,
        top_k: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> List[SearchResult]:
        """Rank documents for ``query`` and return at most ``top_k`` results.

        Results scoring zero are dropped, as are results whose relevance is
        below ``threshold``. An empty corpus yields an empty list.
        """

        if not query or not query.strip():
            raise EmptyQueryError()
        limit = self.settings.default_top_k if top_k is None else top_k
        minimum = self.settings.default_threshold if threshold is None else threshold
        if limit <= 0:
            return []

        with self._lock.read():
            if not len(self.store):
                logger.debug("Search on empty corpus for %r", query)
                return []
            ranked = self.ranker.rank_documents(
                query, self.store.items(), vector_scores=self._vector_scores(query)
            )

        ranked = self._apply_selection(query, ranked, limit)
        results = [result for result in ranked if result.score > 0 and result.relevance >= minimum]
        logger.debug("Search %r returned %s of %s ranked documents", query, min(len(results), limit), len(ranked))
        return results[:limit]

    def find_similar_documents(self, document_id: str, limit: int = 5) -> List[SearchResult]:
        """Documents resembling ``document_id``, using its most title-like chunk as the query."""

        with self._lock.read():
            document = self.store.get(document_id)
            if document is None:
                raise DocumentNotFoundError(document_id)
            chunks = self.store.chunks_for(document_id)
            if not chunks or limit <= 0:
                return []

            anchor = self.ranker.score_documents(document.title, [(document, chunks)])
            query = anchor[0].chunk.content
            others = [
                (other, other_chunks)
                for other, other_chunks in self.store.items()
                if other.id != document_id
            ]
            ranked = self.ranker.rank_documents(query, others, vector_scores=self._vector_scores(query))

        return [result for result in ranked if result.score > 0][:limit]

    def answer(
        self,
        question: str,
        top_k: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> Answer:
        """Collect sources, confidence and a citation-ready context for ``question``."""

        if not question or not question.strip():
            raise EmptyQueryError("Question is required")
        if not len(self):
            return Answer(question=question, status=AnswerStatus.EMPTY_CORPUS)

        sources = self.search(question, top_k=top_k, threshold=threshold)
        if not sources:
            return Answer(question=question, status=AnswerStatus.NO_MATCHES)

        return Answer(
            question=question,
            sources=sources,
            confidence=calculate_confidence(sources),
            status=AnswerStatus.OK,
            context=compose_context(sources),
            citations=format_source_citations(sources),
        )

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> Dict[str, Any]:
        with self._lock.read():
            documents = [
                {
                    "id": document.id,
                    "title": document.title,
                    "content": document.content,
                    "metadata": document.metadata,
                    "created_at": document.created_at.isoformat(),
                }
                for document in self.store.documents.values()
            ]
            chunks = [
                {
                    "key": chunk.key,
                    "document_id": chunk.document_id,
                    "id": chunk.id,
                    "content": chunk.content,
                    "start_index": chunk.start_index,
                    "word_count": chunk.word_count,
                    "embedding": self.vector_index.get(chunk.key),
                }
                for chunk in self.store.all_chunks()
            ]
        return {
            "version": SNAPSHOT_VERSION,
            "dimension": self.vector_index.dimension,
            "documents": documents,
            "chunks": chunks,
        }

    def save_snapshot(self, path: Any) -> Path:
        return write_snapshot(path, self.snapshot())

    @classmethod
    def from_snapshot(
        cls,
        data: Mapping[str, Any],
        settings: Optional[RetrievalSettings] = None,
        *,
        embedder: Optional[Embedder] = None,
        selector: Optional[DocumentSelectionService] = None,
    ) -> "RetrievalService":
        """Rebuild a service from :meth:`snapshot` output without re-embedding."""

        service = cls(settings, embedder=embedder, selector=selector)
        dimension = data.get("dimension")
        if dimension != service.vector_index.dimension:
            raise DimensionMismatchError(service.vector_index.dimension, dimension)

        prepared = service._restore_entries(data)
        with service._lock.write():
            for entry in prepared:
                service._insert(entry)
        logger.info("Restored %s documents from snapshot", len(prepared))
        return service

    @classmethod
    def load_snapshot(
        cls,
        path: Any,
        settings: Optional[RetrievalSettings] = None,
        *,
        embedder: Optional[Embedder] = None,
        selector: Optional[DocumentSelectionService] = None,
    ) -> "RetrievalService":
        return cls.from_snapshot(read_snapshot(path), settings, embedder=embedder, selector=selector)

    def close(self) -> None:
        if self.selector is not None:
            self.selector.close()

    # ------------------------------------------------------------------
    # Internals (callers hold the appropriate lock)
    # ------------------------------------------------------------------
    def _prepare_item(self, item: Mapping[str, Any]) -> _PreparedDocument:
        return self._prepare(
            item.get("title", ""),
            item.get("content", ""),
            item.get("metadata"),
            document_id=item.get("id"),
        )

    def _prepare(
        self,
        title: str,
        content: str,
        metadata: Optional[Mapping[str, Any]],
        *,
        document_id: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ) -> _PreparedDocument:
        validate_document(
            title,
            content,
            min_chars=self.settings.min_content_chars,
            max_chars=self.settings.max_content_chars,
        )
        merged: Dict[str, Any] = {"auto": extract_metadata(content)}
        merged.update(normalize_metadata(metadata))

        document = Document(
            id=document_id or uuid.uuid4().hex,
            title=title.strip(),
            content=content,
            metadata=merged,
        )
        if created_at is not None:
            document.created_at = created_at
        return self._chunk_and_embed(document)

    def _chunk_and_embed(self, document: Document) -> _PreparedDocument:
        chunks = chunk_document(
            document.content,
            self.settings.chunk_size,
            self.settings.chunk_overlap,
            document_id=document.id,
        )
        embeddings = list(self.embedder.embed([chunk.content for chunk in chunks]))
        for embedding in embeddings:
            if len(embedding) != self.vector_index.dimension:
                raise DimensionMismatchError(self.vector_index.dimension, len(embedding))
        logger.debug("Prepared document %s: %s chunks", document.id, len(chunks))
        return _PreparedDocument(document=document, chunks=chunks, embeddings=embeddings)

    def _insert(self, prepared: _PreparedDocument) -> None:
        self._discard(prepared.document.id)
        self.store.put(prepared.document, prepared.chunks)
        for chunk, embedding in zip(prepared.chunks, prepared.embeddings):
            self.bm25.add(chunk.key, chunk.content)
            self.vector_index.upsert(chunk.key, embedding)

    def _discard(self, document_id: str) -> bool:
        removed = self.store.remove(document_id)
        if removed is None:
            return False
        _, chunks = removed
        for chunk in chunks:
            self.bm25.remove(chunk.key)
            self.vector_index.remove(chunk.key)
        return True

    def _reset_indices(self) -> None:
        self.store.reset()
        self.bm25.clear()
        self.vector_index.clear()

    def _vector_scores(self, query: str) -> Optional[Dict[str, float]]:
        if not self.embedder.semantic or not len(self.vector_index):
            return None
        query_embedding = list(self.embedder.embed([query]))[0]
        return self.vector_index.similarities(query_embedding)

    def _apply_selection(
        self, query: str, ranked: List[SearchResult], top_k: int
    ) -> List[SearchResult]:
        if self.selector is None:
            return ranked
        candidates = [result for result in ranked if result.score > 0]
        candidates = candidates[: self.settings.selection_candidates]
        if not candidates:
            return ranked

        selection = self.selector.select(query, candidates, top_k)
        if not selection.ok:
            return ranked
        chosen = set(selection.document_ids)
        return [result for result in ranked if result.document.id in chosen]

    def _restore_entries(self, data: Mapping[str, Any]) -> List[_PreparedDocument]:
        dimension = self.vector_index.dimension
        try:
            grouped: Dict[str, List[Dict[str, Any]]] = {}
            for raw_chunk in data["chunks"]:
                grouped.setdefault(raw_chunk["document_id"], []).append(raw_chunk)

            prepared: List[_PreparedDocument] = []
            for raw in data["documents"]:
                document = Document(
                    id=raw["id"],
                    title=raw["title"],
                    content=raw["content"],
                    metadata=dict(raw.get("metadata") or {}),
                    created_at=datetime.fromisoformat(raw["created_at"]),
                )
                chunks: List[Chunk] = []
                embeddings: List[Sequence[float]] = []
                for raw_chunk in grouped.get(document.id, []):
                    embedding = raw_chunk["embedding"]
                    if embedding is None:
                        raise SnapshotError(f"Chunk {raw_chunk['key']} has no embedding")
                    if len(embedding) != dimension:
                        raise DimensionMismatchError(dimension, len(embedding))
                    chunks.append(
                        Chunk(
                            id=raw_chunk["id"],
                            document_id=document.id,
                            content=raw_chunk["content"],
                            start_index=int(raw_chunk["start_index"]),
                            word_count=int(raw_chunk["word_count"]),
                        )
                    )
                    embeddings.append([float(value) for value in embedding])
                prepared.append(_PreparedDocument(document=document, chunks=chunks, embeddings=embeddings))
        except (KeyError, TypeError, ValueError) as exc:
            raise SnapshotError(f"Malformed snapshot: {exc}") from exc
        return prepared


__all__ = ["RetrievalService"]
