from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from .models import Chunk, Document


@dataclass
class DocumentStore:
    """In-memory arena of documents and their derived chunks, keyed by document id.

    Not thread-safe on its own; the retrieval service serializes writers.
    """

    documents: Dict[str, Document] = field(default_factory=dict)
    chunks: Dict[str, Tuple[Chunk, ...]] = field(default_factory=dict)

    def put(self, document: Document, chunks: List[Chunk]) -> Optional[Document]:
        """Insert or wholesale-replace ``document``; return the replaced record if any."""

        previous = self.documents.get(document.id)
        self.documents[document.id] = document
        self.chunks[document.id] = tuple(chunks)
        return previous

    def remove(self, document_id: str) -> Optional[Tuple[Document, Tuple[Chunk, ...]]]:
        document = self.documents.pop(document_id, None)
        if document is None:
            return None
        return document, self.chunks.pop(document_id, ())

    def get(self, document_id: str) -> Optional[Document]:
        return self.documents.get(document_id)

    def chunks_for(self, document_id: str) -> Tuple[Chunk, ...]:
        return self.chunks.get(document_id, ())

    def items(self) -> Iterator[Tuple[Document, Tuple[Chunk, ...]]]:
        for document_id, document in self.documents.items():
            yield document, self.chunks.get(document_id, ())

    def all_chunks(self) -> Iterator[Chunk]:
        for chunks in self.chunks.values():
            yield from chunks

    def reset(self) -> None:
        self.documents.clear()
        self.chunks.clear()

    def __len__(self) -> int:
        return len(self.documents)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self.documents
