"""Hybrid lexical + vector retrieval components."""

from .bm25_index import BM25Index, bm25_score
from .chunker import chunk_document
from .embeddings import Embedder, HashingEmbedder, normalize
from .ranker import HybridRanker, calculate_confidence, heuristic_semantic_score
from .tokenizer import split_words, tokenize
from .vector_index import VectorIndex, cosine_similarity

__all__ = [
    "BM25Index",
    "Embedder",
    "HashingEmbedder",
    "HybridRanker",
    "VectorIndex",
    "bm25_score",
    "calculate_confidence",
    "chunk_document",
    "cosine_similarity",
    "heuristic_semantic_score",
    "normalize",
    "split_words",
    "tokenize",
]
