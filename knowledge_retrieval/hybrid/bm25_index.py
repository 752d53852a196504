from __future__ import annotations

from collections import Counter
from typing import Dict, Sequence

from .tokenizer import tokenize

DEFAULT_K1 = 1.5
DEFAULT_B = 0.75


def _term_score(tf: int, doc_len: int, avg_len: float, k1: float, b: float) -> float:
    if tf == 0:
        return 0.0
    avg = avg_len if avg_len > 0 else 1.0
    denom = tf + k1 * (1 - b + b * (doc_len / avg))
    return (tf * (k1 + 1)) / denom if denom > 0 else 0.0


def bm25_score(
    query: str,
    chunk_content: str,
    avg_chunk_length: float,
    k1: float = DEFAULT_K1,
    b: float = DEFAULT_B,
) -> float:
    """Length-normalized term frequency score of ``chunk_content`` for ``query``.

    There is no IDF factor: corpora here are small and change constantly.
    Repeated query terms contribute once per occurrence.
    """

    chunk_tokens = tokenize(chunk_content)
    term_freq = Counter(chunk_tokens)
    doc_len = len(chunk_tokens)
    return sum(
        _term_score(term_freq.get(term, 0), doc_len, avg_chunk_length, k1, b)
        for term in tokenize(query)
    )


class BM25Index:
    """Per-chunk term frequency cache with a live average chunk length."""

    def __init__(self, *, k1: float = DEFAULT_K1, b: float = DEFAULT_B) -> None:
        self.k1 = k1
        self.b = b
        self._term_freqs: Dict[str, Counter[str]] = {}
        self._doc_lengths: Dict[str, int] = {}
        self._total_doc_len = 0
        self._avg_doc_len = 0.0

    def add(self, key: str, text: str) -> None:
        if key in self._doc_lengths:
            self.remove(key)
        tokens = tokenize(text)
        self._term_freqs[key] = Counter(tokens)
        self._doc_lengths[key] = len(tokens)
        self._total_doc_len += len(tokens)
        self._refresh_average()

    def remove(self, key: str) -> bool:
        length = self._doc_lengths.pop(key, None)
        if length is None:
            return False
        self._term_freqs.pop(key, None)
        self._total_doc_len -= length
        self._refresh_average()
        return True

    def score(self, query_tokens: Sequence[str], key: str) -> float:
        term_freq = self._term_freqs.get(key)
        if term_freq is None:
            return 0.0
        doc_len = self._doc_lengths[key]
        return sum(
            _term_score(term_freq.get(term, 0), doc_len, self._avg_doc_len, self.k1, self.b)
            for term in query_tokens
        )

    def score_text(self, query_tokens: Sequence[str], text: str) -> float:
        """Score text that is not in the index against the current average length."""

        tokens = tokenize(text)
        term_freq = Counter(tokens)
        avg_len = self._avg_doc_len or float(len(tokens))
        return sum(
            _term_score(term_freq.get(term, 0), len(tokens), avg_len, self.k1, self.b)
            for term in query_tokens
        )

    def tokens_for(self, key: str) -> Counter[str]:
        return self._term_freqs.get(key, Counter())

    def length_of(self, key: str) -> int:
        return self._doc_lengths.get(key, 0)

    @property
    def avg_chunk_length(self) -> float:
        return self._avg_doc_len

    @property
    def total_tokens(self) -> int:
        return self._total_doc_len

    def clear(self) -> None:
        self._term_freqs.clear()
        self._doc_lengths.clear()
        self._total_doc_len = 0
        self._avg_doc_len = 0.0

    def _refresh_average(self) -> None:
        count = len(self._doc_lengths)
        self._avg_doc_len = self._total_doc_len / count if count else 0.0

    def __len__(self) -> int:
        return len(self._doc_lengths)

    def __contains__(self, key: object) -> bool:
        return key in self._doc_lengths


__all__ = ["BM25Index", "DEFAULT_B", "DEFAULT_K1", "bm25_score"]
