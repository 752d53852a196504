"""Optional external document selection with a strict parse-or-reject boundary.

A language model may be asked which locally ranked documents are the most
relevant. Its answer is trusted only when it is a JSON array made entirely of
known document ids; anything else, as well as timeouts and transport errors,
yields a rejected :class:`SelectionResult` so the caller keeps the local
ranking.
"""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Protocol, Sequence, Tuple

from knowledge_retrieval.core.models import SearchResult
from knowledge_retrieval.exceptions import ExternalProviderError

logger = logging.getLogger(__name__)


class SelectionProvider(Protocol):
    """External collaborator returning raw model text for a selection request."""

    def select_documents(
        self, query: str, candidates: Sequence[Tuple[str, str]], top_k: int
    ) -> str:
        """Return the model's raw answer, expected to be a JSON array of ids."""


@dataclass(frozen=True)
class SelectionResult:
    document_ids: Tuple[str, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def accepted(cls, document_ids: Sequence[str]) -> "SelectionResult":
        return cls(document_ids=tuple(document_ids))

    @classmethod
    def rejected(cls, reason: str) -> "SelectionResult":
        return cls(error=reason)


def parse_selection(raw: object, known_ids: AbstractSet[str]) -> SelectionResult:
    """Accept ``raw`` only if it is a non-empty JSON array of known document ids."""

    if not isinstance(raw, str):
        return SelectionResult.rejected("selection response is not text")
    try:
        payload = json.loads(raw.strip())
    except ValueError:
        return SelectionResult.rejected("selection response is not valid JSON")
    if not isinstance(payload, list):
        return SelectionResult.rejected("selection response is not a JSON array")
    if not payload:
        return SelectionResult.rejected("selection response is empty")

    selected: List[str] = []
    for item in payload:
        if not isinstance(item, str):
            return SelectionResult.rejected(f"selection contains a non-string id: {item!r}")
        if item not in known_ids:
            return SelectionResult.rejected(f"selection contains an unknown id: {item!r}")
        if item not in selected:
            selected.append(item)
    return SelectionResult.accepted(selected)


class DocumentSelectionService:
    """Run the selection provider under a hard deadline and validate its answer."""

    def __init__(self, provider: SelectionProvider, *, timeout_s: float = 8.0) -> None:
        self.provider = provider
        self.timeout_s = timeout_s
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="doc-selection")

    def select(
        self, query: str, candidates: Sequence[SearchResult], top_k: int
    ) -> SelectionResult:
        if not candidates:
            return SelectionResult.rejected("no candidates to select from")

        offered = [
            (result.document.id, f"{result.document.title}\n\n{result.chunk.content}")
            for result in candidates
        ]
        try:
            future = self._executor.submit(self.provider.select_documents, query, offered, top_k)
        except RuntimeError as exc:
            # Executor already shut down by close().
            return self._fallback(f"selection worker unavailable: {exc}")
        try:
            raw = future.result(timeout=self.timeout_s)
        except FutureTimeoutError:
            future.cancel()
            return self._fallback(f"selection timed out after {self.timeout_s:.1f}s")
        except ExternalProviderError as exc:
            return self._fallback(f"selection provider failed: {exc}")
        except Exception as exc:
            error = ExternalProviderError(f"selection provider raised {type(exc).__name__}: {exc}")
            logger.debug("Selection provider error", exc_info=exc)
            return self._fallback(str(error))

        result = parse_selection(raw, {document_id for document_id, _ in offered})
        if not result.ok:
            return self._fallback(result.error or "invalid selection")
        logger.debug("External selection kept %s of %s candidates", len(result.document_ids), len(offered))
        return result

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def _fallback(reason: str) -> SelectionResult:
        logger.warning("Falling back to local ranking: %s", reason)
        return SelectionResult.rejected(reason)


__all__ = [
    "DocumentSelectionService",
    "SelectionProvider",
    "SelectionResult",
    "parse_selection",
]
