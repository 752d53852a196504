"""Anthropic Messages API client used for optional document selection."""

from __future__ import annotations

from typing import Any, Optional, Sequence, Tuple

import requests

from .base import BaseHttpClient, UpstreamError

ANTHROPIC_VERSION = "2023-06-01"
SNIPPET_CHARS = 200


def build_selection_prompt(query: str, candidates: Sequence[Tuple[str, str]], top_k: int) -> str:
    """Prompt asking the model for the ``top_k`` most relevant candidate ids as a JSON array."""

    listing = "\n\n".join(
        f"[{document_id}] {text[:SNIPPET_CHARS]}..." for document_id, text in candidates
    )
    return (
        f'Given this query: "{query}"\n\n'
        f"Find the {top_k} most relevant documents and return ONLY their IDs as a JSON array.\n\n"
        f"Documents:\n{listing}\n\n"
        'Output format: ["id1", "id2", "id3"]'
    )


class AnthropicSelectionClient(BaseHttpClient):
    """Ask a Claude model which of the locally ranked documents matter most.

    Returns the raw text of the first content block; validating that text is
    the caller's job.
    """

    BASE_URL = "https://api.anthropic.com"

    def __init__(
        self,
        api_key: str,
        *,
        model: str = "claude-3-5-sonnet-20241022",
        max_tokens: int = 256,
        session: Optional[requests.Session] = None,
        base_url: Optional[str] = None,
        timeout: float = 8.0,
    ) -> None:
        super().__init__(session=session, base_url=base_url, timeout=timeout)
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    def select_documents(
        self, query: str, candidates: Sequence[Tuple[str, str]], top_k: int
    ) -> str:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "user", "content": build_selection_prompt(query, candidates, top_k)}
            ],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        data = self._post_json("/v1/messages", payload, headers=headers)
        return self._first_text_block(data)

    @staticmethod
    def _first_text_block(data: Any) -> str:
        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise UpstreamError("Response has no content blocks")
        for block in blocks:
            if isinstance(block, dict) and block.get("type", "text") == "text":
                text = block.get("text")
                if isinstance(text, str):
                    return text
        raise UpstreamError("Response has no text content block")


__all__ = ["AnthropicSelectionClient", "build_selection_prompt"]
