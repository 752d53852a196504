import json

import pytest
import responses

from knowledge_retrieval.providers.clients import (
    AnthropicSelectionClient,
    UnauthorizedError,
    UpstreamError,
    build_selection_prompt,
)

API_URL = "https://api.anthropic.test/v1/messages"


def _client() -> AnthropicSelectionClient:
    return AnthropicSelectionClient(
        "test-key", model="claude-test", base_url="https://api.anthropic.test", timeout=1.0
    )


def test_prompt_lists_truncated_candidates():
    prompt = build_selection_prompt("vector search", [("a", "x" * 500), ("b", "short text")], 2)

    assert 'Given this query: "vector search"' in prompt
    assert "Find the 2 most relevant documents" in prompt
    assert f"[a] {'x' * 200}..." in prompt
    assert "x" * 201 not in prompt
    assert "[b] short text..." in prompt
    assert prompt.endswith('Output format: ["id1", "id2", "id3"]')


@responses.activate
def test_select_documents_returns_first_text_block():
    responses.add(
        responses.POST,
        API_URL,
        json={"content": [{"type": "text", "text": '["b", "a"]'}]},
        status=200,
    )

    reply = _client().select_documents("vector search", [("a", "Alpha"), ("b", "Beta")], 2)

    assert reply == '["b", "a"]'
    request = responses.calls[0].request
    assert request.headers["x-api-key"] == "test-key"
    assert request.headers["anthropic-version"] == "2023-06-01"
    body = json.loads(request.body)
    assert body["model"] == "claude-test"
    assert body["messages"][0]["role"] == "user"
    assert "[a] Alpha..." in body["messages"][0]["content"]


@responses.activate
def test_response_without_text_block_is_upstream_error():
    responses.add(responses.POST, API_URL, json={"content": []}, status=200)

    with pytest.raises(UpstreamError):
        _client().select_documents("query", [("a", "Alpha")], 1)


@responses.activate
def test_unauthorized_key_is_not_retried():
    responses.add(responses.POST, API_URL, json={"error": "invalid x-api-key"}, status=401)

    with pytest.raises(UnauthorizedError):
        _client().select_documents("query", [("a", "Alpha")], 1)

    assert len(responses.calls) == 1
