import numpy as np
import pytest

from knowledge_retrieval.hybrid.embeddings import HashingEmbedder, normalize


def test_hashing_embedder_is_deterministic():
    first = HashingEmbedder().embed(["Neural networks learn representations."])[0]
    second = HashingEmbedder().embed(["Neural networks learn representations."])[0]

    assert first == second


def test_embeddings_have_unit_length_and_configured_dimension():
    embedder = HashingEmbedder(dimension=64)

    vectors = embedder.embed(["retrieval augmented generation", "bm25 keyword scoring"])

    for vector in vectors:
        assert len(vector) == 64
        assert np.linalg.norm(vector) == pytest.approx(1.0)


def test_text_without_tokens_embeds_to_zero_vector():
    vector = HashingEmbedder(dimension=16).embed_text("a an of")

    assert vector == [0.0] * 16


def test_embed_rejects_a_bare_string():
    embedder = HashingEmbedder(dimension=16)

    with pytest.raises(TypeError, match="embed_text"):
        embedder.embed("machine learning")

    assert embedder.embed(["machine learning"]) == [embedder.embed_text("machine learning")]


def test_embedder_is_flagged_non_semantic():
    assert HashingEmbedder.semantic is False


def test_normalize_leaves_zero_vector_untouched():
    assert normalize([0.0, 0.0]).tolist() == [0.0, 0.0]
    assert normalize([3.0, 4.0]).tolist() == pytest.approx([0.6, 0.8])


def test_invalid_dimension_rejected():
    with pytest.raises(ValueError):
        HashingEmbedder(dimension=0)
