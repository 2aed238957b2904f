"""Tests for the embedding helpers."""

import pytest

from flf_cli.embeddings import (
    HashEmbeddingModel,
    chunk_text_for_embedding,
    cosine_similarity,
    get_embedder,
)


def test_hash_embedder_is_deterministic_and_normalised():
    model = HashEmbeddingModel(dim=64)
    first = model.embed_text("load the config file")
    assert first == model.embed_text("load the config file")
    assert len(first) == 64
    assert sum(v * v for v in first) == pytest.approx(1.0)


def test_subtokens_bring_identifiers_closer():
    model = HashEmbeddingModel()
    query = model.embed_text("config")
    near = model.embed_text("def loadConfig(path): ...")
    far = model.embed_text("def renderTemplate(page): ...")
    assert cosine_similarity(query, near) > cosine_similarity(query, far)


def test_blank_text_embeds_to_zero_vector():
    assert not any(HashEmbeddingModel().embed_text("   "))


def test_embed_documents_matches_embed_text():
    model = HashEmbeddingModel()
    texts = ["alpha", "beta_gamma"]
    assert model.embed_documents(texts) == [model.embed_text(t) for t in texts]


def test_cosine_similarity_edge_cases():
    assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([], [1.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == 0.0
    assert cosine_similarity([1.0], [1.0, 0.0]) == 0.0


def test_get_embedder():
    assert isinstance(get_embedder("hash"), HashEmbeddingModel)
    with pytest.raises(ValueError, match="Unknown embedding model"):
        get_embedder("no-such-model")


def test_chunk_text_for_embedding():
    text = chunk_text_for_embedding("add", "Calculator", "Add two numbers.", "def add(a, b): ...")
    assert text.splitlines()[0] == "Calculator.add"
    assert "Add two numbers." in text
    assert chunk_text_for_embedding("f", "", "", "def f(): pass") == "f\ndef f(): pass"
