"""
Tests for embedding providers and similarity helpers.
"""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from cogniroute.config import Settings

from .contracts import EmbeddingProvider
from .factory import create_embedding_provider
from .hashing import HashEmbeddingProvider
from .sentence import SentenceTransformerProvider
from .similarity import cosine_similarity


# --- cosine_similarity Tests ---


def test_cosine_identical_vectors() -> None:
    """Test identical vectors score 1.0."""
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)


def test_cosine_orthogonal_vectors() -> None:
    """Test orthogonal vectors score 0.0."""
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)


def test_cosine_opposite_vectors() -> None:
    """Test opposite vectors score -1.0."""
    assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)


def test_cosine_zero_vector_is_zero() -> None:
    """Test a zero vector on either side gives 0.0 instead of dividing by zero."""
    assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
    assert cosine_similarity([1.0, 2.0], [0.0, 0.0]) == 0.0


def test_cosine_dimension_mismatch() -> None:
    """Test vectors of different length are rejected."""
    with pytest.raises(ValueError, match="Dimension mismatch"):
        cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])


# --- HashEmbeddingProvider Tests ---


async def test_hash_embedding_dimension() -> None:
    """Test hash embeddings have the configured length."""
    provider = HashEmbeddingProvider(dimension=384)
    vector = await provider.embed("What is 2+2?")
    assert len(vector) == 384
    assert all(-1.0 <= v < 1.0 for v in vector)


async def test_hash_embedding_is_deterministic_and_case_insensitive() -> None:
    """Test same text (ignoring case) gives the same vector."""
    provider = HashEmbeddingProvider()
    a = await provider.embed("What is 2+2?")
    b = await provider.embed("WHAT IS 2+2?")
    assert a == b
    assert provider.similarity(a, b) == pytest.approx(1.0)


async def test_hash_embedding_repeats_digest() -> None:
    """Test the 32-byte digest pattern repeats across the vector."""
    provider = HashEmbeddingProvider(dimension=64)
    vector = await provider.embed("repeat")
    assert vector[:32] == vector[32:]


async def test_hash_embedding_different_text() -> None:
    """Test different text yields a different vector."""
    provider = HashEmbeddingProvider()
    a = await provider.embed("congestion pricing")
    b = await provider.embed("quarterly earnings")
    assert a != b
    assert provider.similarity(a, b) < 0.85


def test_hash_embedding_invalid_dimension() -> None:
    """Test non-positive dimensions are rejected."""
    with pytest.raises(ValueError):
        HashEmbeddingProvider(dimension=0)


def test_hash_provider_satisfies_protocol() -> None:
    """Test HashEmbeddingProvider implements EmbeddingProvider."""
    assert isinstance(HashEmbeddingProvider(), EmbeddingProvider)


# --- SentenceTransformerProvider Tests ---


async def test_sentence_provider_lazy_loads_model() -> None:
    """Test the model is only loaded on first embed."""
    fake_model = MagicMock()
    fake_model.get_sentence_embedding_dimension.return_value = 3
    fake_model.encode.return_value = np.array([[0.1, 0.2, 0.3]])

    provider = SentenceTransformerProvider(model="tiny-model", dimension=384)
    assert provider._model is None

    fake_module = MagicMock()
    fake_module.SentenceTransformer.return_value = fake_model
    ctor = fake_module.SentenceTransformer

    with patch.dict(sys.modules, {"sentence_transformers": fake_module}):
        vector = await provider.embed("hello")
        await provider.embed("again")

    ctor.assert_called_once_with("tiny-model")
    assert vector == pytest.approx([0.1, 0.2, 0.3])
    assert provider.dimension == 3
    assert fake_model.encode.call_count == 2


def test_sentence_provider_satisfies_protocol() -> None:
    """Test SentenceTransformerProvider implements EmbeddingProvider."""
    assert isinstance(SentenceTransformerProvider(), EmbeddingProvider)


# --- Factory Tests ---


def test_factory_hash_provider() -> None:
    """Test the factory builds the hash provider by default."""
    provider = create_embedding_provider(Settings(embedding_provider="hash", embedding_dimension=128))
    assert isinstance(provider, HashEmbeddingProvider)
    assert provider.dimension == 128


def test_factory_sentence_provider() -> None:
    """Test the factory builds a sentence-transformers provider."""
    provider = create_embedding_provider(
        Settings(embedding_provider="sentence-transformers", embedding_model="all-mpnet-base-v2")
    )
    assert isinstance(provider, SentenceTransformerProvider)
    assert provider.model_name == "all-mpnet-base-v2"


def test_factory_unknown_provider() -> None:
    """Test unknown provider names are rejected."""
    with pytest.raises(ValueError, match="Unknown embedding provider"):
        create_embedding_provider(Settings(embedding_provider="word2vec"))
