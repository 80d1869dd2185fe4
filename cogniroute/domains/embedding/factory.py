"""
Embedding provider factory.
"""

from __future__ import annotations

from cogniroute.config import Settings, get_settings

from .contracts import EmbeddingProvider
from .hashing import HashEmbeddingProvider
from .sentence import SentenceTransformerProvider

__all__ = ["create_embedding_provider"]


def create_embedding_provider(settings: Settings | None = None) -> EmbeddingProvider:
    """Build the embedding provider named by ``settings.embedding_provider``."""
    settings = settings or get_settings()
    name = settings.embedding_provider.lower()

    if name == "hash":
        return HashEmbeddingProvider(dimension=settings.embedding_dimension)
    if name in ("sentence-transformers", "sentence_transformers"):
        return SentenceTransformerProvider(
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
        )

    raise ValueError(f"Unknown embedding provider: {settings.embedding_provider}")
