"""
Hash Embedding Provider - Deterministic, dependency-light embeddings.

Suitable for tests and offline runs. Only identical text (ignoring case)
is guaranteed to be similar; use SentenceTransformerProvider for real
semantic matching.
"""

from __future__ import annotations

import hashlib
from typing import Sequence

from .similarity import cosine_similarity

__all__ = ["HashEmbeddingProvider"]


class HashEmbeddingProvider:
    """
    SHA-256 based embedding.

    Byte ``i % 32`` of the digest of the lower-cased text is mapped to
    ``(b - 128) / 128`` for every output position.

    Example:
        >>> provider = HashEmbeddingProvider()
        >>> vector = await provider.embed("What is 2+2?")
        >>> len(vector)
        384
    """

    def __init__(self, dimension: int = 384) -> None:
        if dimension < 1:
            raise ValueError("dimension must be positive")
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return "hash-sha256"

    async def embed(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.lower().encode("utf-8")).digest()
        return [(digest[i % len(digest)] - 128) / 128 for i in range(self._dimension)]

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)
