"""
Embedding Contracts - Interfaces for embedding domain.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Contract for text embedding providers."""

    @property
    def dimension(self) -> int:
        """Fixed output vector length."""
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the model producing the vectors."""
        ...

    async def embed(self, text: str) -> list[float]:
        """
        Embed a single text.

        Args:
            text: Input text

        Returns:
            Vector of length ``dimension``
        """
        ...

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        """
        Score two vectors.

        Returns:
            Similarity in [-1, 1]
        """
        ...
