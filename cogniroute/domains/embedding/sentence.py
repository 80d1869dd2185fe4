"""
Sentence Transformer Provider - Local semantic embeddings.

Models: all-MiniLM-L6-v2 (384d), all-mpnet-base-v2 (768d), etc.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

from .similarity import cosine_similarity

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer

logger = logging.getLogger(__name__)

__all__ = ["SentenceTransformerProvider"]


class SentenceTransformerProvider:
    """
    Embeddings via sentence-transformers.

    The model is loaded on first use; encoding runs in a worker thread.
    """

    def __init__(
        self,
        model: str = "all-MiniLM-L6-v2",
        dimension: int = 384,
    ) -> None:
        self._model_name = model
        self._dimension = dimension
        self._model: SentenceTransformer | None = None

    def _get_model(self) -> SentenceTransformer:
        """Get or load the model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name)
            self._dimension = self._model.get_sentence_embedding_dimension() or self._dimension
            logger.info(
                "Loaded embedding model %s (dimension=%d)",
                self._model_name,
                self._dimension,
            )
        return self._model

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name

    async def embed(self, text: str) -> list[float]:
        model = self._get_model()
        vectors = await asyncio.to_thread(
            model.encode,
            [text],
            show_progress_bar=False,
            normalize_embeddings=True,
        )
        return [float(x) for x in vectors[0]]

    def similarity(self, a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)
