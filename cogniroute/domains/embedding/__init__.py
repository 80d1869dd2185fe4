"""
Embedding Domain - Text to vector conversion and similarity.

This domain handles:
- Pluggable embedding providers
- Cosine similarity scoring
"""

from .contracts import EmbeddingProvider
from .factory import create_embedding_provider
from .hashing import HashEmbeddingProvider
from .sentence import SentenceTransformerProvider
from .similarity import cosine_similarity

__all__ = [
    # Contracts
    "EmbeddingProvider",
    # Implementations
    "HashEmbeddingProvider",
    "SentenceTransformerProvider",
    "create_embedding_provider",
    # Helpers
    "cosine_similarity",
]
