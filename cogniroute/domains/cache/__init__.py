"""
Cache Domain - Semantic response caching.

This domain handles:
- Similarity-keyed lookup of previous responses
- TTL expiry and LRU eviction
- Hit/miss and cost-saved statistics
- Snapshot export and import
"""

from .contracts import ResponseCache
from .models import (
    CacheEntry,
    CacheLookup,
    CacheMetadata,
    CacheStatistics,
    InvalidationCriteria,
)
from .semantic_cache import SemanticCache

__all__ = [
    # Contracts
    "ResponseCache",
    # Models
    "CacheEntry",
    "CacheLookup",
    "CacheMetadata",
    "CacheStatistics",
    "InvalidationCriteria",
    # Implementations
    "SemanticCache",
]
