"""
Cache Contracts - Interfaces for the semantic cache domain.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from .models import CacheEntry, CacheLookup, CacheMetadata, CacheStatistics


@runtime_checkable
class ResponseCache(Protocol):
    """Contract for similarity-keyed response caching."""

    async def get(self, query: str, threshold: float | None = None) -> CacheLookup:
        """
        Find the closest cached response.

        Args:
            query: Incoming query text
            threshold: Optional stricter similarity threshold

        Returns:
            Lookup result; ``found`` is False on miss or cache failure
        """
        ...

    async def set(
        self,
        query: str,
        response: str,
        metadata: CacheMetadata | dict[str, Any],
        confidence: float = 1.0,
        ttl_ms: int | None = None,
        tags: list[str] | None = None,
    ) -> CacheEntry | None:
        """Store a response. Returns None when the write was dropped."""
        ...

    async def invalidate(
        self,
        domain: str | None = None,
        tags: list[str] | None = None,
    ) -> int:
        """Remove entries by domain or tag. Returns the number removed."""
        ...

    def statistics(self) -> CacheStatistics:
        """Snapshot of the running counters."""
        ...

    async def clear(self) -> None:
        """Remove every entry and reset statistics."""
        ...
