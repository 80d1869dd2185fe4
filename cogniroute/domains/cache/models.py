"""
Cache Models - Data types for the semantic cache domain.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field


class CacheMetadata(BaseModel):
    """Provenance of a cached response."""

    agents_used: list[str] = Field(default_factory=list)
    processing_time_ms: float = 0.0
    complexity: str = "medium"
    domain: str = "general"
    original_cost: float = Field(default=0.0, ge=0.0)
    cost_saved: float = Field(default=0.0, ge=0.0)
    extra: dict[str, Any] = Field(default_factory=dict)


class CacheEntry(BaseModel):
    """A cached (query, response) pair."""

    id: str
    query: str
    query_embedding: list[float]
    response: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    metadata: CacheMetadata = Field(default_factory=CacheMetadata)
    created_at: datetime
    last_accessed_at: datetime
    access_count: int = Field(default=0, ge=0)
    ttl_ms: int = Field(gt=0)
    tags: list[str] = Field(default_factory=list)

    def is_expired(self, now: datetime) -> bool:
        """Expired once strictly more than ``ttl_ms`` has passed since creation."""
        return now - self.created_at > timedelta(milliseconds=self.ttl_ms)


class CacheLookup(BaseModel):
    """Result of a cache ``get``."""

    found: bool
    response: str | None = None
    confidence: float | None = None
    similarity: float | None = None
    cost_saved: float | None = None
    entry_id: str | None = None
    metadata: CacheMetadata | None = None


class CacheStatistics(BaseModel):
    """Running cache counters."""

    total_entries: int = 0
    hit_count: int = 0
    miss_count: int = 0
    hit_rate: float = 0.0
    total_cost_saved: float = 0.0
    average_retrieval_time_ms: float = 0.0
    cache_size: int = 0
    eviction_count: int = 0


class InvalidationCriteria(BaseModel):
    """Entries matching the domain OR sharing any tag are removed."""

    domain: str | None = None
    tags: list[str] = Field(default_factory=list)

    def matches(self, entry: CacheEntry) -> bool:
        if self.domain is not None and entry.metadata.domain == self.domain:
            return True
        return any(tag in entry.tags for tag in self.tags)
