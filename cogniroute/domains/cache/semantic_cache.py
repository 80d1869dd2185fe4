"""
Semantic Cache - Similarity-keyed response cache with TTL and LRU eviction.

A lookup embeds the query and returns the stored response whose query
embedding is most similar, provided the score is strictly above the
threshold. Failures inside the cache never reach the caller: a failed
read is a miss and a failed write is dropped.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
import math
import time
from collections.abc import Awaitable, Callable, Iterable
from pathlib import Path
from typing import Any

from cogniroute.config import (
    ArtifactManifest,
    CacheError,
    ErrorCode,
    Settings,
    compute_checksum,
    create_cache_manifest,
)
from cogniroute.domains.embedding import EmbeddingProvider
from cogniroute.domains.runtime import Clock, IdFactory, SystemClock, uuid_ids

from .models import (
    CacheEntry,
    CacheLookup,
    CacheMetadata,
    CacheStatistics,
    InvalidationCriteria,
)

logger = logging.getLogger(__name__)

__all__ = ["SemanticCache", "SNAPSHOT_ENTRIES_FILE", "SNAPSHOT_MANIFEST_FILE"]

SNAPSHOT_ENTRIES_FILE = "entries.json"
SNAPSHOT_MANIFEST_FILE = "manifest.json"

EntryHook = Callable[[CacheEntry], Awaitable[None] | None]


class SemanticCache:
    """
    In-memory semantic cache.

    Features:
    - Cosine-similarity lookup with a configurable threshold
    - Per-entry TTL with opportunistic and periodic expiry
    - LRU eviction of the oldest 10% when full
    - Running hit/miss/cost statistics
    - Export/import and on-disk snapshots with a checksummed manifest

    All mutation happens under a single asyncio.Lock. Embeddings are
    computed before the lock is taken.
    """

    def __init__(
        self,
        embedder: EmbeddingProvider,
        max_size: int = 10000,
        default_ttl_ms: int = 24 * 60 * 60 * 1000,
        similarity_threshold: float = 0.85,
        cost_savings_ratio: float = 0.41,
        sweep_interval_seconds: float = 3600.0,
        clock: Clock | None = None,
        id_factory: IdFactory | None = None,
        on_entry_written: EntryHook | None = None,
    ) -> None:
        """
        Initialize cache.

        Args:
            embedder: Provider used to embed queries
            max_size: Maximum number of live entries
            default_ttl_ms: TTL applied when ``set`` gets none
            similarity_threshold: Minimum (exclusive) similarity for a hit
            cost_savings_ratio: Fraction of the original cost credited per hit
            sweep_interval_seconds: Period of the background expiry sweep
            clock: Time source (defaults to wall clock)
            id_factory: Entry ID source (defaults to UUIDs)
            on_entry_written: Hook called with every stored entry
        """
        if max_size < 1:
            raise ValueError("max_size must be positive")
        if default_ttl_ms <= 0:
            raise ValueError("default_ttl_ms must be positive")

        self._embedder = embedder
        self._max_size = max_size
        self._default_ttl_ms = default_ttl_ms
        self._threshold = similarity_threshold
        self._savings_ratio = cost_savings_ratio
        self._sweep_interval = sweep_interval_seconds
        self._clock = clock or SystemClock()
        self._new_id = id_factory or uuid_ids("cache")
        self._on_entry_written = on_entry_written

        self._entries: dict[str, CacheEntry] = {}
        self._dimension: int | None = None
        self._stats = CacheStatistics()
        self._lock = asyncio.Lock()
        self._sweep_task: asyncio.Task[None] | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        embedder: EmbeddingProvider,
        **kwargs: Any,
    ) -> SemanticCache:
        """Build a cache from application settings."""
        return cls(
            embedder,
            max_size=settings.cache_max_size,
            default_ttl_ms=settings.cache_default_ttl_ms,
            similarity_threshold=settings.cache_similarity_threshold,
            cost_savings_ratio=settings.cache_cost_savings_ratio,
            sweep_interval_seconds=settings.cache_sweep_interval_seconds,
            **kwargs,
        )

    @property
    def similarity_threshold(self) -> float:
        return self._threshold

    def __len__(self) -> int:
        return len(self._entries)

    # --- Lookup ---

    async def get(self, query: str, threshold: float | None = None) -> CacheLookup:
        """
        Return the best cached match for ``query``.

        ``threshold`` can only raise the bar: the effective threshold is
        the larger of it and the configured one.
        """
        started = time.perf_counter()
        effective = self._threshold if threshold is None else max(self._threshold, threshold)

        try:
            embedding = await self._embedder.embed(query)
        except Exception as e:
            logger.warning("Cache lookup embedding failed: %s", e)
            async with self._lock:
                self._record_miss()
            return CacheLookup(found=False)

        async with self._lock:
            try:
                best, similarity = self._find_best_match(embedding, effective)
            except CacheError as e:
                logger.warning("Cache lookup failed: %s", e)
                self._record_miss()
                return CacheLookup(found=False)

            if best is None:
                self._record_miss()
                logger.debug("Cache miss (threshold=%.3f)", effective)
                return CacheLookup(found=False)

            best.last_accessed_at = self._clock.now()
            best.access_count += 1
            self._record_hit(best, (time.perf_counter() - started) * 1000)
            logger.info("Cache hit for query similarity: %.3f", similarity)

            return CacheLookup(
                found=True,
                response=best.response,
                confidence=best.confidence,
                similarity=similarity,
                cost_saved=best.metadata.cost_saved,
                entry_id=best.id,
                metadata=best.metadata.model_copy(deep=True),
            )

    def _find_best_match(
        self,
        embedding: list[float],
        threshold: float,
    ) -> tuple[CacheEntry | None, float]:
        """Scan live entries; expired ones found on the way are removed."""
        self._check_dimension(embedding)
        now = self._clock.now()

        best: CacheEntry | None = None
        best_score = -math.inf
        for entry_id, entry in list(self._entries.items()):
            if entry.is_expired(now):
                del self._entries[entry_id]
                logger.debug("Cache entry expired: %s", entry_id)
                continue

            score = self._embedder.similarity(embedding, entry.query_embedding)
            if score > threshold and score > best_score:
                best, best_score = entry, score

        self._stats.cache_size = len(self._entries)
        return best, best_score

    # --- Writes ---

    async def set(
        self,
        query: str,
        response: str,
        metadata: CacheMetadata | dict[str, Any],
        confidence: float = 1.0,
        ttl_ms: int | None = None,
        tags: list[str] | None = None,
    ) -> CacheEntry | None:
        """
        Cache a response.

        ``metadata.cost_saved`` is derived from ``original_cost`` and the
        savings ratio. Tags default to ``[domain, complexity]``.

        Returns:
            The stored entry, or None when the write was dropped
        """
        try:
            meta = (
                metadata.model_copy(deep=True)
                if isinstance(metadata, CacheMetadata)
                else CacheMetadata.model_validate(metadata)
            )
            meta.cost_saved = meta.original_cost * self._savings_ratio
            embedding = await self._embedder.embed(query)

            async with self._lock:
                self._check_dimension(embedding)
                if len(self._entries) >= self._max_size:
                    self._evict_lru()

                now = self._clock.now()
                entry = CacheEntry(
                    id=self._new_id(),
                    query=query,
                    query_embedding=list(embedding),
                    response=response,
                    confidence=confidence,
                    metadata=meta,
                    created_at=now,
                    last_accessed_at=now,
                    ttl_ms=ttl_ms or self._default_ttl_ms,
                    tags=list(tags) if tags is not None else [meta.domain, meta.complexity],
                )
                self._store(entry)
        except Exception as e:
            logger.warning("Dropped cache write: %s", e)
            return None

        logger.debug("Cached response for query in domain: %s", meta.domain)
        await self._notify_written(entry)
        return entry

    def _store(self, entry: CacheEntry) -> None:
        if self._dimension is None:
            self._dimension = len(entry.query_embedding)
        self._entries[entry.id] = entry
        self._stats.total_entries += 1
        self._stats.cache_size = len(self._entries)

    def _check_dimension(self, embedding: list[float]) -> None:
        if self._dimension is not None and len(embedding) != self._dimension:
            raise CacheError(
                f"Embedding dimension {len(embedding)} does not match cache dimension {self._dimension}",
                details={"expected": self._dimension, "actual": len(embedding)},
                code=ErrorCode.CACHE_DIMENSION_MISMATCH,
            )

    async def _notify_written(self, entry: CacheEntry) -> None:
        if self._on_entry_written is None:
            return
        try:
            result = self._on_entry_written(entry)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning("on_entry_written hook failed for %s: %s", entry.id, e)

    def _evict_lru(self) -> int:
        """Evict the least recently accessed 10% (at least one)."""
        if not self._entries:
            return 0

        ordered = sorted(self._entries.values(), key=lambda e: e.last_accessed_at)
        evict_count = max(1, math.ceil(len(ordered) * 0.1))
        for entry in ordered[:evict_count]:
            del self._entries[entry.id]

        self._stats.eviction_count += evict_count
        self._stats.cache_size = len(self._entries)
        logger.info("Evicted %d LRU cache entries", evict_count)
        return evict_count

    # --- Invalidation and expiry ---

    async def invalidate(
        self,
        domain: str | None = None,
        tags: list[str] | None = None,
        criteria: InvalidationCriteria | None = None,
    ) -> int:
        """Remove entries whose domain matches OR whose tags intersect ``tags``."""
        criteria = criteria or InvalidationCriteria(domain=domain, tags=list(tags or []))

        async with self._lock:
            doomed = [eid for eid, entry in self._entries.items() if criteria.matches(entry)]
            for entry_id in doomed:
                del self._entries[entry_id]
            self._stats.cache_size = len(self._entries)

        logger.info(
            "Invalidated %d cache entries (domain=%s, tags=%s)",
            len(doomed),
            criteria.domain,
            criteria.tags,
        )
        return len(doomed)

    async def sweep_expired(self) -> int:
        """Delete every expired entry. Returns the number removed."""
        async with self._lock:
            now = self._clock.now()
            expired = [eid for eid, entry in self._entries.items() if entry.is_expired(now)]
            for entry_id in expired:
                del self._entries[entry_id]
            self._stats.cache_size = len(self._entries)

        if expired:
            logger.info("Swept %d expired cache entries", len(expired))
        return len(expired)

    def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    async def close(self) -> None:
        """Stop the periodic expiry sweep."""
        if self._sweep_task is None:
            return
        self._sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._sweep_task
        self._sweep_task = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep_expired()
            except Exception as e:
                logger.warning("Cache sweep failed: %s", e)

    async def clear(self) -> None:
        """Clear all entries and reset statistics."""
        async with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._dimension = None
            self._stats = CacheStatistics()
        logger.info("Cleared %d cache entries", count)

    # --- Statistics ---

    def statistics(self) -> CacheStatistics:
        """Get a copy of the current statistics."""
        stats = self._stats.model_copy()
        stats.cache_size = len(self._entries)
        return stats

    def _record_miss(self) -> None:
        self._stats.miss_count += 1
        self._update_hit_rate()

    def _record_hit(self, entry: CacheEntry, retrieval_ms: float) -> None:
        self._stats.hit_count += 1
        self._stats.total_cost_saved += entry.metadata.cost_saved
        avg = self._stats.average_retrieval_time_ms
        self._stats.average_retrieval_time_ms = avg + (retrieval_ms - avg) / self._stats.hit_count
        self._update_hit_rate()

    def _update_hit_rate(self) -> None:
        total = self._stats.hit_count + self._stats.miss_count
        self._stats.hit_rate = self._stats.hit_count / total if total else 0.0

    # --- Persistence hooks ---

    async def export_entries(self) -> list[CacheEntry]:
        """Copies of every live entry, oldest first."""
        async with self._lock:
            now = self._clock.now()
            live = [e for e in self._entries.values() if not e.is_expired(now)]
        return [e.model_copy(deep=True) for e in sorted(live, key=lambda e: e.created_at)]

    async def import_entries(self, entries: Iterable[CacheEntry | dict[str, Any]]) -> int:
        """
        Load previously exported entries.

        Expired entries and entries of a foreign dimension are skipped;
        capacity is enforced with the usual eviction.

        Returns:
            Number of entries imported
        """
        imported = 0
        async with self._lock:
            now = self._clock.now()
            for raw in entries:
                entry = (
                    raw.model_copy(deep=True)
                    if isinstance(raw, CacheEntry)
                    else CacheEntry.model_validate(raw)
                )
                if entry.is_expired(now):
                    continue
                try:
                    self._check_dimension(entry.query_embedding)
                except CacheError as e:
                    logger.warning("Skipping imported entry %s: %s", entry.id, e)
                    continue
                if entry.id not in self._entries and len(self._entries) >= self._max_size:
                    self._evict_lru()
                self._store(entry)
                imported += 1

        logger.info("Imported %d cache entries", imported)
        return imported

    async def save_snapshot(self, directory: str | Path) -> ArtifactManifest:
        """
        Write live entries to ``directory``.

        Produces ``entries.json`` and a ``manifest.json`` with checksums.
        """
        directory = Path(directory)
        entries = await self.export_entries()
        dimension = self._dimension or self._embedder.dimension

        def _write() -> ArtifactManifest:
            directory.mkdir(parents=True, exist_ok=True)
            entries_path = directory / SNAPSHOT_ENTRIES_FILE
            payload = [entry.model_dump(mode="json") for entry in entries]
            entries_path.write_text(json.dumps(payload), encoding="utf-8")

            manifest = create_cache_manifest(
                entries_path,
                model=self._embedder.model_name,
                dim=dimension,
                entry_count=len(entries),
                default_ttl_ms=self._default_ttl_ms,
                root=directory,
            )
            manifest.save(directory / SNAPSHOT_MANIFEST_FILE)
            return manifest

        manifest = await asyncio.to_thread(_write)
        logger.info("Saved cache snapshot with %d entries to %s", len(entries), directory)
        return manifest

    async def load_snapshot(self, directory: str | Path) -> int:
        """
        Import a snapshot written by ``save_snapshot``.

        Raises:
            CacheError: If the manifest is missing, invalid, or does not match
        """
        directory = Path(directory)
        manifest_path = directory / SNAPSHOT_MANIFEST_FILE

        def _read() -> list[dict[str, Any]]:
            if not manifest_path.exists():
                raise CacheError(f"No cache manifest at {manifest_path}")
            manifest = ArtifactManifest.load(manifest_path)
            problems = manifest.check()
            if manifest.artifact_type != "semantic_cache":
                problems.append(f"unexpected artifact type {manifest.artifact_type}")
            if manifest.model != self._embedder.model_name:
                problems.append(
                    f"snapshot embedded with {manifest.model}, cache uses {self._embedder.model_name}"
                )

            # The checksum covers exactly the bytes that get parsed
            entries_path = directory / SNAPSHOT_ENTRIES_FILE
            item = manifest.item_for(SNAPSHOT_ENTRIES_FILE)
            data = entries_path.read_bytes() if entries_path.exists() else None
            if item is None:
                problems.append(f"manifest does not cover {SNAPSHOT_ENTRIES_FILE}")
            elif data is None:
                problems.append(f"File not found: {SNAPSHOT_ENTRIES_FILE}")
            elif compute_checksum(data) != item.checksum:
                problems.append(f"Checksum mismatch for {SNAPSHOT_ENTRIES_FILE}")

            if problems:
                raise CacheError("Invalid cache snapshot", details={"problems": problems})
            return json.loads(data.decode("utf-8"))

        raw_entries = await asyncio.to_thread(_read)
        return await self.import_entries(raw_entries)
