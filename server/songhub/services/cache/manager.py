"""Three-tier search cache: memory, database, per-item store."""

from __future__ import annotations

import logging

from songhub.schemas.search import SearchRequest, SearchResult
from songhub.services.cache.item_store import ItemStore
from songhub.services.cache.memory import MemoryCache
from songhub.services.cache.persistent import PersistentSearchCache

logger = logging.getLogger(__name__)


class CacheManager:
    """Checks memory, then the persistent table, then per-item results.

    ``get`` returns ``(results, found)``. Only tiers 1 and 2 count as found;
    a tier-3 assembly is partial and comes back with ``found=False`` so the
    caller still runs a live search.
    """

    def __init__(
        self,
        memory: MemoryCache,
        persistent: PersistentSearchCache,
        items: ItemStore,
        memory_ttl_seconds: int,
        negative_ttl_seconds: int,
    ) -> None:
        self.memory = memory
        self.persistent = persistent
        self.items = items
        self.memory_ttl_seconds = memory_ttl_seconds
        self.negative_ttl_seconds = negative_ttl_seconds

    def get(self, request: SearchRequest) -> tuple[list[SearchResult], bool]:
        key = request.cache_key()

        results = self.memory.get(key)
        if results is not None:
            logger.debug("Cache hit (memory) for %r: %d results", key, len(results))
            return results, True

        results = self.persistent.get(request)
        if results is not None:
            ttl = self.memory_ttl_seconds if results else self.negative_ttl_seconds
            self.memory.set(key, results, ttl)
            logger.debug("Cache hit (persistent) for %r: %d results", key, len(results))
            return results, True

        results = self.items.lookup(request)
        if results:
            logger.debug("Partial cache hit (items) for %r: %d results", key, len(results))
            return results, False

        return [], False

    def set(self, request: SearchRequest, results: list[SearchResult]) -> None:
        self.memory.set(request.cache_key(), results, self.memory_ttl_seconds)
        if not self.persistent.store(request, results):
            logger.warning("Failed to store results in persistent cache for %r", request.query)
        self.items.store(request, results)

    def store_negative(self, request: SearchRequest) -> None:
        self.memory.set(request.cache_key(), [], self.negative_ttl_seconds)
        if not self.persistent.store_negative(request):
            logger.warning("Failed to store negative result for %r", request.query)

    def in_memory(self, request: SearchRequest) -> bool:
        return self.memory.contains(request.cache_key())

    def invalidate(self, request: SearchRequest) -> bool:
        """Drop the request from memory and the persistent table.

        Per-item entries are left to expire on their own TTL.
        """
        removed_memory = self.memory.delete(request.cache_key())
        removed_persistent = self.persistent.invalidate(request)
        return removed_memory or removed_persistent

    def popular_queries(self, limit: int = 20) -> list[SearchRequest]:
        return self.persistent.popular_queries(limit)

    def cleanup_expired(self) -> dict[str, int]:
        return {
            "memory": self.memory.cleanup_expired(),
            "persistent": self.persistent.cleanup_expired(),
            "items": self.items.cleanup_expired(),
        }

    def stats(self) -> dict:
        return {
            "memory": self.memory.stats(),
            "persistent": self.persistent.stats(),
        }

    def close(self) -> None:
        self.items.close()
