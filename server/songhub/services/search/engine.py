"""Flat search entry point and the cache + fan-out step shared with grouping."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field

from songhub.core.time import format_elapsed
from songhub.schemas.search import SearchRequest, SearchResponse, SearchResult
from songhub.services.cache.manager import CacheManager
from songhub.services.search.base import SourceOutcome
from songhub.services.search.fanout import fan_out
from songhub.services.search.local_source import LOCAL
from songhub.services.search.ranking import Ranker
from songhub.services.search.registry import SourceRegistry

logger = logging.getLogger(__name__)


@dataclass
class GatherResult:
    """Merged, unranked results for a request and where they came from."""

    results: list[SearchResult] = field(default_factory=list)
    from_cache: bool = False
    outcomes: list[SourceOutcome] = field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.outcomes) and not any(o.ok for o in self.outcomes)


class SearchEngine:
    """Cache-first search over every selected source.

    The cache stores merged results before ranking, so cached entries are
    re-ranked on every read and a ranking config change applies to them too.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: CacheManager,
        ranker: Ranker,
        executor: Executor | None = None,
        max_workers: int = 8,
        source_timeout: float | None = None,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.ranker = ranker
        self.source_timeout = source_timeout
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="songhub-search"
        )

    def gather(self, request: SearchRequest, timeout: float | None = None) -> GatherResult:
        """Cached results, or a live fan-out whose merged results get cached."""
        cached, found = self.cache.get(request)
        if found:
            return GatherResult(results=cached, from_cache=True)
        partial = cached

        sources = self.registry.select(request)
        logger.debug(
            "Live search for %r across %s", request.cache_key(), [s.name for s in sources]
        )
        outcomes = fan_out(sources, request, self.executor, timeout or self.source_timeout)

        merged: list[SearchResult] = []
        for outcome in outcomes:
            if outcome.ok:
                merged.extend(outcome.results)
            elif outcome.source != LOCAL:
                backfill = [r for r in partial if r.platform == outcome.source]
                if backfill:
                    logger.debug(
                        "Using %d cached items for failed source %s", len(backfill), outcome.source
                    )
                    merged.extend(backfill)

        succeeded = [o for o in outcomes if o.ok]
        if merged and succeeded:
            self.cache.set(request, merged)
        elif not merged and outcomes and len(succeeded) == len(outcomes):
            self.cache.store_negative(request)

        return GatherResult(results=merged, from_cache=False, outcomes=outcomes)

    def search(self, request: SearchRequest, timeout: float | None = None) -> SearchResponse:
        started = time.perf_counter()
        if request.is_empty():
            return SearchResponse(query=request, duration=format_elapsed(started))

        gathered = self.gather(request, timeout)
        results = [r.model_copy() for r in gathered.results]
        ranked = self.ranker.rank_results(results, request.ranking_query())
        ranked = ranked[: request.effective_limit()]

        if gathered.from_cache:
            logger.debug("Search cache hit for %r: %d results", request.query, len(ranked))

        return SearchResponse(
            results=ranked,
            query=request,
            total=len(ranked),
            from_cache=gathered.from_cache,
            duration=format_elapsed(started),
        )

    def invalidate_cache(self, request: SearchRequest) -> bool:
        return self.cache.invalidate(request)

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def enabled_sources(self) -> list[str]:
        return self.registry.enabled_names()

    def warm_cache(self, limit: int = 50) -> int:
        """Bring popular persisted queries back into memory.

        Returns the number of queries that were warmed.
        """
        queries = self.cache.popular_queries(limit)
        logger.info("Starting cache warming for %d popular queries", len(queries))
        warmed = 0
        for request in queries:
            if self.cache.in_memory(request):
                continue
            self.gather(request)
            warmed += 1
        return warmed

    def close(self) -> None:
        self.cache.close()
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
