"""Grouped search entry point.

Shares the engine's cache and fan-out, then groups equivalent tracks across
platforms, ranks the groups and hands the results to background enhancement
and indexing.
"""

from __future__ import annotations

import logging
import time

from songhub.core.time import format_elapsed
from songhub.schemas.search import GroupedSearchResponse, SearchRequest
from songhub.services.search.background import BackgroundTaskPool
from songhub.services.search.engine import SearchEngine
from songhub.services.search.enhancement import PlatformEnhancer
from songhub.services.search.grouping import group_results
from songhub.services.search.indexing import BackgroundIndexer
from songhub.services.search.ranking import Ranker

logger = logging.getLogger(__name__)


class SearchUnavailableError(Exception):
    """Every selected source failed for a live search."""

    def __init__(self, request: SearchRequest, errors: dict[str, str]) -> None:
        self.request = request
        self.errors = errors
        super().__init__(f"All search sources failed: {', '.join(sorted(errors))}")


class SearchCoordinator:
    def __init__(
        self,
        engine: SearchEngine,
        ranker: Ranker,
        enhancer: PlatformEnhancer | None = None,
        indexer: BackgroundIndexer | None = None,
        pool: BackgroundTaskPool | None = None,
        raise_on_total_failure: bool = False,
    ) -> None:
        self.engine = engine
        self.ranker = ranker
        self.enhancer = enhancer
        self.indexer = indexer
        self.pool = pool
        self.raise_on_total_failure = raise_on_total_failure

    def search(
        self,
        request: SearchRequest,
        include_debug: bool = False,
        timeout: float | None = None,
    ) -> GroupedSearchResponse:
        started = time.perf_counter()
        if request.is_empty():
            return GroupedSearchResponse(query=request, duration=format_elapsed(started))

        gathered = self.engine.gather(request, timeout)
        if gathered.all_failed:
            errors = {o.source: o.error or "" for o in gathered.outcomes}
            logger.warning("All sources failed for %r: %s", request.query, errors)
            if self.raise_on_total_failure:
                raise SearchUnavailableError(request, errors)

        candidates = [r.model_copy() for r in gathered.results]
        config = self.ranker.config_provider.get()
        groups = group_results(candidates, config.popularity_platform_weights)
        ranked = self.ranker.rank_groups(
            groups, request.ranking_query(), candidates, include_debug=include_debug
        )
        ranked = ranked[: request.effective_limit()]

        if self.enhancer is not None and ranked:
            self.enhancer.enhance_results(ranked)
        if self.indexer is not None and not gathered.from_cache:
            platform_tracks = [r for r in candidates if r.source == "platform"]
            self.indexer.index_tracks(request.ranking_query(), platform_tracks)

        logger.debug(
            "Grouped search for %r: %d results from %d candidates (cache=%s)",
            request.query,
            len(ranked),
            len(candidates),
            gathered.from_cache,
        )
        return GroupedSearchResponse(
            results=ranked,
            query=request,
            total=len(ranked),
            from_cache=gathered.from_cache,
            duration=format_elapsed(started),
        )

    def close(self) -> None:
        if self.pool is not None:
            self.pool.shutdown(wait=True)
        self.engine.close()
