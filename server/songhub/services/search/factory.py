"""Wire the search stack from Settings.

Platform clients are built elsewhere and passed in as PlatformService
instances keyed by platform name.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from songhub.core.config import Settings, get_settings
from songhub.core.ranking import RankingConfigProvider
from songhub.services.cache import (
    CacheManager,
    ItemStore,
    MemoryCache,
    PersistentSearchCache,
    SqlByteCache,
)
from songhub.services.platform import PlatformService
from songhub.services.search.background import BackgroundTaskPool
from songhub.services.search.coordinator import SearchCoordinator
from songhub.services.search.engine import SearchEngine
from songhub.services.search.enhancement import PlatformEnhancer
from songhub.services.search.indexing import BackgroundIndexer
from songhub.services.search.local_source import LocalSource
from songhub.services.search.platform_source import PlatformSource
from songhub.services.search.ranking import Ranker
from songhub.services.search.registry import SourceRegistry
from songhub.services.search.scorer import RelevanceScorer
from songhub.services.song_repository import SongRepository, SqlSongRepository

logger = logging.getLogger(__name__)


def build_cache_manager(settings: Settings, session_factory: Callable[[], Session]) -> CacheManager:
    return CacheManager(
        memory=MemoryCache(settings.memory_cache_capacity),
        persistent=PersistentSearchCache(
            session_factory,
            ttl_seconds=settings.persistent_ttl_seconds,
            negative_ttl_seconds=settings.negative_ttl_seconds,
        ),
        items=ItemStore(SqlByteCache(session_factory), settings.item_ttl_seconds),
        memory_ttl_seconds=settings.memory_ttl_seconds,
        negative_ttl_seconds=settings.negative_ttl_seconds,
    )


def build_ranking_provider(settings: Settings) -> RankingConfigProvider:
    provider = RankingConfigProvider()
    if settings.ranking_config_path and not provider.reload(settings.ranking_config_path):
        logger.warning("Using default ranking config")
    return provider


def build_search_coordinator(
    services: dict[str, PlatformService],
    session_factory: Callable[[], Session] | None = None,
    settings: Settings | None = None,
    repository: SongRepository | None = None,
    raise_on_total_failure: bool = False,
) -> SearchCoordinator:
    settings = settings or get_settings()
    if session_factory is None:
        from songhub.db.session import SessionLocal

        session_factory = SessionLocal
    repository = repository or SqlSongRepository(session_factory)

    registry = SourceRegistry()
    registry.register(LocalSource(repository, settings.public_base_url))
    for platform, service in services.items():
        registry.register(
            PlatformSource(
                platform,
                service,
                health_timeout=settings.platform_health_timeout_seconds,
                search_timeout=settings.source_timeout_seconds,
            )
        )

    provider = build_ranking_provider(settings)
    ranker = Ranker(RelevanceScorer(provider), provider)
    engine = SearchEngine(
        registry,
        build_cache_manager(settings, session_factory),
        ranker,
        max_workers=settings.fanout_workers,
        source_timeout=settings.source_timeout_seconds,
    )

    pool = BackgroundTaskPool(settings.background_workers, settings.background_max_pending)
    enhancer = PlatformEnhancer(
        services, repository, pool, timeout=settings.enhancement_timeout_seconds
    )
    indexer = BackgroundIndexer(repository, pool, max_per_query=settings.index_max_per_query)

    logger.info("Search ready with sources: %s", ", ".join(registry.names()))
    return SearchCoordinator(
        engine,
        ranker,
        enhancer=enhancer,
        indexer=indexer,
        pool=pool,
        raise_on_total_failure=raise_on_total_failure,
    )
