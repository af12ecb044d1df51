"""Search source wrapping one external platform service."""

from __future__ import annotations

import logging

from songhub.schemas.platform import TrackInfo, TrackQuery
from songhub.schemas.search import SearchRequest, SearchResult
from songhub.services.platform import PlatformService
from songhub.services.search.base import SearchSource, sanitize_source_error

logger = logging.getLogger(__name__)


def track_to_result(track: TrackInfo, platform: str = "") -> SearchResult:
    platform = track.platform or platform
    return SearchResult(
        id=f"{platform}-{track.external_id}",
        title=track.title,
        artists=list(track.artists),
        album=track.album,
        platform=platform,
        url=track.url,
        image_url=track.image_url,
        popularity=track.popularity,
        duration_ms=track.duration_ms,
        release_date=track.release_date,
        isrc=track.isrc,
        explicit=track.explicit,
        available=track.available,
        source="platform",
    )


class PlatformSource(SearchSource):
    def __init__(
        self,
        platform: str,
        service: PlatformService | None,
        health_timeout: float = 2.0,
        search_timeout: float | None = None,
    ) -> None:
        self.platform = platform
        self.service = service
        self.health_timeout = health_timeout
        self.search_timeout = search_timeout

    @property
    def name(self) -> str:
        return self.platform

    def is_enabled(self) -> bool:
        """Quick health probe; any failure just disables the source."""
        if self.service is None:
            return False
        try:
            self.service.health(timeout=self.health_timeout)
        except Exception as e:
            logger.debug("%s health check failed: %s", self.platform, sanitize_source_error(e))
            return False
        return True

    def search(self, request: SearchRequest) -> list[SearchResult]:
        if self.service is None:
            return []
        query = TrackQuery(
            query=request.query,
            title=request.title,
            artist=request.artist,
            album=request.album,
            limit=request.effective_limit(),
        )
        tracks = self.service.search_track(query, timeout=self.search_timeout)
        return [track_to_result(track, self.platform) for track in tracks]
