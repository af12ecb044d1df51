"""Search source over the local song store."""

from __future__ import annotations

import logging

from songhub.models.song import Song
from songhub.schemas.search import SearchRequest, SearchResult
from songhub.services.search.base import SearchSource
from songhub.services.song_repository import SongRepository
from songhub.services.track_normalizer import split_artist_credit

logger = logging.getLogger(__name__)

LOCAL = "local"


class LocalSource(SearchSource):
    """Songs already indexed locally.

    Each song yields one result per available platform link, so grouping
    can show the same platform badges a live search would. Songs with no
    links yet fall back to a single universal link on this service.
    """

    def __init__(self, repository: SongRepository | None, base_url: str) -> None:
        self.repository = repository
        self.base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return LOCAL

    def is_enabled(self) -> bool:
        return self.repository is not None

    def search(self, request: SearchRequest) -> list[SearchResult]:
        if self.repository is None:
            return []

        query = request.query
        if request.is_structured():
            query = request.title or request.artist or request.album
        if not query:
            return []

        songs = self.repository.search(query, request.effective_limit())
        results: list[SearchResult] = []
        for song in songs:
            results.extend(self._song_to_results(song))
        return results

    def universal_link(self, song: Song) -> str:
        if not song.isrc:
            logger.warning("Song %s (%s) has no ISRC for universal link", song.id, song.title)
            return f"{self.base_url}/s/unknown"
        return f"{self.base_url}/s/{song.isrc}"

    def _song_to_results(self, song: Song) -> list[SearchResult]:
        base = {
            "title": song.title,
            "artists": split_artist_credit(song.artist),
            "album": song.album or "",
            "isrc": song.isrc or "",
            "duration_ms": song.duration_ms or 0,
            "release_date": song.release_date or "",
            "image_url": song.image_url or "",
            "popularity": song.popularity or 0,
            "explicit": bool(song.explicit),
            "available": True,
            "source": LOCAL,
        }

        if not song.platform_links:
            return [
                SearchResult(
                    id=f"local-{song.id}",
                    platform=LOCAL,
                    url=self.universal_link(song),
                    **base,
                )
            ]

        return [
            SearchResult(
                id=f"local-{song.id}-{link.platform}",
                platform=link.platform,
                url=link.url or "",
                **base,
            )
            for link in song.platform_links
            if link.available
        ]
