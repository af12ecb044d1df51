"""Background indexing of platform tracks not yet in the local store."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from songhub.models.song import Song
from songhub.schemas.search import SearchResult
from songhub.services.platform import APPLE_MUSIC, SPOTIFY, TIDAL
from songhub.services.search.background import BackgroundTaskPool
from songhub.services.song_repository import SongRepository
from songhub.services.track_normalizer import join_artist_credit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexingCandidate:
    track: SearchResult
    priority: int
    query: str


def calculate_indexing_priority(track: SearchResult, query_words: list[str], position: int) -> int:
    """How worthwhile it is to store this track locally.

    Popularity up to 50, result position up to 50 for the top 10, query word
    hits in title (10 each) and artists (5 each), metadata completeness up
    to 20, and a preference for the platforms with the richest catalogs.
    """
    priority = 0

    if track.popularity > 0:
        priority += track.popularity * 50 // 100

    if position < 10:
        priority += 50 - position * 5

    title = track.title.lower()
    priority += 10 * sum(1 for word in query_words if word in title)

    for artist in track.artists:
        artist = artist.lower()
        priority += 5 * sum(1 for word in query_words if word in artist)

    if track.isrc:
        priority += 10
    if track.image_url:
        priority += 5
    if track.album:
        priority += 5

    if track.platform in (SPOTIFY, APPLE_MUSIC):
        priority += 10
    elif track.platform == TIDAL:
        priority += 5

    return priority


def external_id(track: SearchResult) -> str:
    prefix = f"{track.platform}-"
    return track.id[len(prefix) :] if track.id.startswith(prefix) else track.id


def song_from_result(track: SearchResult) -> Song:
    song = Song(
        isrc=track.isrc.upper(),
        title=track.title,
        artist=join_artist_credit(track.artists),
        album=track.album,
        duration_ms=track.duration_ms,
        release_date=track.release_date,
        image_url=track.image_url,
        popularity=track.popularity,
        explicit=track.explicit,
    )
    song.add_platform_link(track.platform, external_id(track), track.url)
    return song


class BackgroundIndexer:
    def __init__(
        self,
        repository: SongRepository | None,
        pool: BackgroundTaskPool,
        max_per_query: int = 5,
    ) -> None:
        self.repository = repository
        self.pool = pool
        self.max_per_query = max_per_query

    def select_candidates(self, query: str, tracks: list[SearchResult]) -> list[IndexingCandidate]:
        query_words = query.lower().split()
        candidates = []
        for position, track in enumerate(tracks):
            if track.source != "platform":
                continue
            priority = calculate_indexing_priority(track, query_words, position)
            if priority > 0:
                candidates.append(IndexingCandidate(track, priority, query))
        candidates.sort(key=lambda c: c.priority, reverse=True)
        return candidates[: self.max_per_query]

    def index_tracks(self, query: str, tracks: list[SearchResult]) -> int:
        """Queue the highest-priority new tracks. Returns how many were queued."""
        if self.repository is None or not tracks:
            return 0

        submitted = 0
        for candidate in self.select_candidates(query, tracks):
            track = candidate.track.model_copy(deep=True)
            if self.pool.submit(self.index_track_if_new, track, query, name=f"index:{track.id}"):
                submitted += 1
        logger.debug("Queued %d of %d tracks for indexing (%r)", submitted, len(tracks), query)
        return submitted

    def index_track_if_new(self, track: SearchResult, query: str) -> bool:
        """Store the track unless it is already known. Returns True if saved."""
        if self.repository is None:
            return False

        if track.isrc and self.repository.find_by_isrc(track.isrc) is not None:
            logger.debug("Track already indexed by ISRC %s (%s)", track.isrc, track.title)
            return False

        if track.artists and self.repository.find_by_title_artist(track.title, track.artists[0]):
            logger.debug("Track already indexed: %s - %s", track.artists[0], track.title)
            return False

        song = self.repository.save(song_from_result(track))
        logger.debug(
            "Indexed %r from %s for query %r (song %s)", track.title, track.platform, query, song.id
        )
        return True
