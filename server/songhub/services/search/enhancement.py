"""Background enrichment of grouped results with missing platform links.

For each returned group that lacks a tracked platform, look the song up on
that platform (ISRC first, then title + primary artist) and, when a match is
accepted, attach the new link to the locally stored song.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from songhub.models.song import Song
from songhub.schemas.platform import TrackInfo, TrackQuery
from songhub.schemas.search import GroupedSearchResult
from songhub.services.platform import PLATFORM_PRIORITY, PlatformService
from songhub.services.search.background import BackgroundTaskPool
from songhub.services.search.base import sanitize_source_error
from songhub.services.song_repository import SongRepository
from songhub.services.track_normalizer import word_similarity

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 70
SEARCH_CANDIDATES = 3
DURATION_WINDOW_MS = 30_000


@dataclass(frozen=True)
class PlatformMatch:
    """A track accepted as the same song on another platform."""

    platform: str
    track: TrackInfo
    score: int
    method: str  # "isrc" or "search"


def calculate_match_score(group: GroupedSearchResult, track: TrackInfo) -> int:
    """Similarity of a candidate track to a group, 0-100.

    Title 40, primary artist 35, album 15, duration within 30s 10.
    """
    score = int(word_similarity(group.title, track.title) * 0.4)

    if group.artists and track.artists:
        score += int(word_similarity(group.artists[0], track.artists[0]) * 0.35)

    if group.album and track.album:
        score += int(word_similarity(group.album, track.album) * 0.15)

    if group.duration_ms > 0 and track.duration_ms > 0:
        diff = abs(group.duration_ms - track.duration_ms)
        if diff <= DURATION_WINDOW_MS:
            score += int((100 - diff * 100 // DURATION_WINDOW_MS) * 0.1)

    return score


def missing_platforms(group: GroupedSearchResult) -> list[str]:
    present = set(group.platforms())
    return [p for p in PLATFORM_PRIORITY if p not in present]


class PlatformEnhancer:
    def __init__(
        self,
        services: dict[str, PlatformService],
        repository: SongRepository | None,
        pool: BackgroundTaskPool,
        timeout: float = 12.0,
    ) -> None:
        self.services = services
        self.repository = repository
        self.pool = pool
        self.timeout = timeout
        # Read-modify-merge of a song must not interleave across tasks
        self._apply_lock = threading.Lock()

    def enhance_results(self, groups: list[GroupedSearchResult]) -> int:
        """Queue enhancement for every group missing a tracked platform.

        Returns how many tasks were accepted by the pool.
        """
        submitted = 0
        for group in groups:
            if not missing_platforms(group):
                continue
            snapshot = group.model_copy(deep=True)
            if self.pool.submit(self.enhance_single, snapshot, name=f"enhance:{group.id}"):
                submitted += 1
        if submitted:
            logger.debug("Queued platform enhancement for %d results", submitted)
        return submitted

    def enhance_single(self, group: GroupedSearchResult) -> list[PlatformMatch]:
        deadline = time.monotonic() + self.timeout
        matches: list[PlatformMatch] = []

        for platform in missing_platforms(group):
            service = self.services.get(platform)
            if service is None:
                continue
            if time.monotonic() >= deadline:
                logger.debug("Enhancement of %s ran out of time", group.id)
                break
            match = self._find_on_platform(group, platform, service, deadline)
            if match is not None:
                logger.debug(
                    "Matched %r on %s via %s (score %d)",
                    group.title,
                    platform,
                    match.method,
                    match.score,
                )
                matches.append(match)

        if matches:
            self.apply_matches(group, matches)
        return matches

    def _find_on_platform(
        self,
        group: GroupedSearchResult,
        platform: str,
        service: PlatformService,
        deadline: float,
    ) -> PlatformMatch | None:
        if group.isrc:
            try:
                track = service.get_track_by_isrc(group.isrc, timeout=deadline - time.monotonic())
            except Exception as e:
                logger.debug("ISRC lookup on %s failed: %s", platform, sanitize_source_error(e))
                track = None
            if track is not None:
                return PlatformMatch(platform, track, calculate_match_score(group, track), "isrc")

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return None

        query = group.title
        if group.primary_artist:
            query += f" {group.primary_artist}"
        try:
            tracks = service.search_track(
                TrackQuery(query=query, limit=SEARCH_CANDIDATES), timeout=remaining
            )
        except Exception as e:
            logger.debug("Enhancement search on %s failed: %s", platform, sanitize_source_error(e))
            return None

        best: PlatformMatch | None = None
        for track in tracks:
            score = calculate_match_score(group, track)
            if best is None or score > best.score:
                best = PlatformMatch(platform, track, score, "search")
        if best is None or best.score < MATCH_THRESHOLD:
            return None
        return best

    def _find_local_song(self, group: GroupedSearchResult) -> Song | None:
        if group.isrc:
            song = self.repository.find_by_isrc(group.isrc)
            if song is not None:
                return song
        if group.primary_artist:
            songs = self.repository.find_by_title_artist(group.title, group.primary_artist)
            if songs:
                return songs[0]
        return None

    def apply_matches(self, group: GroupedSearchResult, matches: list[PlatformMatch]) -> bool:
        """Attach accepted links to the stored song. Returns True if it was updated."""
        if self.repository is None:
            return False
        try:
            with self._apply_lock:
                song = self._find_local_song(group)
                if song is None:
                    logger.debug("No local song for %r, skipping link update", group.title)
                    return False
                for match in matches:
                    url = match.track.url or self.services[match.platform].build_url(
                        match.track.external_id
                    )
                    song.add_platform_link(
                        match.platform, match.track.external_id, url, confidence=match.score / 100
                    )
                self.repository.update(song)
        except SQLAlchemyError as e:
            logger.warning("Failed to store enhanced links for %r: %s", group.title, e)
            return False

        logger.info(
            "Added %s links to song %s (%s)",
            ", ".join(m.platform for m in matches),
            song.id,
            song.title,
        )
        return True
