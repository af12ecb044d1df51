"""Contract for external music-catalog platforms.

Platform clients (auth, HTTP, response parsing) live outside this package;
the search core only talks to them through PlatformService. Every blocking
call takes a ``timeout`` in seconds so callers can bound health probes and
background lookups.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from songhub.schemas.platform import TrackInfo, TrackQuery

SPOTIFY = "spotify"
APPLE_MUSIC = "apple_music"
TIDAL = "tidal"

# Fan-out order for platform sources (display/bookkeeping only, not ranking)
PLATFORM_PRIORITY: tuple[str, ...] = (SPOTIFY, APPLE_MUSIC, TIDAL)


class PlatformError(Exception):
    """A platform operation failed."""

    def __init__(
        self,
        platform: str,
        operation: str,
        message: str = "",
        url: str = "",
    ) -> None:
        self.platform = platform
        self.operation = operation
        self.message = message
        self.url = url
        super().__init__(str(self))

    def __str__(self) -> str:
        msg = f"{self.platform} {self.operation} failed"
        if self.message:
            msg += f": {self.message}"
        if self.url:
            msg += f" (URL: {self.url})"
        if self.__cause__ is not None:
            msg += f" - {self.__cause__}"
        return msg


@runtime_checkable
class PlatformService(Protocol):
    @property
    def platform_name(self) -> str:
        """Unique identifier for this platform (e.g., 'spotify')."""
        ...

    def health(self, timeout: float | None = None) -> None:
        """Raise if the platform is unreachable."""
        ...

    def search_track(self, query: TrackQuery, timeout: float | None = None) -> list[TrackInfo]:
        ...

    def get_track_by_id(self, track_id: str, timeout: float | None = None) -> TrackInfo | None:
        ...

    def get_track_by_isrc(self, isrc: str, timeout: float | None = None) -> TrackInfo | None:
        """Return the track with this ISRC, or None if the catalog lacks it."""
        ...

    def build_url(self, track_id: str) -> str:
        ...

    def parse_url(self, url: str) -> TrackInfo:
        ...
