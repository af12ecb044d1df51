"""Pytest configuration and fixtures for songhub tests."""

from collections.abc import Callable, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from songhub.models.base import Base
from songhub.models.song import Song
from songhub.schemas.platform import TrackInfo, TrackQuery
from songhub.services.platform import PlatformError
from songhub.services.song_repository import SqlSongRepository

# Use SQLite in-memory for tests (fast, isolated)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db: Session) -> sessionmaker:
    """Session factory bound to the per-test schema."""
    return TestingSessionLocal


@pytest.fixture
def repository(session_factory: sessionmaker) -> SqlSongRepository:
    return SqlSongRepository(session_factory)


@pytest.fixture
def make_song(db: Session) -> Callable[..., Song]:
    """Insert a song (with optional platform links) and return it."""

    def _make(
        title: str,
        artist: str,
        isrc: str = "",
        album: str = "",
        popularity: int = 0,
        duration_ms: int = 0,
        links: dict[str, str] | None = None,
    ) -> Song:
        song = Song(
            title=title,
            artist=artist,
            isrc=isrc,
            album=album,
            popularity=popularity,
            duration_ms=duration_ms,
        )
        for platform, url in (links or {}).items():
            song.add_platform_link(platform, f"{platform}-ext", url)
        db.add(song)
        db.commit()
        db.refresh(song)
        return song

    return _make


class FakePlatformService:
    """In-memory PlatformService with switchable failures."""

    def __init__(
        self,
        platform: str,
        tracks: list[TrackInfo] | None = None,
        by_isrc: dict[str, TrackInfo] | None = None,
        healthy: bool = True,
        error: Exception | None = None,
    ) -> None:
        self._platform = platform
        self.tracks = tracks or []
        self.by_isrc = by_isrc or {}
        self.healthy = healthy
        self.error = error
        self.search_calls: list[TrackQuery] = []
        self.isrc_calls: list[str] = []
        self.timeouts: list[float | None] = []

    @property
    def platform_name(self) -> str:
        return self._platform

    def health(self, timeout: float | None = None) -> None:
        if not self.healthy:
            raise PlatformError(self._platform, "health", "unreachable")

    def search_track(self, query: TrackQuery, timeout: float | None = None) -> list[TrackInfo]:
        self.search_calls.append(query)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return [t.model_copy() for t in self.tracks[: query.limit]]

    def get_track_by_id(self, track_id: str, timeout: float | None = None) -> TrackInfo | None:
        for track in self.tracks:
            if track.external_id == track_id:
                return track
        return None

    def get_track_by_isrc(self, isrc: str, timeout: float | None = None) -> TrackInfo | None:
        self.isrc_calls.append(isrc)
        self.timeouts.append(timeout)
        if self.error is not None:
            raise self.error
        return self.by_isrc.get(isrc)

    def build_url(self, track_id: str) -> str:
        return f"https://{self._platform}.example/track/{track_id}"

    def parse_url(self, url: str) -> TrackInfo:
        raise PlatformError(self._platform, "parse_url", "not supported", url)


@pytest.fixture
def fake_platform() -> Callable[..., FakePlatformService]:
    return FakePlatformService
