"""Local song datastore used by the local search source and background jobs."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from songhub.models.song import Song
from songhub.services.track_normalizer import split_artist_credit

logger = logging.getLogger(__name__)


class SongRepository(ABC):
    """Abstract song store.

    Implementations raise on storage failures; callers on the search path
    decide whether that degrades to "no results".
    """

    @abstractmethod
    def search(self, query: str, limit: int) -> list[Song]:
        """Return songs matching every term of ``query``, most popular first."""

    @abstractmethod
    def find_by_isrc(self, isrc: str) -> Song | None:
        """Return the song with this ISRC, or None."""

    @abstractmethod
    def find_by_title_artist(self, title: str, artist: str) -> list[Song]:
        """Return songs with this exact title (case-insensitive) credited to this artist."""

    @abstractmethod
    def update(self, song: Song) -> None:
        """Persist changes to an existing song."""

    @abstractmethod
    def save(self, song: Song) -> Song:
        """Insert a new song and return it with its id populated."""


class SqlSongRepository(SongRepository):
    """SongRepository backed by SQLAlchemy, one session per call.

    Songs are returned detached with their platform links eagerly loaded, so
    they are safe to hand to background threads.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def search(self, query: str, limit: int) -> list[Song]:
        terms = [t.lower() for t in query.split() if t]
        if not terms:
            return []

        conditions = [
            or_(
                func.lower(Song.title).contains(term, autoescape=True),
                func.lower(Song.artist).contains(term, autoescape=True),
                func.lower(Song.album).contains(term, autoescape=True),
            )
            for term in terms
        ]
        stmt = (
            select(Song)
            .where(and_(*conditions))
            .order_by(Song.popularity.desc(), Song.id)
            .limit(limit)
        )
        with self._session_factory() as db:
            return list(db.scalars(stmt).all())

    def find_by_isrc(self, isrc: str) -> Song | None:
        if not isrc:
            return None
        with self._session_factory() as db:
            return db.scalars(select(Song).where(Song.isrc == isrc.upper()).limit(1)).first()

    def find_by_title_artist(self, title: str, artist: str) -> list[Song]:
        if not title or not artist:
            return []
        artist_key = artist.strip().lower()
        stmt = (
            select(Song)
            .where(
                func.lower(Song.title) == title.strip().lower(),
                func.lower(Song.artist).contains(artist_key, autoescape=True),
            )
            .order_by(Song.id)
        )
        with self._session_factory() as db:
            songs = db.scalars(stmt).all()
        # The LIKE prefilter also matches "Queensryche" for "Queen"
        return [
            song
            for song in songs
            if artist_key in (credit.lower() for credit in split_artist_credit(song.artist))
        ]

    def update(self, song: Song) -> None:
        with self._session_factory() as db:
            db.merge(song)
            db.commit()
        logger.debug("Updated song %s (%s)", song.id, song.title)

    def save(self, song: Song) -> Song:
        with self._session_factory() as db:
            db.add(song)
            db.commit()
            db.refresh(song)
        logger.info("Indexed new song %s: %s - %s", song.id, song.artist, song.title)
        return song
