from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from songhub.core.time import utcnow
from songhub.models.base import Base


class Song(Base):
    __tablename__ = "songs"

    id: Mapped[int] = mapped_column(primary_key=True)
    isrc: Mapped[str] = mapped_column(String(12), default="", index=True)
    title: Mapped[str] = mapped_column(String(500), index=True)
    # Composite artist string ("Artist A, Artist B")
    artist: Mapped[str] = mapped_column(String(500), index=True)
    album: Mapped[str] = mapped_column(String(500), default="")
    duration_ms: Mapped[int] = mapped_column(Integer, default=0)
    release_date: Mapped[str] = mapped_column(String(10), default="")  # YYYY-MM-DD
    image_url: Mapped[str] = mapped_column(String(1000), default="")
    popularity: Mapped[int] = mapped_column(Integer, default=0)
    explicit: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    platform_links: Mapped[list["SongPlatformLink"]] = relationship(
        back_populates="song",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SongPlatformLink.id",
    )

    def get_platform_link(self, platform: str) -> "SongPlatformLink | None":
        for link in self.platform_links:
            if link.platform == platform:
                return link
        return None

    def has_platform(self, platform: str) -> bool:
        return self.get_platform_link(platform) is not None

    def add_platform_link(
        self, platform: str, external_id: str, url: str, confidence: float = 1.0
    ) -> "SongPlatformLink":
        """Add a platform link, or refresh the existing one for that platform."""
        now = utcnow()
        link = self.get_platform_link(platform)
        if link is None:
            link = SongPlatformLink(platform=platform)
            self.platform_links.append(link)
        link.external_id = external_id
        link.url = url
        link.available = True
        link.confidence = confidence
        link.last_verified = now
        self.updated_at = now
        return link


class SongPlatformLink(Base):
    __tablename__ = "song_platform_links"
    __table_args__ = (UniqueConstraint("song_id", "platform", name="uq_song_platform"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    song_id: Mapped[int] = mapped_column(ForeignKey("songs.id", ondelete="CASCADE"), index=True)
    platform: Mapped[str] = mapped_column(String(50))
    external_id: Mapped[str] = mapped_column(String(255), default="")
    url: Mapped[str] = mapped_column(String(1000), default="")
    available: Mapped[bool] = mapped_column(Boolean, default=True)
    confidence: Mapped[float] = mapped_column(Float, default=1.0)
    last_verified: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    song: Mapped[Song] = relationship(back_populates="platform_links")
