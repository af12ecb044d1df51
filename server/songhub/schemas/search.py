from datetime import datetime

from pydantic import BaseModel, Field, field_validator

DEFAULT_LIMIT = 10
MAX_LIMIT = 50


class SearchRequest(BaseModel):
    query: str = ""  # Free-form search query
    title: str = ""
    artist: str = ""
    album: str = ""
    platform: str = ""  # "spotify", "apple_music", "tidal", or "" for all
    limit: int = DEFAULT_LIMIT  # Results per source, clamped to [1, 50]

    @field_validator("query", "title", "artist", "album", mode="before")
    @classmethod
    def _strip_text(cls, value: str | None) -> str:
        return (value or "").strip()

    @field_validator("platform", mode="before")
    @classmethod
    def _normalize_platform(cls, value: str | None) -> str:
        return (value or "").strip().lower()

    def effective_limit(self) -> int:
        if self.limit <= 0:
            return DEFAULT_LIMIT
        return min(self.limit, MAX_LIMIT)

    def is_empty(self) -> bool:
        return not (self.query or self.title or self.artist or self.album)

    def is_structured(self) -> bool:
        return bool(self.title or self.artist or self.album)

    def cache_key(self) -> str:
        """Order-stable key shared by every cache tier."""
        return "|".join(
            [
                self.query,
                self.title,
                self.artist,
                self.album,
                self.platform,
                str(self.effective_limit()),
            ]
        )

    def ranking_query(self) -> str:
        """Text the ranker scores against."""
        if self.query:
            return self.query
        return " ".join(part for part in (self.title, self.artist, self.album) if part)


class SearchResult(BaseModel):
    id: str = ""
    title: str
    artists: list[str] = Field(default_factory=list)
    album: str = ""
    platform: str
    url: str = ""
    image_url: str = ""
    popularity: int = Field(default=0, ge=0, le=100)
    duration_ms: int = 0
    release_date: str = ""  # YYYY-MM-DD
    isrc: str = ""
    explicit: bool = False
    available: bool = True
    source: str = "platform"  # "local" or "platform"
    relevance_score: float = 0.0
    cached_at: datetime | None = None

    @field_validator("popularity", mode="before")
    @classmethod
    def _clamp_popularity(cls, value: int | None) -> int:
        if value is None:
            return 0
        return max(0, min(100, int(value)))

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


class PlatformLink(BaseModel):
    platform: str
    url: str = ""
    available: bool = False
    source: str = "platform"


class RelevanceBreakdown(BaseModel):
    text_match: float
    popularity_input: int
    popularity_contribution: float
    platform_multiplier: float
    availability_bonus: float
    local_bonus: float
    final: float
    representative_platform: str = ""
    aggregate_popularity: int = 0
    # Per-platform popularity inputs for the group's ISRC
    platform_popularity: dict[str, int] = Field(default_factory=dict)


class GroupedSearchResult(BaseModel):
    id: str
    title: str
    artists: list[str] = Field(default_factory=list)
    album: str = ""
    isrc: str = ""
    duration_ms: int = 0
    release_date: str = ""
    image_url: str = ""
    popularity: int = Field(default=0, ge=0, le=100)  # Aggregate across platforms
    explicit: bool = False
    platform_links: list[PlatformLink] = Field(default_factory=list)
    has_local_link: bool = False
    local_url: str = ""

    # Ranking bookkeeping
    relevance_score: float = 0.0
    original_index: int = 0
    representative_platform: str = ""
    debug: RelevanceBreakdown | None = None

    def platforms(self) -> list[str]:
        return [link.platform for link in self.platform_links]

    def get_link(self, platform: str) -> PlatformLink | None:
        for link in self.platform_links:
            if link.platform == platform:
                return link
        return None

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


class SearchResponse(BaseModel):
    results: list[SearchResult] = Field(default_factory=list)
    query: SearchRequest
    total: int = 0
    from_cache: bool = False
    duration: str = ""


class GroupedSearchResponse(BaseModel):
    results: list[GroupedSearchResult] = Field(default_factory=list)
    query: SearchRequest
    total: int = 0
    from_cache: bool = False
    duration: str = ""
