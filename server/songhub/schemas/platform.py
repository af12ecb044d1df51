from pydantic import BaseModel, Field


class TrackQuery(BaseModel):
    """Search query handed to a platform service."""

    query: str = ""  # Free-form search query
    title: str = ""
    artist: str = ""
    album: str = ""
    isrc: str = ""
    limit: int = 10


class TrackInfo(BaseModel):
    """Track metadata as returned by a platform service."""

    platform: str
    external_id: str
    url: str = ""

    title: str
    artists: list[str] = Field(default_factory=list)
    album: str = ""
    isrc: str = ""
    duration_ms: int = 0

    release_date: str = ""
    genres: list[str] = Field(default_factory=list)
    explicit: bool = False
    popularity: int = 0
    image_url: str = ""

    available: bool = True
