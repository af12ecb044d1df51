from songhub.models.base import Base
from songhub.models.cache_item import CacheItem
from songhub.models.search_cache import SearchCache
from songhub.models.song import Song, SongPlatformLink

__all__ = [
    "Base",
    "CacheItem",
    "SearchCache",
    "Song",
    "SongPlatformLink",
]
