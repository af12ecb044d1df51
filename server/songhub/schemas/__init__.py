from songhub.schemas.platform import TrackInfo, TrackQuery
from songhub.schemas.search import (
    GroupedSearchResponse,
    GroupedSearchResult,
    PlatformLink,
    RelevanceBreakdown,
    SearchRequest,
    SearchResponse,
    SearchResult,
)

__all__ = [
    "GroupedSearchResponse",
    "GroupedSearchResult",
    "PlatformLink",
    "RelevanceBreakdown",
    "SearchRequest",
    "SearchResponse",
    "SearchResult",
    "TrackInfo",
    "TrackQuery",
]
