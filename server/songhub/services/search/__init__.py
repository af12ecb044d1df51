"""Cross-platform song search: sources, grouping, ranking and background work."""

from songhub.services.search.coordinator import SearchCoordinator, SearchUnavailableError
from songhub.services.search.engine import GatherResult, SearchEngine
from songhub.services.search.factory import build_search_coordinator

__all__ = [
    "GatherResult",
    "SearchCoordinator",
    "SearchEngine",
    "SearchUnavailableError",
    "build_search_coordinator",
]
