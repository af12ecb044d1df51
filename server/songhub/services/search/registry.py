"""Source registry: central lookup and per-request selection of search sources."""

from __future__ import annotations

from songhub.schemas.search import SearchRequest
from songhub.services.platform import PLATFORM_PRIORITY
from songhub.services.search.base import SearchSource
from songhub.services.search.local_source import LOCAL


class SourceRegistry:
    def __init__(self) -> None:
        self._sources: dict[str, SearchSource] = {}

    def register(self, source: SearchSource) -> None:
        """Register a source by its name, replacing any previous one."""
        self._sources[source.name] = source

    def get(self, name: str) -> SearchSource | None:
        return self._sources.get(name)

    def names(self) -> list[str]:
        return sorted(self._sources)

    def enabled_names(self) -> list[str]:
        return [name for name in self.names() if self._sources[name].is_enabled()]

    def select(self, request: SearchRequest) -> list[SearchSource]:
        """Sources to query for a request, in merge order.

        Local always comes first when enabled. A platform filter narrows the
        platform part to that one platform; otherwise platforms follow the
        priority order, then any other registered platform by name.
        """
        selected: list[SearchSource] = []

        local = self._sources.get(LOCAL)
        if local is not None and local.is_enabled():
            selected.append(local)

        if request.platform:
            source = self._sources.get(request.platform)
            if source is not None and request.platform != LOCAL and source.is_enabled():
                selected.append(source)
            return selected

        others = sorted(n for n in self._sources if n != LOCAL and n not in PLATFORM_PRIORITY)
        for name in [*PLATFORM_PRIORITY, *others]:
            source = self._sources.get(name)
            if source is not None and source.is_enabled():
                selected.append(source)
        return selected
