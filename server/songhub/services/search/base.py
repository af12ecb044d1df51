"""Abstract base for search sources.

A source is anything that turns a SearchRequest into flat SearchResults:
the local song store or one external platform. The engine fans a request
out to every selected source and merges what comes back.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import httpx

from songhub.schemas.search import SearchRequest, SearchResult
from songhub.services.platform import PlatformError

logger = logging.getLogger(__name__)


def sanitize_source_error(e: BaseException) -> str:
    """Return a safe error message that never leaks tokens or credentials.

    httpx exceptions can carry Authorization headers and full URLs with
    query parameters in their string representations, so only generic
    messages are returned for them.
    """
    if isinstance(e, TimeoutError | httpx.TimeoutException):
        return "External API timeout"
    if isinstance(e, httpx.ConnectError):
        return "External API connection failed"
    if isinstance(e, httpx.HTTPStatusError):
        return f"External API error: HTTP {e.response.status_code}"
    if isinstance(e, httpx.HTTPError):
        return "External API error"
    if isinstance(e, PlatformError):
        return f"{e.platform} {e.operation} failed"
    return "Search source failed"


class SearchSource(ABC):
    """Abstract base for search sources."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique source name ('local' or a platform name)."""

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether the source should take part in searches right now."""

    @abstractmethod
    def search(self, request: SearchRequest) -> list[SearchResult]:
        """Return flat results for the request. Raise on failure."""


@dataclass
class SourceOutcome:
    """What one source contributed to a fan-out."""

    source: str
    results: list[SearchResult] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
