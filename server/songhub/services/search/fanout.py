"""Concurrent fan-out of one request to several search sources."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, wait

from songhub.core.time import utcnow
from songhub.schemas.search import SearchRequest, SearchResult
from songhub.services.search.base import SearchSource, SourceOutcome, sanitize_source_error

logger = logging.getLogger(__name__)


def fan_out(
    sources: list[SearchSource],
    request: SearchRequest,
    executor: Executor,
    timeout: float | None = None,
) -> list[SourceOutcome]:
    """Query every source concurrently and wait for all of them.

    Outcomes come back in the order of ``sources`` regardless of which
    finished first. A source that raises, or is still running when
    ``timeout`` elapses, contributes an outcome with an error and no results.
    """
    if not sources:
        return []

    futures: list[tuple[SearchSource, Future[list[SearchResult]]]] = [
        (source, executor.submit(source.search, request)) for source in sources
    ]
    done, _ = wait([f for _, f in futures], timeout=timeout)

    outcomes: list[SourceOutcome] = []
    for source, future in futures:
        if future not in done:
            future.cancel()
            message = sanitize_source_error(TimeoutError())
            logger.warning("Source %s did not finish in time for %r", source.name, request.query)
            outcomes.append(SourceOutcome(source=source.name, error=message))
            continue

        try:
            results = future.result()
        except Exception as e:
            message = sanitize_source_error(e)
            logger.warning(
                "Source %s search failed for %r: %s (%s)",
                source.name,
                request.query,
                message,
                type(e).__name__,
            )
            outcomes.append(SourceOutcome(source=source.name, error=message))
            continue

        received_at = utcnow()
        for result in results:
            result.cached_at = received_at
        logger.debug(
            "Source %s returned %d results for %r", source.name, len(results), request.query
        )
        outcomes.append(SourceOutcome(source=source.name, results=list(results)))

    return outcomes

