"""Per-item platform result cache (tier 3).

Each result is stored on its own under ``result:<platform>:<id>``, and a
per-platform manifest ``search:<platform>:<query>:<limit>`` lists the item
ids a query produced. A lookup reassembles whatever items are still alive,
so it can return partial results for a query whose full entry expired.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from songhub.core.time import expires_in, utcnow
from songhub.models.cache_item import CacheItem
from songhub.schemas.search import SearchRequest, SearchResult
from songhub.services.platform import PLATFORM_PRIORITY

logger = logging.getLogger(__name__)


@runtime_checkable
class ByteCache(Protocol):
    """Minimal key/value store with per-key TTL."""

    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes, ttl_seconds: float) -> bool: ...

    def delete(self, key: str) -> bool: ...

    def close(self) -> None: ...


class SqlByteCache:
    """ByteCache stored in the ``cache_items`` table.

    Errors are logged and reported as a miss or a failed write.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> bytes | None:
        try:
            with self._session_factory() as db:
                item = db.get(CacheItem, key)
                if item is None or item.expires_at <= utcnow():
                    return None
                return item.value
        except SQLAlchemyError as e:
            logger.warning("Item cache read failed for %s: %s", key, e)
            return None

    def set(self, key: str, value: bytes, ttl_seconds: float) -> bool:
        try:
            with self._session_factory() as db:
                item = db.get(CacheItem, key)
                if item is None:
                    item = CacheItem(key=key, value=value, created_at=utcnow())
                    db.add(item)
                item.value = value
                item.expires_at = expires_in(ttl_seconds)
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Item cache write failed for %s: %s", key, e)
            return False
        return True

    def delete(self, key: str) -> bool:
        try:
            with self._session_factory() as db:
                deleted = (
                    db.query(CacheItem)
                    .filter(CacheItem.key == key)
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Item cache delete failed for %s: %s", key, e)
            return False
        return deleted > 0

    def cleanup_expired(self) -> int:
        try:
            with self._session_factory() as db:
                deleted = (
                    db.query(CacheItem)
                    .filter(CacheItem.expires_at < utcnow())
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Item cache cleanup failed: %s", e)
            return 0
        return deleted

    def close(self) -> None:
        pass


def item_key(platform: str, result_id: str) -> str:
    return f"result:{platform}:{result_id}"


def manifest_key(platform: str, request: SearchRequest) -> str:
    query = request.ranking_query().lower()
    return f"search:{platform}:{query}:{request.effective_limit()}"


class ItemStore:
    """Stores and reassembles per-platform results over a ByteCache.

    Backend errors of any kind are logged and treated as a miss or a
    skipped write.
    """

    def __init__(self, backend: ByteCache, ttl_seconds: int) -> None:
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    def store(self, request: SearchRequest, results: list[SearchResult]) -> None:
        ids_by_platform: dict[str, list[str]] = {}
        try:
            for result in results:
                if result.source != "platform" or not result.id:
                    continue
                payload = result.model_dump_json().encode("utf-8")
                key = item_key(result.platform, result.id)
                if self.backend.set(key, payload, self.ttl_seconds):
                    ids_by_platform.setdefault(result.platform, []).append(result.id)

            for platform, ids in ids_by_platform.items():
                manifest = json.dumps(ids).encode("utf-8")
                self.backend.set(manifest_key(platform, request), manifest, self.ttl_seconds)
        except Exception as e:
            logger.warning("Item cache write failed for %r: %s", request.query, e)

    def lookup_platform(self, request: SearchRequest, platform: str) -> list[SearchResult]:
        """Live items recorded for ``platform`` under this request, in stored order."""
        try:
            raw = self.backend.get(manifest_key(platform, request))
        except Exception as e:
            logger.warning("Item cache read failed for %s: %s", platform, e)
            return []
        if raw is None:
            return []
        try:
            ids = json.loads(raw)
        except ValueError:
            ids = None
        if not isinstance(ids, list):
            logger.warning("Corrupt item manifest for %s, ignoring", platform)
            return []

        results = []
        for result_id in ids:
            try:
                payload = self.backend.get(item_key(platform, str(result_id)))
            except Exception as e:
                logger.warning("Item cache read failed for %s:%s: %s", platform, result_id, e)
                return results
            if payload is None:
                continue
            try:
                results.append(SearchResult.model_validate_json(payload))
            except ValidationError:
                logger.debug("Skipping corrupt cached item %s:%s", platform, result_id)
        return results

    def lookup(self, request: SearchRequest) -> list[SearchResult]:
        platforms = [request.platform] if request.platform else list(PLATFORM_PRIORITY)
        results: list[SearchResult] = []
        for platform in platforms:
            results.extend(self.lookup_platform(request, platform))
        return results

    def cleanup_expired(self) -> int:
        cleanup = getattr(self.backend, "cleanup_expired", None)
        if not callable(cleanup):
            return 0
        try:
            return cleanup()
        except Exception as e:
            logger.warning("Item cache cleanup failed: %s", e)
            return 0

    def close(self) -> None:
        try:
            self.backend.close()
        except Exception as e:
            logger.warning("Item cache close failed: %s", e)
