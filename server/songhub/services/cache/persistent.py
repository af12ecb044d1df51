"""Database-backed search cache (tier 2).

One row per query in ``search_cache``, keyed by a hash of the request's
cache key. Rows survive restarts and carry hit counts used for cache warming.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections import Counter
from collections.abc import Callable

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from songhub.core.time import expires_in, utcnow
from songhub.models.search_cache import SearchCache
from songhub.schemas.search import SearchRequest, SearchResult

logger = logging.getLogger(__name__)


def query_hash(request: SearchRequest) -> str:
    return hashlib.sha256(request.cache_key().encode("utf-8")).hexdigest()


class PersistentSearchCache:
    """Search results persisted through SQLAlchemy.

    Database errors are logged and reported as misses (reads) or no-ops
    (writes); the search path never fails because this tier is down.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        ttl_seconds: int,
        negative_ttl_seconds: int,
    ) -> None:
        self._session_factory = session_factory
        self.ttl_seconds = ttl_seconds
        self.negative_ttl_seconds = negative_ttl_seconds

    def get(self, request: SearchRequest) -> list[SearchResult] | None:
        """Return cached results, ``[]`` for a negative entry, or None on miss."""
        key = query_hash(request)
        try:
            with self._session_factory() as db:
                entry = (
                    db.query(SearchCache)
                    .filter(SearchCache.query_hash == key, SearchCache.expires_at > utcnow())
                    .first()
                )
                if entry is None:
                    return None
                entry.hit_count += 1
                entry.updated_at = utcnow()
                results_json = entry.results_json
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Persistent cache read failed: %s", e)
            return None

        try:
            return [SearchResult.model_validate(r) for r in json.loads(results_json)]
        except (ValueError, ValidationError) as e:
            logger.warning("Discarding corrupt persistent cache entry %s: %s", key[:12], e)
            return None

    def store(self, request: SearchRequest, results: list[SearchResult]) -> bool:
        return self._upsert(request, results, negative=False)

    def store_negative(self, request: SearchRequest) -> bool:
        return self._upsert(request, [], negative=True)

    def _upsert(self, request: SearchRequest, results: list[SearchResult], negative: bool) -> bool:
        key = query_hash(request)
        ttl = self.negative_ttl_seconds if negative else self.ttl_seconds
        now = utcnow()
        results_json = json.dumps([r.model_dump(mode="json") for r in results])
        platforms = ",".join(sorted({r.platform for r in results}))

        try:
            with self._session_factory() as db:
                existing = db.query(SearchCache).filter(SearchCache.query_hash == key).first()
                if existing:
                    existing.results_json = results_json
                    existing.query_json = request.model_dump_json()
                    existing.platforms = platforms
                    existing.result_count = len(results)
                    existing.is_negative = negative
                    existing.updated_at = now
                    existing.expires_at = expires_in(ttl)
                else:
                    db.add(
                        SearchCache(
                            query_hash=key,
                            query_json=request.model_dump_json(),
                            results_json=results_json,
                            platforms=platforms,
                            result_count=len(results),
                            hit_count=1,
                            is_negative=negative,
                            created_at=now,
                            updated_at=now,
                            expires_at=expires_in(ttl),
                        )
                    )
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Persistent cache write failed: %s", e)
            return False
        return True

    def invalidate(self, request: SearchRequest) -> bool:
        """Delete the row for this request. Returns True if one was removed."""
        try:
            with self._session_factory() as db:
                deleted = (
                    db.query(SearchCache)
                    .filter(SearchCache.query_hash == query_hash(request))
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Persistent cache invalidate failed: %s", e)
            return False
        return deleted > 0

    def popular_queries(self, limit: int = 20) -> list[SearchRequest]:
        """Most frequently hit live, non-negative queries (seen more than once)."""
        try:
            with self._session_factory() as db:
                rows = (
                    db.query(SearchCache.query_json)
                    .filter(
                        SearchCache.expires_at > utcnow(),
                        SearchCache.hit_count > 1,
                        SearchCache.is_negative.is_(False),
                    )
                    .order_by(SearchCache.hit_count.desc(), SearchCache.updated_at.desc())
                    .limit(limit)
                    .all()
                )
        except SQLAlchemyError as e:
            logger.warning("Persistent cache popular query lookup failed: %s", e)
            return []

        queries = []
        for (query_json,) in rows:
            try:
                queries.append(SearchRequest.model_validate_json(query_json))
            except ValidationError:
                continue
        return queries

    def cleanup_expired(self) -> int:
        try:
            with self._session_factory() as db:
                deleted = (
                    db.query(SearchCache)
                    .filter(SearchCache.expires_at < utcnow())
                    .delete(synchronize_session=False)
                )
                db.commit()
        except SQLAlchemyError as e:
            logger.warning("Persistent cache cleanup failed: %s", e)
            return 0
        if deleted:
            logger.info("Removed %d expired search cache entries", deleted)
        return deleted

    def stats(self) -> dict:
        now = utcnow()
        try:
            with self._session_factory() as db:
                total, hits, avg_results = db.query(
                    func.count(SearchCache.id),
                    func.coalesce(func.sum(SearchCache.hit_count), 0),
                    func.coalesce(func.avg(SearchCache.result_count), 0),
                ).one()
                expired = (
                    db.query(func.count(SearchCache.id))
                    .filter(SearchCache.expires_at < now)
                    .scalar()
                )
                negative = (
                    db.query(func.count(SearchCache.id))
                    .filter(SearchCache.is_negative.is_(True))
                    .scalar()
                )
                platform_rows = db.query(SearchCache.platforms).all()
        except SQLAlchemyError as e:
            logger.warning("Persistent cache stats failed: %s", e)
            return {"error": "unavailable"}

        distribution: Counter[str] = Counter()
        for (platforms,) in platform_rows:
            distribution.update(p for p in (platforms or "").split(",") if p)

        return {
            "total_entries": total,
            "total_hits": int(hits),
            "avg_results": round(float(avg_results), 2),
            "expired": expired,
            "negative": negative,
            "platform_distribution": dict(distribution.most_common()),
        }
