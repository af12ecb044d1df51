"""Process-local LRU cache for search results (tier 1).

Entries live in a fixed arena of slots linked by prev/next indices, with a
dict from cache key to slot index. Slot 0..capacity-1 are reused through a
free list, so the cache never allocates past its capacity.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from songhub.core.time import utcnow
from songhub.schemas.search import SearchResult

logger = logging.getLogger(__name__)

_NIL = -1


@dataclass
class _Slot:
    key: str = ""
    results: list[SearchResult] = field(default_factory=list)
    expires_at: datetime | None = None
    prev: int = _NIL
    next: int = _NIL


class MemoryCache:
    """Bounded LRU with absolute per-entry expiry.

    Expired entries count as misses and are evicted when touched. One lock
    guards both the key map and the recency list. Stored and returned lists
    are copies, so callers may mutate what they get.
    """

    def __init__(self, capacity: int = 1000) -> None:
        self.capacity = max(1, capacity)
        self._slots = [_Slot() for _ in range(self.capacity)]
        self._index: dict[str, int] = {}
        self._free = list(range(self.capacity - 1, -1, -1))
        self._head = _NIL  # most recently used
        self._tail = _NIL  # least recently used
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    # Linked-list helpers; callers hold the lock

    def _unlink(self, idx: int) -> None:
        slot = self._slots[idx]
        if slot.prev != _NIL:
            self._slots[slot.prev].next = slot.next
        else:
            self._head = slot.next
        if slot.next != _NIL:
            self._slots[slot.next].prev = slot.prev
        else:
            self._tail = slot.prev
        slot.prev = slot.next = _NIL

    def _push_front(self, idx: int) -> None:
        slot = self._slots[idx]
        slot.prev = _NIL
        slot.next = self._head
        if self._head != _NIL:
            self._slots[self._head].prev = idx
        self._head = idx
        if self._tail == _NIL:
            self._tail = idx

    def _release(self, idx: int) -> None:
        slot = self._slots[idx]
        self._unlink(idx)
        del self._index[slot.key]
        slot.key = ""
        slot.results = []
        slot.expires_at = None
        self._free.append(idx)

    def get(self, key: str) -> list[SearchResult] | None:
        with self._lock:
            idx = self._index.get(key)
            if idx is None:
                self._misses += 1
                return None
            slot = self._slots[idx]
            if slot.expires_at is not None and utcnow() >= slot.expires_at:
                self._release(idx)
                self._misses += 1
                return None
            self._unlink(idx)
            self._push_front(idx)
            self._hits += 1
            return [r.model_copy(deep=True) for r in slot.results]

    def contains(self, key: str) -> bool:
        """Live-entry check that neither promotes the entry nor counts as a hit."""
        with self._lock:
            idx = self._index.get(key)
            if idx is None:
                return False
            expires_at = self._slots[idx].expires_at
            return expires_at is None or utcnow() < expires_at

    def set(self, key: str, results: list[SearchResult], ttl_seconds: float) -> None:
        expires_at = utcnow() + timedelta(seconds=ttl_seconds)
        copies = [r.model_copy(deep=True) for r in results]
        with self._lock:
            idx = self._index.get(key)
            if idx is not None:
                self._unlink(idx)
            else:
                if not self._free:
                    victim = self._tail
                    logger.debug("Memory cache full, evicting %s", self._slots[victim].key)
                    self._release(victim)
                    self._evictions += 1
                idx = self._free.pop()
                self._index[key] = idx
            slot = self._slots[idx]
            slot.key = key
            slot.results = copies
            slot.expires_at = expires_at
            self._push_front(idx)

    def delete(self, key: str) -> bool:
        with self._lock:
            idx = self._index.get(key)
            if idx is None:
                return False
            self._release(idx)
            return True

    def clear(self) -> None:
        with self._lock:
            for idx in list(self._index.values()):
                self._release(idx)

    def size(self) -> int:
        with self._lock:
            return len(self._index)

    def cleanup_expired(self) -> int:
        """Evict every expired entry, returning how many were removed."""
        now = utcnow()
        removed = 0
        with self._lock:
            for idx in list(self._index.values()):
                expires_at = self._slots[idx].expires_at
                if expires_at is not None and now >= expires_at:
                    self._release(idx)
                    removed += 1
        return removed

    def stats(self) -> dict:
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._index),
                "capacity": self.capacity,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / total, 4) if total else 0.0,
            }
