from songhub.services.cache.item_store import ByteCache, ItemStore, SqlByteCache
from songhub.services.cache.manager import CacheManager
from songhub.services.cache.memory import MemoryCache
from songhub.services.cache.persistent import PersistentSearchCache

__all__ = [
    "ByteCache",
    "CacheManager",
    "ItemStore",
    "MemoryCache",
    "PersistentSearchCache",
    "SqlByteCache",
]
