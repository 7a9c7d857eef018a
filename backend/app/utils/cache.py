"""
TTL cache for remote lookups (site settings, catalog listings).

Entries live in memory and are mirrored to a key-value store so they
survive restarts. Expired entries are dropped on read.
"""

import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from app.core.config import settings
from app.core.errors import PersistenceWarning
from app.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "whimsical_cache_"


class CacheManager:
    """Memory + key-value store cache with per-entry expiry."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.time
    ):
        self.store = store
        self.default_ttl = default_ttl if default_ttl is not None else settings.CACHE_TTL_SECONDS
        self.clock = clock
        self._memory: Dict[str, Tuple[Any, float]] = {}

    def _key(self, key: str) -> str:
        return f"{CACHE_PREFIX}{key}"

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        cache_key = self._key(key)
        expires = self.clock() + (ttl if ttl is not None else self.default_ttl)
        self._memory[cache_key] = (value, expires)

        if self.store is None:
            return
        try:
            self.store.set(cache_key, json.dumps({"value": value, "expires": expires}, default=str))
        except (PersistenceWarning, TypeError) as e:
            logger.warning(f"Cache store unavailable for {key}: {e}")

    def get(self, key: str, allow_stale: bool = False) -> Optional[Any]:
        cache_key = self._key(key)
        now = self.clock()

        entry = self._memory.get(cache_key)
        if entry is None and self.store is not None:
            entry = self._load_from_store(cache_key)
            if entry is not None:
                self._memory[cache_key] = entry

        if entry is None:
            return None

        value, expires = entry
        if now > expires and not allow_stale:
            return None
        return value

    def _load_from_store(self, cache_key: str) -> Optional[Tuple[Any, float]]:
        try:
            raw = self.store.get(cache_key)
            if raw is None:
                return None
            stored = json.loads(raw)
            return stored["value"], float(stored["expires"])
        except (PersistenceWarning, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Error reading cache entry {cache_key}: {e}")
            return None

    def delete(self, key: str) -> None:
        cache_key = self._key(key)
        self._memory.pop(cache_key, None)
        if self.store is None:
            return
        try:
            self.store.remove(cache_key)
        except PersistenceWarning as e:
            logger.warning(f"Error deleting cache entry {key}: {e}")

    def invalidate(self, pattern: str) -> int:
        """Drop every entry whose key contains `pattern`. Returns the count removed."""
        keys = {k for k in self._memory if pattern in k}
        if self.store is not None:
            try:
                keys.update(k for k in self.store.keys() if k.startswith(CACHE_PREFIX) and pattern in k)
            except PersistenceWarning as e:
                logger.warning(f"Error invalidating cache: {e}")
        for cache_key in keys:
            self.delete(cache_key[len(CACHE_PREFIX):])
        return len(keys)


async def cached_fetch(
    cache: CacheManager,
    key: str,
    fetcher: Callable[[], Awaitable[Any]],
    ttl: Optional[float] = None
) -> Any:
    """
    Return a cached value, fetching it on a miss.

    If the fetch fails and an expired entry is still around, the stale
    value is returned instead of raising.
    """
    cached = cache.get(key)
    if cached is not None:
        return cached

    try:
        data = await fetcher()
    except Exception as e:
        stale = cache.get(key, allow_stale=True)
        if stale is not None:
            logger.warning(f"Using stale cache for {key}: {e}")
            return stale
        raise

    cache.set(key, data, ttl)
    return data
