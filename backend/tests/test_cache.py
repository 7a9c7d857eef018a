"""
Tests for the TTL cache.
"""

import pytest
from app.storage.kv_store import MemoryKeyValueStore
from app.utils.cache import CACHE_PREFIX, CacheManager, cached_fetch


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestCacheManager:
    """Test cache expiry and storage."""

    def test_expires_after_ttl(self):
        clock = FakeClock()
        cache = CacheManager(default_ttl=60, clock=clock)

        cache.set("products", [1, 2])
        assert cache.get("products") == [1, 2]

        clock.now += 61
        assert cache.get("products") is None
        assert cache.get("products", allow_stale=True) == [1, 2]

    def test_reads_back_from_store(self):
        """Test that entries survive a restart through the store."""
        store = MemoryKeyValueStore()
        clock = FakeClock()
        CacheManager(store, default_ttl=60, clock=clock).set("site_settings", {"general": {"taxRate": 0.08}})

        fresh = CacheManager(store, default_ttl=60, clock=clock)

        assert fresh.get("site_settings") == {"general": {"taxRate": 0.08}}
        assert f"{CACHE_PREFIX}site_settings" in store.keys()

    def test_invalidate_pattern(self):
        store = MemoryKeyValueStore({"whimsical-cart-v1": "[]"})
        cache = CacheManager(store)
        cache.set("products", [])
        cache.set("products_new", [])
        cache.set("site_settings", {})

        removed = cache.invalidate("products")

        assert removed == 2
        assert cache.get("products") is None
        assert cache.get("site_settings") == {}
        assert store.get("whimsical-cart-v1") == "[]"

    def test_corrupt_store_entry_ignored(self):
        store = MemoryKeyValueStore({f"{CACHE_PREFIX}products": "garbage"})
        assert CacheManager(store).get("products") is None


class TestCachedFetch:
    """Test fetch-through behaviour."""

    @pytest.mark.asyncio
    async def test_fetches_once(self):
        cache = CacheManager(default_ttl=60, clock=FakeClock())
        calls = []

        async def fetcher():
            calls.append(1)
            return {"ok": True}

        assert await cached_fetch(cache, "k", fetcher) == {"ok": True}
        assert await cached_fetch(cache, "k", fetcher) == {"ok": True}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_stale_value_on_failure(self):
        clock = FakeClock()
        cache = CacheManager(default_ttl=60, clock=clock)
        cache.set("k", "old")
        clock.now += 120

        async def failing():
            raise ConnectionError("offline")

        assert await cached_fetch(cache, "k", failing) == "old"

    @pytest.mark.asyncio
    async def test_failure_without_cache_raises(self):
        cache = CacheManager(clock=FakeClock())

        async def failing():
            raise ConnectionError("offline")

        with pytest.raises(ConnectionError):
            await cached_fetch(cache, "k", failing)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
