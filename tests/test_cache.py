"""Tests for the SQLite search cache."""

from __future__ import annotations

import asyncio
import threading
import time
from types import SimpleNamespace

import pytest

from flavortown.core import cache as cache_module
from flavortown.core.cache import CachedSearch, SearchCache, SearchCacheStore


def _entry(query_hash="h1", *, entity_type="restaurant", entity_id="r1", ttl=3600.0, fetched_at=None, results=None):
    now = fetched_at if fetched_at is not None else time.time()
    return CachedSearch(
        query=f"query for {query_hash}",
        query_hash=query_hash,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_name="Mama's Kitchen",
        results=results if results is not None else [{"title": "t", "url": "u", "content": "c"}],
        fetched_at=now,
        expires_at=None if ttl is None else now + ttl,
    )


@pytest.fixture
def cache(tmp_path):
    store = SearchCache(str(tmp_path / "cache"))
    yield store
    store.close()


class TestCachedSearch:
    def test_is_expired(self):
        entry = _entry(ttl=-1)
        assert entry.is_expired()

    def test_never_expires_without_expiry(self):
        entry = _entry(ttl=None)
        assert not entry.is_expired()


class TestSearchCache:
    def test_implements_store_protocol(self, cache):
        assert isinstance(cache, SearchCacheStore)

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, cache):
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_put_then_get(self, cache):
        await cache.put(_entry("abc", results=[{"title": "Guy", "url": "https://x", "content": "Flavortown"}]))
        hit = await cache.get("abc")
        assert hit is not None
        assert hit.query_hash == "abc"
        assert hit.entity_id == "r1"
        assert hit.results == [{"title": "Guy", "url": "https://x", "content": "Flavortown"}]

    @pytest.mark.asyncio
    async def test_expired_rows_are_not_returned(self, cache):
        await cache.put(_entry("old", ttl=-10))
        assert await cache.get("old") is None

    @pytest.mark.asyncio
    async def test_newest_live_row_wins(self, cache):
        now = time.time()
        await cache.put(_entry("dup", fetched_at=now - 100, results=[{"title": "older"}]))
        await cache.put(_entry("dup", fetched_at=now, results=[{"title": "newer"}]))
        hit = await cache.get("dup")
        assert hit.results == [{"title": "newer"}]

    @pytest.mark.asyncio
    async def test_stats(self, cache):
        await cache.put(_entry("a", entity_type="restaurant"))
        await cache.put(_entry("b", entity_type="episode"))
        await cache.put(_entry("c", entity_type="restaurant", ttl=-5))
        stats = await cache.stats()
        assert stats.total == 3
        assert stats.by_type == {"restaurant": 2, "episode": 1}
        assert stats.by_source == {"tavily": 3}
        assert stats.expired == 1

    @pytest.mark.asyncio
    async def test_invalidate_by_type_and_id(self, cache):
        await cache.put(_entry("a", entity_id="r1"))
        await cache.put(_entry("b", entity_id="r2"))
        await cache.put(_entry("c", entity_type="city", entity_id="c1"))

        assert await cache.invalidate("restaurant", "r1") == 1
        assert await cache.get("a") is None
        assert await cache.get("b") is not None

        assert await cache.invalidate("restaurant") == 1
        assert (await cache.stats()).total == 1

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, cache):
        await cache.put(_entry("live"))
        await cache.put(_entry("dead", ttl=-1))
        assert cache.cleanup_expired() == 1
        assert (await cache.stats()).total == 1

    @pytest.mark.asyncio
    async def test_delete_all(self, cache):
        await cache.put(_entry("a"))
        await cache.put(_entry("b"))
        assert cache.delete_all() == 2
        assert (await cache.stats()).total == 0

    def test_creates_database_file(self, tmp_path):
        store = SearchCache(str(tmp_path / "nested" / "dir"))
        store.cleanup_expired()
        assert (tmp_path / "nested" / "dir" / "search_cache.db").exists()
        store.close()

    @pytest.mark.asyncio
    async def test_queries_run_off_the_event_loop_thread(self, cache, monkeypatch):
        threads = []
        original = cache._get

        def recording_get(query_hash):
            threads.append(threading.get_ident())
            return original(query_hash)

        monkeypatch.setattr(cache, "_get", recording_get)
        await cache.get("anything")

        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_concurrent_writes_and_reads(self, cache):
        await asyncio.gather(*(cache.put(_entry(f"h{i}", entity_id=f"r{i}")) for i in range(20)))

        hits = await asyncio.gather(*(cache.get(f"h{i}") for i in range(20)))

        assert [hit.entity_id for hit in hits] == [f"r{i}" for i in range(20)]
        assert (await cache.stats()).total == 20


class TestExpiryBoundary:
    @pytest.mark.asyncio
    async def test_row_expiring_now_is_expired_everywhere(self, cache, monkeypatch):
        now = 1_800_000_000.0
        monkeypatch.setattr(cache_module, "time", SimpleNamespace(time=lambda: now))
        await cache.put(_entry("edge", fetched_at=now - 60, ttl=60))

        assert await cache.get("edge") is None
        assert (await cache.stats()).expired == 1
        assert cache.cleanup_expired() == 1
