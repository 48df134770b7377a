"""Unit tests for the bounded KPI result cache."""

from datetime import timedelta

import pytest

import api.cache as cache_module
from api.cache import BoundedLRUCache


@pytest.fixture
def cache():
    return BoundedLRUCache(max_size=3, default_ttl_seconds=60, name="test")


class TestBoundedLRUCache:
    def test_get_and_set(self, cache):
        cache.set(("b1", "all"), {"value": 1})
        assert cache.get(("b1", "all")) == {"value": 1}
        assert cache.get(("b1", "missing")) is None

    def test_lru_eviction(self, cache):
        for i in range(3):
            cache.set(("b1", i), i)
        cache.get(("b1", 0))  # touch: 1 is now least recently used
        cache.set(("b1", 3), 3)
        assert ("b1", 1) not in cache
        assert ("b1", 0) in cache
        assert cache.get_stats()["evictions"] == 1

    def test_overwrite_does_not_evict(self, cache):
        for i in range(3):
            cache.set(("b1", i), i)
        cache.set(("b1", 2), "new")
        assert len(cache) == 3
        assert cache.get(("b1", 2)) == "new"

    def test_expiry(self, cache, monkeypatch):
        cache.set(("b1", "all"), 1, ttl_seconds=10)
        later = cache_module._now() + timedelta(seconds=11)
        monkeypatch.setattr(cache_module, "_now", lambda: later)
        assert cache.get(("b1", "all")) is None
        assert cache.get_stats()["expirations"] == 1

    def test_invalidate_batch(self, cache):
        cache.set(("b1", "a"), 1)
        cache.set(("b1", "b"), 2)
        cache.set(("b2", "a"), 3)
        assert cache.invalidate_batch("b1") == 2
        assert len(cache) == 1
        assert cache.get(("b2", "a")) == 3

    def test_get_or_set(self, cache):
        calls = []

        def factory():
            calls.append(1)
            return "computed"

        assert cache.get_or_set(("b1", "x"), factory) == "computed"
        assert cache.get_or_set(("b1", "x"), factory) == "computed"
        assert len(calls) == 1

    def test_stats(self, cache):
        cache.set(("b1", "a"), 1)
        cache.get(("b1", "a"))
        cache.get(("b1", "b"))
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["size"] == 1

    def test_clear(self, cache):
        cache.set(("b1", "a"), 1)
        assert cache.clear() == 1
        assert len(cache) == 0
