"""Tests for the result cache."""

from mediascout.core.cache import ResultCache


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestResultCache:

    def test_hit_and_expiry(self):
        clock = FakeClock()
        cache = ResultCache(ttl=10.0, clock=clock)
        key = ResultCache.make_key("mod", "search", "frieren")

        cache.set(key, ["item"])
        clock.now = 9.9
        assert cache.get(key) == ["item"]

        clock.now = 10.0
        assert cache.get(key) is None
        assert len(cache) == 0
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    def test_last_write_wins(self):
        cache = ResultCache()
        key = ResultCache.make_key("mod", "streams", "/watch/1")
        cache.set(key, "first")
        cache.set(key, "second")
        assert cache.get(key) == "second"

    def test_zero_ttl_disables(self):
        cache = ResultCache(ttl=0)
        key = ResultCache.make_key("mod", "search", "x")
        cache.set(key, "value")
        assert cache.get(key) is None

    def test_invalidate_by_module(self):
        cache = ResultCache()
        cache.set(ResultCache.make_key("a", "search", "x"), 1)
        cache.set(ResultCache.make_key("a", "details", "/1"), 2)
        cache.set(ResultCache.make_key("b", "search", "x"), 3)

        assert cache.invalidate("a") == 2
        assert len(cache) == 1
        assert cache.invalidate() == 1

    def test_purge_expired(self):
        clock = FakeClock()
        cache = ResultCache(ttl=5.0, clock=clock)
        cache.set(ResultCache.make_key("a", "search", "old"), 1)
        clock.now = 3.0
        cache.set(ResultCache.make_key("a", "search", "new"), 2)

        clock.now = 6.0
        assert cache.purge_expired() == 1
        assert cache.get(ResultCache.make_key("a", "search", "new")) == 2
