"""
Unit tests for the TTL cache.
"""

from paperly.core.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestTTLCache:
    def test_get_returns_value_before_expiry(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set("k", "v")

        clock.now += 299
        assert cache.get("k") == "v"

    def test_entry_expires_after_ttl(self):
        clock = FakeClock()
        cache = TTLCache(300, clock=clock)
        cache.set("k", "v")

        clock.now += 300
        assert cache.get("k") is None
        assert "k" not in cache

    def test_set_restarts_the_ttl(self):
        clock = FakeClock()
        cache = TTLCache(10, clock=clock)
        cache.set("k", "old")
        clock.now += 8
        cache.set("k", "new")
        clock.now += 8
        assert cache.get("k") == "new"

    def test_invalidate_and_clear(self):
        cache = TTLCache(60, clock=FakeClock())
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0
