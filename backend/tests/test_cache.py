"""
Unit tests for the in-process query cache.

A fake clock drives expiry so nothing sleeps.
"""

from app.services.cache import QueryCache

from conftest import FakeClock


KEY = ("SELECT 1", ())
ROWS = [{"total": 1}]


class TestQueryCache:
    """TTL and opportunistic sweeping."""

    def test_miss_then_hit(self):
        cache = QueryCache(ttl_seconds=300, clock=FakeClock())
        assert cache.get(KEY) is None
        cache.put(KEY, ROWS)
        assert cache.get(KEY) == ROWS
        assert (cache.hits, cache.misses) == (1, 1)

    def test_hit_just_before_ttl(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=300, clock=clock)
        cache.put(KEY, ROWS)
        clock.advance(299.9)
        assert cache.get(KEY) == ROWS

    def test_expired_entry_is_a_miss_and_removed(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=300, clock=clock)
        cache.put(KEY, ROWS)
        clock.advance(300)
        assert cache.get(KEY) is None
        assert len(cache) == 0

    def test_contains_respects_ttl(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=10, clock=clock)
        cache.put(KEY, ROWS)
        assert KEY in cache
        clock.advance(11)
        assert KEY not in cache

    def test_keys_differ_by_params(self):
        cache = QueryCache(clock=FakeClock())
        cache.put(("SELECT ?", ("a",)), [{"v": "a"}])
        assert cache.get(("SELECT ?", ("b",))) is None

    def test_sweep_on_write_past_high_water_mark(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=10, max_entries=3, clock=clock)
        for i in range(3):
            cache.put((f"q{i}", ()), ROWS)
        clock.advance(20)
        cache.put(("fresh", ()), ROWS)
        # The three stale entries were swept by the write that crossed the mark.
        assert len(cache) == 1
        assert ("fresh", ()) in cache

    def test_no_sweep_below_high_water_mark(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=10, max_entries=5, clock=clock)
        cache.put(("old", ()), ROWS)
        clock.advance(20)
        cache.put(("new", ()), ROWS)
        assert len(cache) == 2

    def test_fresh_entries_survive_sweep(self):
        clock = FakeClock()
        cache = QueryCache(ttl_seconds=10, max_entries=1, clock=clock)
        cache.put(("a", ()), ROWS)
        cache.put(("b", ()), ROWS)
        assert len(cache) == 2
        assert cache.sweep() == 0

    def test_clear_and_stats(self):
        cache = QueryCache(ttl_seconds=60, clock=FakeClock())
        cache.put(KEY, ROWS)
        cache.get(KEY)
        assert cache.stats() == {"entries": 1, "hits": 1, "misses": 0, "ttl_seconds": 60}
        cache.clear()
        assert cache.stats()["entries"] == 0
