import pytest

from hopelink.matching import geo
from hopelink.matching.cache import TTLCache

def test_hit_within_ttl_and_miss_after(clock):
    cache = TTLCache(10, clock=clock)
    calls = []

    def compute():
        calls.append(1)
        return len(calls)

    assert cache.get_or_compute(("k",), compute) == 1
    clock.advance(9.9)
    assert cache.get_or_compute(("k",), compute) == 1
    clock.advance(0.1)
    assert cache.get_or_compute(("k",), compute) == 2
    assert len(calls) == 2

def test_none_values_are_cached(clock):
    cache = TTLCache(10, clock=clock)
    calls = []
    cache.get_or_compute(("x",), lambda: calls.append(1))
    cache.get_or_compute(("x",), lambda: calls.append(1))
    assert calls == [1]

def test_tuple_keys_do_not_collide(clock):
    cache = TTLCache(10, clock=clock)
    cache.set(("donor", "1:2"), "a")
    cache.set(("donor:1", "2"), "b")
    assert cache.get(("donor", "1:2")) == "a"
    assert cache.get(("donor:1", "2")) == "b"

def test_invalidate_and_max_entries(clock):
    cache = TTLCache(10, clock=clock, max_entries=2)
    cache.set(1, "a")
    cache.set(2, "b")
    cache.set(3, "c")
    assert 1 not in cache
    assert len(cache) == 2
    cache.invalidate(2)
    assert 2 not in cache
    cache.invalidate()
    assert len(cache) == 0

@pytest.mark.anyio
async def test_async_compute(clock):
    cache = TTLCache(10, clock=clock)
    calls = []

    async def compute():
        calls.append(1)
        return 0.75

    assert await cache.aget_or_compute(("r",), compute) == 0.75
    assert await cache.aget_or_compute(("r",), compute) == 0.75
    assert calls == [1]

def test_distance_lookup_is_computed_once_within_ttl(matcher, clock, monkeypatch):
    calls = []
    real = geo.calculate_distance

    def spy(*args):
        calls.append(args)
        return real(*args)

    monkeypatch.setattr(geo, "calculate_distance", spy)

    first = matcher.scorer.cached_distance(14.5, 121.0, 14.51, 121.01)
    second = matcher.scorer.cached_distance(14.5, 121.0, 14.51, 121.01)
    assert first == second
    assert len(calls) == 1

    clock.advance(matcher.settings.distance_cache_ttl_s + 1)
    matcher.scorer.cached_distance(14.5, 121.0, 14.51, 121.01)
    assert len(calls) == 2

def test_missing_coordinates_share_a_cache_entry(matcher, monkeypatch):
    calls = []
    monkeypatch.setattr(geo, "calculate_distance", lambda *a: calls.append(a))
    assert matcher.scorer.cached_distance(None, 121.0, 14.5, 121.0) is None
    assert matcher.scorer.cached_distance(None, 121.0, 14.5, 121.0) is None
    assert len(calls) == 1
