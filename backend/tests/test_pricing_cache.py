import threading

import pytest

from capquote.services.pricing.cache import PricingCache
from capquote.services.pricing.errors import DataUnavailable


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_get_and_set_track_hits():
    cache = PricingCache("t", max_size=4)
    assert cache.get("a") is None
    cache.set("a", 1)
    assert cache.get("a") == 1
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hitRate"] == 0.5
    assert stats["size"] == 1
    assert stats["maxSize"] == 4


def test_lru_eviction_keeps_recently_used():
    cache = PricingCache("t", max_size=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert cache.stats()["evictions"] == 1


def test_ttl_expiry():
    clock = FakeClock()
    cache = PricingCache("t", ttl=10, clock=clock)
    cache.set("a", 1)
    clock.now = 9.9
    assert cache.get("a") == 1
    clock.now = 10.0
    assert cache.get("a") is None


def test_get_or_load_calls_loader_once():
    cache = PricingCache("t")
    calls = []

    def loader():
        calls.append(1)
        return "value"

    assert cache.get_or_load("k", loader) == "value"
    assert cache.get_or_load("k", loader) == "value"
    assert len(calls) == 1


def test_stale_entry_served_when_reload_fails(caplog):
    clock = FakeClock()
    cache = PricingCache("t", ttl=5, clock=clock)
    cache.set("k", "old")
    clock.now = 6

    def broken():
        raise DataUnavailable("store down")

    with caplog.at_level("WARNING"):
        assert cache.get_or_load("k", broken) == "old"
    assert cache.stats()["staleServed"] == 1
    assert "Serving stale t cache entry" in caplog.text


def test_data_unavailable_without_entry_propagates():
    cache = PricingCache("t")

    def broken():
        raise DataUnavailable("store down")

    with pytest.raises(DataUnavailable):
        cache.get_or_load("k", broken)


def test_invalidate_by_prefix():
    cache = PricingCache("t")
    cache.set("quote|v1|a", 1)
    cache.set("quote|v1|b", 2)
    cache.set("quote|v2|a", 3)
    assert cache.invalidate("quote|v1|") == 2
    assert len(cache) == 1
    assert cache.invalidate() == 1
    assert len(cache) == 0


def test_reset_stats():
    cache = PricingCache("t")
    cache.get("missing")
    cache.reset_stats()
    assert cache.stats()["misses"] == 0
    assert cache.stats()["hitRate"] == 0.0


def test_rejects_zero_size():
    with pytest.raises(ValueError):
        PricingCache("t", max_size=0)


def test_concurrent_access_is_consistent():
    cache = PricingCache("t", max_size=50)

    def worker(offset):
        for i in range(200):
            key = f"k{(i + offset) % 80}"
            cache.get_or_load(key, lambda: key)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stats = cache.stats()
    assert stats["hits"] + stats["misses"] == 1600
    assert len(cache) <= 50
