from __future__ import annotations

import threading

from price_tracker.cache import NEVER_EXPIRES, TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_add_and_get() -> None:
    cache = TTLCache()
    cache.add("test", "yes! test")
    assert cache.get("test") == "yes! test"
    assert cache.get("missing") is None
    assert cache.get("missing", "fallback") == "fallback"


def test_entry_expires_after_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.add("k", "v", ttl=60)

    clock.now += 59
    assert cache.get("k") == "v"

    clock.now += 2
    assert cache.get("k") is None
    assert len(cache) == 0


def test_zero_ttl_never_expires() -> None:
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.add("k", "v", NEVER_EXPIRES)

    clock.now += 10 * 365 * 24 * 3600
    assert cache.get("k") == "v"


def test_delete() -> None:
    cache = TTLCache()
    cache.add("k", "v")
    cache.delete("k")
    cache.delete("never-added")
    assert "k" not in cache


def test_add_overwrites_and_resets_deadline() -> None:
    clock = FakeClock()
    cache = TTLCache(clock=clock)
    cache.add("k", "old", ttl=10)
    clock.now += 8
    cache.add("k", "new", ttl=10)
    clock.now += 8
    assert cache.get("k") == "new"


def test_max_size_evicts_least_recently_used() -> None:
    cache = TTLCache(max_size=2)
    cache.add("a", 1)
    cache.add("b", 2)
    cache.get("a")
    cache.add("c", 3)

    assert cache.get("b") is None
    assert cache.get("a") == 1
    assert cache.get("c") == 3


def test_concurrent_access() -> None:
    cache = TTLCache()

    def worker(i: int) -> None:
        for j in range(200):
            cache.add(f"test - {i} - {j}", f"value - {i} - {j}")
            assert cache.get(f"test - {i} - {j}") == f"value - {i} - {j}"

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(cache) == 2000
