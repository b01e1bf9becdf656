"""Tests for the TTL snapshot cache."""
import threading

from app.modules.snapshot_cache import SnapshotCache


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


def test_get_missing_returns_none():
    cache = SnapshotCache()
    assert cache.get("congestion", "SGSIN") is None


def test_set_then_get_within_ttl():
    clock = FakeClock()
    cache = SnapshotCache(ttl_seconds=60, clock=clock)
    cache.set("congestion", "SGSIN", "snap")
    clock.now += 59.9
    assert cache.get("congestion", "SGSIN") == "snap"


def test_entry_expires_at_ttl():
    clock = FakeClock()
    cache = SnapshotCache(ttl_seconds=60, clock=clock)
    cache.set("congestion", "SGSIN", "snap")
    clock.now += 60
    assert cache.get("congestion", "SGSIN") is None
    assert len(cache) == 0


def test_keys_are_case_insensitive_on_port():
    cache = SnapshotCache()
    cache.set("congestion", "sgsin", "snap")
    assert cache.get("congestion", "SGSIN") == "snap"


def test_kinds_are_independent():
    cache = SnapshotCache()
    cache.set("congestion", "SGSIN", "a")
    cache.set("pre_arrival:48", "SGSIN", "b")
    assert cache.get("congestion", "SGSIN") == "a"
    assert cache.get("pre_arrival:48", "SGSIN") == "b"


def test_get_or_compute_reports_hits():
    cache = SnapshotCache()
    calls = []

    def compute():
        calls.append(1)
        return "value"

    assert cache.get_or_compute("congestion", "SGSIN", compute) == ("value", False)
    assert cache.get_or_compute("congestion", "SGSIN", compute) == ("value", True)
    assert len(calls) == 1


def test_invalidate_one_port_drops_all_kinds():
    cache = SnapshotCache()
    cache.set("congestion", "SGSIN", "a")
    cache.set("pre_arrival:48", "SGSIN", "b")
    cache.set("congestion", "NLRTM", "c")
    assert cache.invalidate("sgsin") == 2
    assert cache.get("congestion", "NLRTM") == "c"
    assert len(cache) == 1


def test_invalidate_everything():
    cache = SnapshotCache()
    cache.set("congestion", "SGSIN", "a")
    cache.set("congestion", "NLRTM", "b")
    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_concurrent_writers_do_not_corrupt():
    cache = SnapshotCache()

    def writer(n):
        for i in range(200):
            cache.set("congestion", f"P{n:04d}", i)
            cache.get("congestion", f"P{n:04d}")

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(cache) == 8
