from datetime import datetime, timedelta, timezone

import pytest

from jobworth.dedup.recency import RecencyCache

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class _FakeClock:
    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


def test_seen_within_window_is_strict():
    cache = RecencyCache()
    cache.touch("a", now=T0)
    window = timedelta(minutes=10)

    assert cache.seen_within("a", window, now=T0 + timedelta(minutes=9, seconds=59))
    assert not cache.seen_within("a", window, now=T0 + timedelta(minutes=10))
    assert not cache.seen_within("missing", window, now=T0)


def test_seen_within_does_not_record():
    cache = RecencyCache()
    cache.seen_within("a", timedelta(minutes=1), now=T0)
    assert "a" not in cache
    assert len(cache) == 0


def test_touch_refreshes_timestamp_and_order():
    clock = _FakeClock(T0)
    cache = RecencyCache(clock=clock)
    cache.touch("a")
    clock.advance(minutes=5)
    cache.touch("b")
    clock.advance(minutes=1)
    cache.touch("a")
    assert cache.last_seen("a") == T0 + timedelta(minutes=6)


def test_soft_capacity_sweeps_only_expired_entries():
    cache = RecencyCache(soft_capacity=3, sweep_window=timedelta(minutes=10))
    cache.touch("old-1", now=T0)
    cache.touch("old-2", now=T0 + timedelta(minutes=1))
    cache.touch("fresh", now=T0 + timedelta(minutes=15))

    evicted = cache.touch("newest", now=T0 + timedelta(minutes=15))

    assert evicted == 2
    assert "old-1" not in cache and "old-2" not in cache
    assert "fresh" in cache and "newest" in cache


def test_soft_capacity_keeps_fresh_entries_above_limit():
    cache = RecencyCache(soft_capacity=2, sweep_window=timedelta(minutes=10))
    for i in range(5):
        cache.touch(f"k{i}", now=T0 + timedelta(seconds=i))
    assert len(cache) == 5


def test_hard_capacity_evicts_least_recently_seen():
    cache = RecencyCache(soft_capacity=2, hard_capacity=3)
    cache.touch("a", now=T0)
    cache.touch("b", now=T0)
    cache.touch("c", now=T0)
    cache.touch("a", now=T0)
    cache.touch("d", now=T0)

    assert len(cache) == 3
    assert "b" not in cache
    assert {"a", "c", "d"} == {k for k in ("a", "b", "c", "d") if k in cache}


def test_size_never_exceeds_hard_capacity():
    cache = RecencyCache(soft_capacity=10, hard_capacity=50)
    for i in range(500):
        cache.touch(f"k{i}", now=T0)
        assert len(cache) <= 50


def test_sweep_and_forget():
    cache = RecencyCache(sweep_window=timedelta(minutes=1))
    cache.touch("a", now=T0)
    cache.touch("b", now=T0 + timedelta(minutes=2))
    assert cache.sweep(now=T0 + timedelta(minutes=2)) == 1
    assert cache.forget("b") is True
    assert cache.forget("b") is False
    assert len(cache) == 0


def test_invalid_capacities_rejected():
    with pytest.raises(ValueError):
        RecencyCache(soft_capacity=0)
    with pytest.raises(ValueError):
        RecencyCache(soft_capacity=10, hard_capacity=5)
