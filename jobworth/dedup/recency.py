from __future__ import annotations

import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter

__all__ = ["Clock", "utc_now", "RecencyCache"]

logger = get_logger("jobworth.dedup.recency", component="recency_cache")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RecencyCache:
    """Process-local ``request_key -> last_seen_at`` map with bounded size.

    Entries are kept in last-seen order (oldest first), so expiry sweeps and
    least-recently-seen eviction only ever look at the head of the map.

    Eviction policy:
      * exceeding ``soft_capacity`` on insert sweeps every entry older than
        the sweep window; nothing else triggers a sweep, so the map may sit
        above ``soft_capacity`` while its entries are still fresh;
      * exceeding ``hard_capacity`` drops least-recently-seen entries until
        the map is back at ``hard_capacity``, fresh or not.
    """

    def __init__(
        self,
        *,
        soft_capacity: int = 1000,
        hard_capacity: Optional[int] = None,
        sweep_window: timedelta = timedelta(minutes=10),
        clock: Clock = utc_now,
    ) -> None:
        if soft_capacity < 1:
            raise ValueError("soft_capacity must be >= 1")
        if hard_capacity is not None and hard_capacity < soft_capacity:
            raise ValueError("hard_capacity must be >= soft_capacity")
        self.soft_capacity = soft_capacity
        self.hard_capacity = hard_capacity
        self.sweep_window = sweep_window
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, datetime]" = OrderedDict()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def now(self) -> datetime:
        return self._clock()

    def last_seen(self, key: str) -> Optional[datetime]:
        with self._lock:
            return self._entries.get(key)

    def seen_within(self, key: str, window: timedelta, *, now: Optional[datetime] = None) -> bool:
        """True when ``key`` was recorded less than ``window`` ago. Read-only."""
        current = now or self._clock()
        with self._lock:
            seen_at = self._entries.get(key)
        if seen_at is None:
            return False
        return current - seen_at < window

    def touch(self, key: str, *, now: Optional[datetime] = None) -> int:
        """Record ``key`` as seen now; returns how many entries were evicted."""
        current = now or self._clock()
        with self._lock:
            self._entries[key] = current
            self._entries.move_to_end(key)
            evicted = 0
            if len(self._entries) > self.soft_capacity:
                evicted += self._sweep_locked(current)
            if self.hard_capacity is not None:
                while len(self._entries) > self.hard_capacity:
                    self._entries.popitem(last=False)
                    evicted += 1
        if evicted:
            inc_counter("dedup.recency.evicted", evicted)
            logger.debug(
                "recency_cache_evicted",
                extra={"structured_data": {"evicted": evicted, "size": len(self)}},
            )
        return evicted

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def sweep(self, *, now: Optional[datetime] = None) -> int:
        """Drop every entry older than the sweep window regardless of size."""
        current = now or self._clock()
        with self._lock:
            return self._sweep_locked(current)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _sweep_locked(self, now: datetime) -> int:
        removed = 0
        while self._entries:
            oldest_key = next(iter(self._entries))
            if now - self._entries[oldest_key] <= self.sweep_window:
                break
            del self._entries[oldest_key]
            removed += 1
        return removed
