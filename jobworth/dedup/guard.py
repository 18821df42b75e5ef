"""Two-layer duplicate suppression for score submissions.

Layer one is the process-local :class:`RecencyCache`, keyed by client and
score. Layer two asks the authoritative store whether the client submitted
anything at all inside the durable window. Both layers are advisory: a miss
only double-counts a sample, so every failure resolves to "not a duplicate".
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from jobworth.core.errors import PersistenceError
from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter
from jobworth.core.numeric import score_key
from jobworth.core.sentinels import is_known_client
from jobworth.dedup.recency import RecencyCache
from jobworth.stats.authoritative import AuthoritativeStore

__all__ = ["DuplicateVerdict", "DedupWindows", "DeduplicationGuard", "request_key"]

logger = get_logger("jobworth.dedup.guard", component="dedup_guard")


class DuplicateVerdict(str, enum.Enum):
    NOVEL = "novel"
    FAST_DUPLICATE = "fast_duplicate"
    DURABLE_DUPLICATE = "durable_duplicate"

    @property
    def is_duplicate(self) -> bool:
        return self is not DuplicateVerdict.NOVEL


@dataclass(frozen=True, slots=True)
class DedupWindows:
    submit: timedelta = timedelta(minutes=10)
    lookup: timedelta = timedelta(minutes=1)
    durable: timedelta = timedelta(minutes=10)


def request_key(client_key: str, score: float) -> str:
    """``"<client>-<score to 2 decimals>"``, the fast-layer cache key."""

    return f"{client_key}-{score_key(score)}"


class DeduplicationGuard:
    def __init__(
        self,
        recency: RecencyCache,
        *,
        windows: DedupWindows = DedupWindows(),
    ) -> None:
        self.recency = recency
        self.windows = windows

    def check_fast(self, client_key: str, score: float, window: timedelta, *, now: Optional[datetime] = None) -> bool:
        """True when the same client sent the same score within ``window``.

        Anonymous callers share the ``unknown`` key, so they throttle each other.
        """
        key = request_key(client_key, score)
        hit = self.recency.seen_within(key, window, now=now)
        if hit:
            inc_counter("dedup.fast.hit")
            logger.info("duplicate_request_fast", extra={"structured_data": {"request_key": key}})
        return hit

    def remember(self, client_key: str, score: float, *, now: Optional[datetime] = None) -> None:
        self.recency.touch(request_key(client_key, score), now=now)

    def forget(self, client_key: str, score: float) -> None:
        """Undo :meth:`remember`, used when the write it guarded did not happen."""
        self.recency.forget(request_key(client_key, score))

    def check_durable(self, store: AuthoritativeStore, client_key: str, *, now: Optional[datetime] = None) -> bool:
        """True when ``client_key`` has any stored evaluation inside the durable window.

        Skipped without identity; storage errors fail open.
        """
        if not is_known_client(client_key):
            inc_counter("dedup.durable.skipped")
            return False
        since = (now or self.recency.now()) - self.windows.durable
        try:
            recent = store.recent_submissions_by_client(client_key, since)
        except PersistenceError:
            inc_counter("dedup.durable.errors")
            logger.warning(
                "duplicate_check_failed_open",
                extra={"structured_data": {"client_key": client_key}},
            )
            return False
        if recent:
            inc_counter("dedup.durable.hit")
            logger.info(
                "duplicate_submission_durable",
                extra={
                    "structured_data": {
                        "client_key": client_key,
                        "recent_count": len(recent),
                        "latest_at": recent[0].occurred_at.isoformat(),
                    }
                },
            )
        return bool(recent)

    def evaluate_submission(
        self,
        store: AuthoritativeStore,
        client_key: str,
        score: float,
        *,
        now: Optional[datetime] = None,
    ) -> DuplicateVerdict:
        """Write-path check: fast layer, durable layer, then record the key.

        The key is re-recorded after every check, duplicate or not.
        """
        current = now or self.recency.now()
        try:
            if self.check_fast(client_key, score, self.windows.submit, now=current):
                return DuplicateVerdict.FAST_DUPLICATE
            if self.check_durable(store, client_key, now=current):
                return DuplicateVerdict.DURABLE_DUPLICATE
            return DuplicateVerdict.NOVEL
        finally:
            self.remember(client_key, score, now=current)

    def evaluate_lookup(
        self,
        store: AuthoritativeStore,
        client_key: str,
        score: float,
        *,
        now: Optional[datetime] = None,
    ) -> DuplicateVerdict:
        """Read-path check; never records anything."""
        current = now or self.recency.now()
        if self.check_fast(client_key, score, self.windows.lookup, now=current):
            return DuplicateVerdict.FAST_DUPLICATE
        if self.check_durable(store, client_key, now=current):
            return DuplicateVerdict.DURABLE_DUPLICATE
        return DuplicateVerdict.NOVEL
