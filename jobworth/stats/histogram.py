"""Approximate score histogram (rounded score -> occurrence count).

The histogram is a lossy, cache-style structure: scores are bucketed at two
decimals and the running totals are updated independently of the
authoritative evaluation table, so the two may drift apart. Every read path
degrades to a zero-valued result instead of raising; callers turn that into
``showRanking = false``.
"""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Mapping, Protocol, Tuple

from sqlalchemy.orm import Session, sessionmaker

from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter, timer
from jobworth.core.numeric import format_percentile, quantize, safe_div, score_key
from jobworth.db.repositories.histogram import HistogramRepository
from jobworth.models.histogram import SCORE_COUNT_KEY

__all__ = [
    "HistogramBackend",
    "InMemoryHistogramBackend",
    "DatabaseHistogramBackend",
    "HistogramEntry",
    "ScoreDistribution",
    "PercentileSnapshot",
    "HistogramStore",
]

logger = get_logger("jobworth.stats.histogram", component="histogram")


class HistogramBackend(Protocol):
    """Storage primitive behind :class:`HistogramStore`."""

    name: str

    def increment(self, key: str) -> None:
        ...

    def buckets(self) -> List[Tuple[str, int]]:
        ...

    def recorded_total(self) -> int:
        ...

    def replace(self, buckets: Mapping[str, int], total: int) -> None:
        ...


class InMemoryHistogramBackend:
    """Process-local backend; contents are lost on restart."""

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {}
        self._total = 0

    def increment(self, key: str) -> None:
        with self._lock:
            self._counts[key] = self._counts.get(key, 0) + 1
            self._total += 1

    def buckets(self) -> List[Tuple[str, int]]:
        with self._lock:
            return list(self._counts.items())

    def recorded_total(self) -> int:
        with self._lock:
            return self._total

    def replace(self, buckets: Mapping[str, int], total: int) -> None:
        with self._lock:
            self._counts = {key: int(count) for key, count in buckets.items()}
            self._total = int(total)


class DatabaseHistogramBackend:
    """Aggregate tables written on their own short transactions.

    Uses a session factory rather than the request session so that a
    histogram failure never rolls back the evaluation insert.
    """

    name = "database"

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def increment(self, key: str) -> None:
        with self._session_factory() as db, db.begin():
            repo = HistogramRepository(db)
            repo.increment_bucket(key)
            repo.increment_counter(SCORE_COUNT_KEY)

    def buckets(self) -> List[Tuple[str, int]]:
        with self._session_factory() as db:
            return HistogramRepository(db).fetch_buckets()

    def recorded_total(self) -> int:
        with self._session_factory() as db:
            return HistogramRepository(db).get_counter(SCORE_COUNT_KEY)

    def replace(self, buckets: Mapping[str, int], total: int) -> None:
        with self._session_factory() as db, db.begin():
            HistogramRepository(db).replace_all(buckets, {SCORE_COUNT_KEY: total})


@dataclass(frozen=True, slots=True)
class HistogramEntry:
    score_key: str
    count: int

    @property
    def value(self) -> Decimal:
        return Decimal(self.score_key)


@dataclass(frozen=True, slots=True)
class ScoreDistribution:
    entries: Tuple[HistogramEntry, ...] = ()
    total_count: int = 0
    recorded_total: int = 0
    average_score: float = 0.0
    success: bool = True

    def as_dict(self) -> dict[str, object]:
        return {
            "distribution": [{"score": e.score_key, "count": e.count} for e in self.entries],
            "totalCount": self.total_count,
            "recordedTotal": self.recorded_total,
            "averageScore": self.average_score,
        }


@dataclass(frozen=True, slots=True)
class PercentileSnapshot:
    percentile: str = "0"
    lower_count: int = 0
    higher_count: int = 0
    total_count: int = 0
    success: bool = True
    error: str | None = field(default=None, compare=False)


class HistogramStore:
    """Bucketed score distribution with degrade-on-failure reads."""

    def __init__(self, backend: HistogramBackend) -> None:
        self.backend = backend

    @property
    def backend_name(self) -> str:
        return self.backend.name

    def increment(self, score: float) -> bool:
        """Fold one score into its two-decimal bucket. Returns ``False`` on failure."""
        key = None
        try:
            key = score_key(score)
            with timer("histogram.increment"):
                self.backend.increment(key)
        except Exception as exc:
            inc_counter("histogram.increment.failures")
            logger.exception(
                "histogram_increment_failed",
                extra={"structured_data": {"score_key": key, "backend": self.backend_name, "error": str(exc)}},
            )
            return False
        inc_counter("histogram.increment")
        return True

    def distribution(self) -> ScoreDistribution:
        try:
            entries = self._entries()
            recorded_total = self.backend.recorded_total()
        except Exception as exc:
            logger.exception(
                "histogram_distribution_failed",
                extra={"structured_data": {"backend": self.backend_name, "error": str(exc)}},
            )
            return ScoreDistribution(success=False)
        total = sum(entry.count for entry in entries)
        weighted = sum((entry.value * entry.count for entry in entries), Decimal(0))
        return ScoreDistribution(
            entries=tuple(entries),
            total_count=total,
            recorded_total=recorded_total,
            average_score=safe_div(float(weighted), total),
        )

    def percentile_of(self, score: float) -> PercentileSnapshot:
        """Share of folded samples strictly below ``score``.

        The score is compared at bucket precision, so the caller's own bucket
        is never counted as lower: identical rounded scores share a rank.
        """
        try:
            target = quantize(score)
            with timer("histogram.percentile"):
                entries = self._entries()
        except Exception as exc:
            inc_counter("histogram.percentile.failures")
            logger.exception(
                "histogram_percentile_failed",
                extra={"structured_data": {"score": score, "backend": self.backend_name, "error": str(exc)}},
            )
            return PercentileSnapshot(success=False, error=str(exc))

        total = lower = higher = 0
        for entry in entries:
            total += entry.count
            if entry.value < target:
                lower += entry.count
            elif entry.value > target:
                higher += entry.count
        return PercentileSnapshot(
            percentile=format_percentile(lower, total),
            lower_count=lower,
            higher_count=higher,
            total_count=total,
        )

    def rebuild(self, scores: Iterable[float]) -> int:
        """Replace the histogram with ``scores``; returns the number folded in.

        Backend errors propagate: this is an operator action, not a request path.
        """
        counts: Counter[str] = Counter(score_key(score) for score in scores)
        total = sum(counts.values())
        with timer("histogram.rebuild"):
            self.backend.replace(dict(counts), total)
        logger.info(
            "histogram_rebuilt",
            extra={"structured_data": {"backend": self.backend_name, "buckets": len(counts), "total": total}},
        )
        return total

    def _entries(self) -> List[HistogramEntry]:
        entries: List[HistogramEntry] = []
        for key, count in self.backend.buckets():
            try:
                parsed = Decimal(key)
            except (InvalidOperation, TypeError):
                parsed = None
            if parsed is None or not parsed.is_finite():
                logger.warning("histogram_bucket_unparseable", extra={"structured_data": {"score_key": key}})
                continue
            if count > 0:
                entries.append(HistogramEntry(score_key=key, count=int(count)))
        entries.sort(key=lambda entry: entry.value)
        return entries
