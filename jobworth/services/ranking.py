"""Rank and percentile computation over either statistics backend.

Rank is defined once for the whole service: the number of samples whose
score is strictly greater than the queried score, so ``0`` is the best
position and identical scores share a rank. Percentile is the share of
samples strictly below the queried score, ``0``-``100`` to one decimal.

The two backends answer the same question with different fidelity:

* ``histogram`` compares at two-decimal bucket precision against the
  approximate histogram and needs a large sample before it is shown;
* ``database`` counts exact rows in the authoritative store.

For a first-ever submission of ``2.5`` both report ``rank=0``,
``totalCount=1``, ``percentile="0.0"``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from jobworth.core.errors import PersistenceError
from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter
from jobworth.core.numeric import ensure_score, format_percentile
from jobworth.dedup.guard import DeduplicationGuard, DuplicateVerdict
from jobworth.stats.authoritative import AuthoritativeStore
from jobworth.stats.histogram import HistogramStore

__all__ = [
    "RankBackend",
    "RankResult",
    "RankLookupOutcome",
    "RankService",
    "DEFAULT_MIN_SAMPLES",
]

logger = get_logger("jobworth.services.ranking", component="rank_service")


class RankBackend(str, enum.Enum):
    HISTOGRAM = "histogram"
    DATABASE = "database"


DEFAULT_MIN_SAMPLES: Mapping[RankBackend, int] = MappingProxyType(
    {RankBackend.DATABASE: 1, RankBackend.HISTOGRAM: 1000}
)


@dataclass(frozen=True, slots=True)
class RankResult:
    percentile: str
    rank: int
    total_count: int
    lower_count: int
    show_ranking: bool
    backend: RankBackend
    degraded: bool = False

    @property
    def visible_percentile(self) -> Optional[str]:
        return self.percentile if self.show_ranking else None

    @property
    def visible_rank(self) -> Optional[int]:
        return self.rank if self.show_ranking else None

    @classmethod
    def degraded_result(cls, backend: RankBackend) -> "RankResult":
        return cls(
            percentile="0",
            rank=0,
            total_count=0,
            lower_count=0,
            show_ranking=False,
            backend=backend,
            degraded=True,
        )


@dataclass(frozen=True, slots=True)
class RankLookupOutcome:
    result: RankResult
    verdict: DuplicateVerdict

    @property
    def from_cache(self) -> bool:
        return self.verdict.is_duplicate


class RankService:
    """Computes :class:`RankResult` values; never mutates any store."""

    def __init__(
        self,
        store: AuthoritativeStore,
        histogram: HistogramStore,
        *,
        guard: DeduplicationGuard,
        min_samples: Mapping[RankBackend, int] = DEFAULT_MIN_SAMPLES,
    ) -> None:
        self.store = store
        self.histogram = histogram
        self.guard = guard
        self.min_samples = dict(min_samples)

    def should_show(self, backend: RankBackend, total_count: int) -> bool:
        return total_count >= self.min_samples.get(backend, 1)

    def compute(self, score: float, backend: RankBackend) -> RankResult:
        if backend is RankBackend.HISTOGRAM:
            result = self._from_histogram(score)
        else:
            result = self._from_database(score)
        inc_counter(f"rank.compute.{backend.value}")
        if result.degraded:
            inc_counter(f"rank.compute.{backend.value}.degraded")
        return result

    def lookup(self, score: float, client_key: str, backend: RankBackend) -> RankLookupOutcome:
        """Rank-only request: consult the guard read-only, then compute."""
        score = ensure_score(score)
        verdict = self.guard.evaluate_lookup(self.store, client_key, score)
        result = self.compute(score, backend)
        logger.debug(
            "rank_lookup",
            extra={
                "structured_data": {
                    "score": score,
                    "backend": backend.value,
                    "verdict": verdict.value,
                    "total_count": result.total_count,
                }
            },
        )
        return RankLookupOutcome(result=result, verdict=verdict)

    def _from_histogram(self, score: float) -> RankResult:
        snapshot = self.histogram.percentile_of(score)
        if not snapshot.success:
            return RankResult.degraded_result(RankBackend.HISTOGRAM)
        return RankResult(
            percentile=snapshot.percentile,
            rank=snapshot.higher_count,
            total_count=snapshot.total_count,
            lower_count=snapshot.lower_count,
            show_ranking=self.should_show(RankBackend.HISTOGRAM, snapshot.total_count),
            backend=RankBackend.HISTOGRAM,
        )

    def _from_database(self, score: float) -> RankResult:
        try:
            counts = self.store.exact_counts(score)
        except PersistenceError:
            logger.warning(
                "rank_database_degraded",
                extra={"structured_data": {"score": score}},
            )
            return RankResult.degraded_result(RankBackend.DATABASE)
        return RankResult(
            percentile=format_percentile(counts.lower_count, counts.total_count),
            rank=counts.higher_count,
            total_count=counts.total_count,
            lower_count=counts.lower_count,
            show_ranking=self.should_show(RankBackend.DATABASE, counts.total_count),
            backend=RankBackend.DATABASE,
        )
