from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from jobworth.core.errors import PersistenceError
from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter, timer
from jobworth.core.sentinels import is_known_client
from jobworth.db.repositories.evaluations import EvaluationRepository
from jobworth.models.evaluation import JobWorthEvaluation

__all__ = [
    "ScoreSample",
    "ExactCounts",
    "EvaluationSummary",
    "SCORE_RANGES",
    "AuthoritativeStore",
]

logger = get_logger("jobworth.stats.authoritative", component="authoritative_store")

# (label, inclusive lower bound, exclusive upper bound)
SCORE_RANGES: Tuple[Tuple[str, float, float | None], ...] = (
    ("0-0.6", 0.0, 0.6),
    ("0.6-1.0", 0.6, 1.0),
    ("1.0-1.8", 1.0, 1.8),
    ("1.8-2.5", 1.8, 2.5),
    ("2.5-3.2", 2.5, 3.2),
    ("3.2-4.0", 3.2, 4.0),
    ("4.0+", 4.0, None),
)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class ScoreSample:
    """Immutable fact: one score submitted by one client at one instant."""

    score: float
    occurred_at: datetime
    client_key: str

    @classmethod
    def from_row(cls, row: JobWorthEvaluation) -> "ScoreSample":
        return cls(
            score=float(row.result_score),
            occurred_at=_as_utc(row.created_at),
            client_key=row.client_key,
        )


@dataclass(frozen=True, slots=True)
class ExactCounts:
    total_count: int
    lower_count: int
    higher_count: int


@dataclass(frozen=True, slots=True)
class EvaluationSummary:
    total: int
    average_score: float
    count_by_score_range: Tuple[Tuple[str, int], ...]

    def as_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "avgScore": self.average_score,
            "countByScoreRange": [
                {"range": label, "count": count} for label, count in self.count_by_score_range
            ],
        }


class AuthoritativeStore:
    """Exact, durable view over every stored evaluation.

    Each aggregate is its own query; ``count_total`` and ``count_below`` may
    observe different snapshots under concurrent inserts.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._repo = EvaluationRepository(db)

    @contextmanager
    def _storage_call(self, operation: str, **fields: Any) -> Iterator[None]:
        try:
            with timer(f"authoritative.{operation}"):
                yield
        except SQLAlchemyError as exc:
            self.db.rollback()
            inc_counter(f"authoritative.{operation}.failures")
            logger.error(
                "authoritative_store_failed",
                extra={"structured_data": {"operation": operation, "error": str(exc), **fields}},
            )
            raise PersistenceError() from exc

    def insert(
        self,
        sample: ScoreSample,
        *,
        input_data: dict[str, Any],
        client_info: Optional[dict[str, Any]] = None,
    ) -> str:
        """Persist ``sample`` and commit; returns the generated identifier."""
        with self._storage_call("insert", score=sample.score):
            entity = self._repo.add(
                score=sample.score,
                input_data=input_data,
                client_key=sample.client_key,
                client_info=client_info,
                created_at=sample.occurred_at,
            )
            evaluation_id = entity.id
            self.db.commit()
        inc_counter("authoritative.insert")
        return evaluation_id

    def count_total(self) -> int:
        with self._storage_call("count_total"):
            return self._repo.count_total()

    def count_below(self, score: float) -> int:
        with self._storage_call("count_below", score=score):
            return self._repo.count_below(score)

    def count_above(self, score: float) -> int:
        with self._storage_call("count_above", score=score):
            return self._repo.count_above(score)

    def exact_counts(self, score: float) -> ExactCounts:
        return ExactCounts(
            total_count=self.count_total(),
            lower_count=self.count_below(score),
            higher_count=self.count_above(score),
        )

    def recent_submissions_by_client(self, client_key: str | None, since: datetime) -> List[ScoreSample]:
        """Samples from ``client_key`` at or after ``since``; empty for unknown clients."""
        if not is_known_client(client_key):
            return []
        with self._storage_call("recent_by_client", client_key=client_key):
            rows = self._repo.recent_for_client(str(client_key), since)
        return [ScoreSample.from_row(row) for row in rows]

    def fetch_by_id(self, evaluation_id: str) -> Optional[JobWorthEvaluation]:
        with self._storage_call("fetch_by_id", evaluation_id=evaluation_id):
            return self._repo.get_by_id(evaluation_id)

    def latest(self, limit: int = 10) -> List[JobWorthEvaluation]:
        with self._storage_call("latest", limit=limit):
            return self._repo.latest(limit)

    def iter_scores(self) -> List[float]:
        with self._storage_call("iter_scores"):
            return list(self._repo.iter_scores())

    def summary(self) -> EvaluationSummary:
        with self._storage_call("summary"):
            total = self._repo.count_total()
            average = self._repo.average_score()
            ranges = tuple(
                (label, self._repo.count_in_range(lower, upper)) for label, lower, upper in SCORE_RANGES
            )
        return EvaluationSummary(total=total, average_score=average, count_by_score_range=ranges)
