from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from jobworth.db.repositories.base import Repository
from jobworth.models.evaluation import JobWorthEvaluation


@dataclass
class EvaluationRepository(Repository[Session]):
    """Query patterns over ``job_worth_evaluations``."""

    def add(
        self,
        *,
        score: float,
        input_data: dict[str, Any],
        client_key: str,
        client_info: Optional[dict[str, Any]],
        created_at: datetime,
    ) -> JobWorthEvaluation:
        entity = JobWorthEvaluation(
            input_data=input_data,
            result_score=score,
            client_key=client_key,
            client_info=client_info,
            created_at=created_at,
        )
        self.db.add(entity)
        self.db.flush()
        return entity

    def get_by_id(self, evaluation_id: str) -> Optional[JobWorthEvaluation]:
        return self.db.get(JobWorthEvaluation, evaluation_id)

    def count_total(self) -> int:
        stmt = select(func.count()).select_from(JobWorthEvaluation)
        return int(self.db.execute(stmt).scalar_one() or 0)

    def count_below(self, score: float) -> int:
        stmt = (
            select(func.count())
            .select_from(JobWorthEvaluation)
            .where(JobWorthEvaluation.result_score < score)
        )
        return int(self.db.execute(stmt).scalar_one() or 0)

    def count_above(self, score: float) -> int:
        stmt = (
            select(func.count())
            .select_from(JobWorthEvaluation)
            .where(JobWorthEvaluation.result_score > score)
        )
        return int(self.db.execute(stmt).scalar_one() or 0)

    def count_in_range(self, lower: float, upper: float | None) -> int:
        """Count scores in ``[lower, upper)``; ``upper=None`` is unbounded."""
        stmt = (
            select(func.count())
            .select_from(JobWorthEvaluation)
            .where(JobWorthEvaluation.result_score >= lower)
        )
        if upper is not None:
            stmt = stmt.where(JobWorthEvaluation.result_score < upper)
        return int(self.db.execute(stmt).scalar_one() or 0)

    def average_score(self) -> float:
        stmt = select(func.avg(JobWorthEvaluation.result_score))
        value = self.db.execute(stmt).scalar_one_or_none()
        return float(value) if value is not None else 0.0

    def recent_for_client(self, client_key: str, since: datetime) -> List[JobWorthEvaluation]:
        stmt = (
            select(JobWorthEvaluation)
            .where(JobWorthEvaluation.client_key == client_key)
            .where(JobWorthEvaluation.created_at >= since)
            .order_by(JobWorthEvaluation.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def latest(self, limit: int = 10) -> List[JobWorthEvaluation]:
        stmt = (
            select(JobWorthEvaluation)
            .order_by(JobWorthEvaluation.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def iter_scores(self, batch_size: int = 1000) -> Iterator[float]:
        stmt = select(JobWorthEvaluation.result_score).execution_options(yield_per=batch_size)
        for score in self.db.execute(stmt).scalars():
            yield float(score)
