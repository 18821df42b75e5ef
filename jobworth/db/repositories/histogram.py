from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Mapping, Tuple

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from jobworth.db.repositories.base import Repository
from jobworth.models.histogram import ScoreHistogramBucket, ScoreHistogramCounter


@dataclass
class HistogramRepository(Repository[Session]):
    """Bucket/counter rows backing the database histogram.

    Increments are ``UPDATE ... SET count = count + 1`` so concurrent writers
    never lose an increment; the row is inserted on first use.
    """

    def increment_bucket(self, score_key: str, amount: int = 1) -> None:
        stmt = (
            update(ScoreHistogramBucket)
            .where(ScoreHistogramBucket.score_key == score_key)
            .values(
                count=ScoreHistogramBucket.count + amount,
                updated_at=datetime.now(timezone.utc),
            )
        )
        if self.db.execute(stmt).rowcount:
            return
        self._insert_or_retry(
            insert(ScoreHistogramBucket).values(
                score_key=score_key,
                count=amount,
                updated_at=datetime.now(timezone.utc),
            ),
            stmt,
        )

    def increment_counter(self, name: str, amount: int = 1) -> None:
        stmt = (
            update(ScoreHistogramCounter)
            .where(ScoreHistogramCounter.name == name)
            .values(value=ScoreHistogramCounter.value + amount)
        )
        if self.db.execute(stmt).rowcount:
            return
        self._insert_or_retry(
            insert(ScoreHistogramCounter).values(name=name, value=amount),
            stmt,
        )

    def _insert_or_retry(self, insert_stmt, update_stmt) -> None:
        if self.dialect_name == "sqlite":
            # The UPDATE already took the database write lock
            self.db.execute(insert_stmt)
            return
        # Another writer may create the row between our UPDATE and INSERT
        try:
            with self.db.begin_nested():
                self.db.execute(insert_stmt)
        except IntegrityError:
            self.db.execute(update_stmt)

    def fetch_buckets(self) -> List[Tuple[str, int]]:
        stmt = select(ScoreHistogramBucket.score_key, ScoreHistogramBucket.count)
        return [(str(key), int(count)) for key, count in self.db.execute(stmt).all()]

    def get_counter(self, name: str) -> int:
        stmt = select(ScoreHistogramCounter.value).where(ScoreHistogramCounter.name == name)
        value = self.db.execute(stmt).scalar_one_or_none()
        return int(value or 0)

    def replace_all(self, buckets: Mapping[str, int], counters: Mapping[str, int]) -> None:
        self.db.execute(delete(ScoreHistogramBucket))
        self.db.execute(delete(ScoreHistogramCounter))
        now = datetime.now(timezone.utc)
        if buckets:
            self.db.execute(
                insert(ScoreHistogramBucket),
                [
                    {"score_key": key, "count": int(count), "updated_at": now}
                    for key, count in buckets.items()
                ],
            )
        if counters:
            self.db.execute(
                insert(ScoreHistogramCounter),
                [{"name": name, "value": int(value)} for name, value in counters.items()],
            )
