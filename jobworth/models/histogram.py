from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from jobworth.db.database import Base

__all__ = ["ScoreHistogramBucket", "ScoreHistogramCounter", "SCORE_COUNT_KEY"]

SCORE_COUNT_KEY = "score_count"


class ScoreHistogramBucket(Base):
    """Occurrence count for one rounded score (two decimals, stored as text)."""

    __tablename__ = "score_histogram_buckets"

    # Wide enough for the largest finite float at two decimals
    score_key: Mapped[str] = mapped_column(String(320), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class ScoreHistogramCounter(Base):
    """Named running totals kept next to the buckets (``score_count``)."""

    __tablename__ = "score_histogram_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, default=0)
