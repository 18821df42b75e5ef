from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from jobworth.db.database import Base

__all__ = ["JobWorthEvaluation"]


def _new_id() -> str:
    return str(uuid4())


class JobWorthEvaluation(Base):
    """Append-only record of one submitted evaluation."""

    __tablename__ = "job_worth_evaluations"
    __table_args__ = (
        Index("ix_job_worth_evaluations_client_created", "client_key", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    input_data: Mapped[dict[str, Any]] = mapped_column(JSON)
    result_score: Mapped[float] = mapped_column(Float, index=True)
    client_key: Mapped[str] = mapped_column(String(255), default="unknown")
    client_info: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
