from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy.orm import Session


TSession = TypeVar("TSession", bound=Session)


@dataclass
class Repository(Generic[TSession]):
    """Lightweight base repository exposing a SQLAlchemy session."""

    db: TSession

    @property
    def dialect_name(self) -> str:
        bind = self.db.get_bind()
        return getattr(getattr(bind, "dialect", None), "name", "")
