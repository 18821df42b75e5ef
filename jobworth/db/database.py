from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from time import perf_counter
from typing import Iterator

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import URL, make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from jobworth.core.config import settings
from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter, metrics_registry

logger = get_logger("jobworth.db", component="database")


class Base(DeclarativeBase):
    pass


@dataclass(frozen=True, slots=True)
class DatabaseGateway:
    """Encapsulates engine and session factory lifecycle."""

    engine: Engine
    session_factory: sessionmaker[Session]

    @contextmanager
    def session(self) -> Iterator[Session]:
        started = perf_counter()
        inc_counter("db.session.opens")
        session: Session = self.session_factory()
        try:
            yield session
        finally:
            metrics_registry.record("db.session.duration", (perf_counter() - started) * 1000.0)
            session.close()


def _engine_kwargs(url: URL) -> dict[str, object]:
    kwargs: dict[str, object] = {"echo": False, "future": True}
    pooled = {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": settings.db_pool_pre_ping,
    }
    if url.get_backend_name() != "sqlite":
        kwargs.update(pooled)
        return kwargs

    connect_args: dict[str, object] = {"check_same_thread": False}
    database = url.database or ""
    if database.startswith("file:"):
        connect_args["uri"] = True
    kwargs["connect_args"] = connect_args
    if database in ("", ":memory:", "file::memory:"):
        # One shared connection, otherwise every session sees an empty database
        kwargs["poolclass"] = StaticPool
    else:
        kwargs["poolclass"] = QueuePool
        kwargs.update(pooled)
    return kwargs


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **_engine_kwargs(make_url(database_url)))


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


engine: Engine = build_engine(settings.database_url)
SessionLocal: sessionmaker[Session] = build_session_factory(engine)
database_gateway = DatabaseGateway(engine=engine, session_factory=SessionLocal)


def get_db():
    with database_gateway.session() as session:
        yield session


__all__ = [
    "Base",
    "DatabaseGateway",
    "database_gateway",
    "engine",
    "SessionLocal",
    "build_engine",
    "build_session_factory",
    "get_db",
]
