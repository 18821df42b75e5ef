"""FastAPI dependency providers wiring stores, guard and services together.

Process-wide collaborators (recency cache, histogram store, guard) are
built once per process; anything touching the authoritative store is bound
to the request's database session.
"""

from __future__ import annotations

import hmac
from datetime import timedelta
from functools import lru_cache
from typing import Mapping

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from jobworth.core.config import settings
from jobworth.core.errors import PermissionDeniedError
from jobworth.db.database import SessionLocal, get_db
from jobworth.dedup.guard import DedupWindows, DeduplicationGuard
from jobworth.dedup.recency import RecencyCache
from jobworth.services.client import ClientIdentity, extract_client_identity
from jobworth.services.ranking import RankBackend, RankService
from jobworth.services.reconcile import HistogramReconciler
from jobworth.services.submission import SubmissionService
from jobworth.stats.authoritative import AuthoritativeStore
from jobworth.stats.histogram import DatabaseHistogramBackend, HistogramStore, InMemoryHistogramBackend

__all__ = [
    "dedup_windows",
    "min_samples",
    "get_recency_cache",
    "get_histogram_store",
    "get_dedup_guard",
    "get_authoritative_store",
    "get_rank_service",
    "get_submission_service",
    "get_reconciler",
    "get_client_identity",
    "require_admin",
    "reset_process_state",
]


def dedup_windows() -> DedupWindows:
    return DedupWindows(
        submit=timedelta(seconds=settings.submit_dedup_window_seconds),
        lookup=timedelta(seconds=settings.lookup_dedup_window_seconds),
        durable=timedelta(seconds=settings.durable_dedup_window_seconds),
    )


def min_samples() -> Mapping[RankBackend, int]:
    return {
        RankBackend.DATABASE: settings.min_samples_database,
        RankBackend.HISTOGRAM: settings.min_samples_histogram,
    }


@lru_cache
def get_recency_cache() -> RecencyCache:
    windows = dedup_windows()
    return RecencyCache(
        soft_capacity=settings.recency_soft_capacity,
        hard_capacity=settings.recency_hard_capacity,
        sweep_window=max(windows.submit, windows.lookup),
    )


@lru_cache
def get_histogram_store() -> HistogramStore:
    if settings.histogram_backend == "memory":
        return HistogramStore(InMemoryHistogramBackend())
    return HistogramStore(DatabaseHistogramBackend(SessionLocal))


@lru_cache
def get_dedup_guard() -> DeduplicationGuard:
    return DeduplicationGuard(get_recency_cache(), windows=dedup_windows())


def get_authoritative_store(db: Session = Depends(get_db)) -> AuthoritativeStore:
    return AuthoritativeStore(db)


def get_rank_service(
    store: AuthoritativeStore = Depends(get_authoritative_store),
    histogram: HistogramStore = Depends(get_histogram_store),
    guard: DeduplicationGuard = Depends(get_dedup_guard),
) -> RankService:
    return RankService(store, histogram, guard=guard, min_samples=min_samples())


def get_submission_service(
    store: AuthoritativeStore = Depends(get_authoritative_store),
    histogram: HistogramStore = Depends(get_histogram_store),
    guard: DeduplicationGuard = Depends(get_dedup_guard),
    ranking: RankService = Depends(get_rank_service),
) -> SubmissionService:
    return SubmissionService(store, histogram, guard=guard, ranking=ranking)


def get_reconciler(
    store: AuthoritativeStore = Depends(get_authoritative_store),
    histogram: HistogramStore = Depends(get_histogram_store),
) -> HistogramReconciler:
    return HistogramReconciler(store, histogram)


def get_client_identity(request: Request) -> ClientIdentity:
    peer = request.client.host if request.client else None
    return extract_client_identity(request.headers, peer)


def require_admin(x_admin_token: str | None = Header(default=None)) -> None:
    expected = settings.admin_token
    if not expected:
        raise PermissionDeniedError("Admin routes are disabled")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise PermissionDeniedError()


def reset_process_state() -> None:
    """Drop the cached process-wide collaborators (tests and reconfiguration)."""

    get_dedup_guard.cache_clear()
    get_recency_cache.cache_clear()
    get_histogram_store.cache_clear()
