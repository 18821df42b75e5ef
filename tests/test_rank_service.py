from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from jobworth.core.errors import InvalidScoreError, PersistenceError
from jobworth.dedup.guard import DeduplicationGuard, DuplicateVerdict
from jobworth.dedup.recency import RecencyCache
from jobworth.services.ranking import RankBackend, RankService
from jobworth.stats.authoritative import AuthoritativeStore, ScoreSample
from jobworth.stats.histogram import HistogramStore, InMemoryHistogramBackend

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class _FailingStore:
    def exact_counts(self, score):
        raise PersistenceError()


def _seed(store: AuthoritativeStore, histogram: HistogramStore, scores, client_prefix="seed"):
    for i, score in enumerate(scores):
        store.insert(
            ScoreSample(score=score, occurred_at=T0 + timedelta(seconds=i), client_key=f"{client_prefix}-{i}"),
            input_data={"i": i},
        )
        histogram.increment(score)


@pytest.fixture()
def histogram():
    return HistogramStore(InMemoryHistogramBackend())


@pytest.fixture()
def service(session, histogram):
    return RankService(AuthoritativeStore(session), histogram, guard=DeduplicationGuard(RecencyCache()))


def test_first_sample_is_rank_zero_on_both_backends(service, histogram):
    _seed(service.store, histogram, [2.5])

    database = service.compute(2.5, RankBackend.DATABASE)
    assert (database.rank, database.total_count, database.percentile) == (0, 1, "0.0")
    assert database.show_ranking

    approx = service.compute(2.5, RankBackend.HISTOGRAM)
    assert (approx.rank, approx.total_count, approx.percentile) == (0, 1, "0.0")
    assert not approx.show_ranking
    assert approx.visible_rank is None and approx.visible_percentile is None


def test_backends_agree_on_rank(service, histogram):
    _seed(service.store, histogram, [1.0, 1.0, 2.0, 3.0, 3.0, 4.5])
    for score in (0.5, 1.0, 2.0, 2.5, 3.0, 5.0):
        database = service.compute(score, RankBackend.DATABASE)
        approx = service.compute(score, RankBackend.HISTOGRAM)
        assert database.rank == approx.rank
        assert database.percentile == approx.percentile
        assert database.total_count == approx.total_count == 6


def test_rank_counts_strictly_greater(service, histogram):
    _seed(service.store, histogram, [1.0, 2.0, 2.0, 3.0])
    result = service.compute(2.0, RankBackend.DATABASE)
    assert result.rank == 1
    assert result.lower_count == 1
    assert result.percentile == "25.0"


def test_empty_population(service):
    result = service.compute(2.5, RankBackend.DATABASE)
    assert result.total_count == 0
    assert result.percentile == "0"
    assert not result.show_ranking


def test_histogram_gating_threshold(session):
    histogram = HistogramStore(InMemoryHistogramBackend())
    service = RankService(AuthoritativeStore(session), histogram, guard=DeduplicationGuard(RecencyCache()))
    histogram.rebuild([2.0] * 999)
    assert not service.compute(2.0, RankBackend.HISTOGRAM).show_ranking
    histogram.increment(2.0)
    result = service.compute(2.0, RankBackend.HISTOGRAM)
    assert result.show_ranking
    assert result.total_count == 1000


def test_min_samples_override(session, histogram):
    service = RankService(
        AuthoritativeStore(session),
        histogram,
        guard=DeduplicationGuard(RecencyCache()),
        min_samples={RankBackend.HISTOGRAM: 1, RankBackend.DATABASE: 5},
    )
    histogram.increment(1.0)
    assert service.compute(1.0, RankBackend.HISTOGRAM).show_ranking
    assert not service.should_show(RankBackend.DATABASE, 4)


def test_database_failure_degrades(histogram):
    service = RankService(_FailingStore(), histogram, guard=DeduplicationGuard(RecencyCache()))
    result = service.compute(2.5, RankBackend.DATABASE)
    assert result.degraded
    assert not result.show_ranking
    assert result.total_count == 0


def test_lookup_reports_recent_duplicate(service, histogram):
    _seed(service.store, histogram, [2.0])
    service.guard.remember("9.9.9.9", 2.0)

    outcome = service.lookup(2.0, "9.9.9.9", RankBackend.DATABASE)
    assert outcome.verdict is DuplicateVerdict.FAST_DUPLICATE
    assert outcome.from_cache
    assert outcome.result.total_count == 1


def test_lookup_never_mutates(service, histogram):
    _seed(service.store, histogram, [2.0])
    service.lookup(3.0, "9.9.9.8", RankBackend.DATABASE)
    assert service.store.count_total() == 1
    assert histogram.distribution().total_count == 1
    assert len(service.guard.recency) == 0


def test_lookup_rejects_invalid_score(service):
    with pytest.raises(InvalidScoreError):
        service.lookup(float("nan"), "9.9.9.7", RankBackend.DATABASE)
