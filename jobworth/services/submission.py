from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from jobworth.core.errors import PersistenceError, ValidationError
from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter, timer
from jobworth.core.numeric import ensure_score, score_key
from jobworth.dedup.guard import DeduplicationGuard, DuplicateVerdict
from jobworth.services.client import ClientIdentity
from jobworth.services.ranking import RankBackend, RankResult, RankService
from jobworth.stats.authoritative import AuthoritativeStore, ScoreSample
from jobworth.stats.histogram import HistogramStore

__all__ = ["SubmissionOutcome", "SubmissionService"]

logger = get_logger("jobworth.services.submission", component="submission_service")


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    evaluation_id: Optional[str]
    score: float
    result: RankResult
    verdict: DuplicateVerdict
    histogram_updated: bool = False

    @property
    def from_cache(self) -> bool:
        return self.verdict.is_duplicate


class SubmissionService:
    """The only component that writes: authoritative row first, histogram second."""

    def __init__(
        self,
        store: AuthoritativeStore,
        histogram: HistogramStore,
        *,
        guard: DeduplicationGuard,
        ranking: RankService,
    ) -> None:
        self.store = store
        self.histogram = histogram
        self.guard = guard
        self.ranking = ranking

    def submit(
        self,
        form_data: Mapping[str, Any] | None,
        score: Any,
        client: ClientIdentity,
        *,
        backend: RankBackend = RankBackend.HISTOGRAM,
    ) -> SubmissionOutcome:
        if form_data is None:
            raise ValidationError("formData is required")
        value = ensure_score(score)

        verdict = self.guard.evaluate_submission(self.store, client.key, value)
        if verdict.is_duplicate:
            inc_counter(f"submission.{verdict.value}")
            logger.info(
                "duplicate_submission_blocked",
                extra={
                    "structured_data": {
                        "client_key": client.key,
                        "score_key": score_key(value),
                        "verdict": verdict.value,
                    }
                },
            )
            return SubmissionOutcome(
                evaluation_id=None,
                score=value,
                result=self.ranking.compute(value, backend),
                verdict=verdict,
            )

        with timer("submission.write"):
            sample = ScoreSample(score=value, occurred_at=self.guard.recency.now(), client_key=client.key)
            try:
                evaluation_id = self.store.insert(
                    sample,
                    input_data=dict(form_data),
                    client_info=client.as_info(),
                )
            except PersistenceError:
                self.guard.forget(client.key, value)
                raise
            # Not transactional with the insert: a failed increment is only drift
            histogram_updated = self.histogram.increment(value)
        if not histogram_updated:
            logger.warning(
                "submission_histogram_drift",
                extra={"structured_data": {"evaluation_id": evaluation_id, "score": value}},
            )

        inc_counter("submission.accepted")
        logger.info(
            "submission_accepted",
            extra={
                "structured_data": {
                    "evaluation_id": evaluation_id,
                    "score": value,
                    "client_key": client.key,
                }
            },
        )
        return SubmissionOutcome(
            evaluation_id=evaluation_id,
            score=value,
            result=self.ranking.compute(value, backend),
            verdict=verdict,
            histogram_updated=histogram_updated,
        )
