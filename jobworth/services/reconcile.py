from __future__ import annotations

from dataclasses import dataclass

from jobworth.core.logging import get_logger
from jobworth.core.metrics import inc_counter
from jobworth.stats.authoritative import AuthoritativeStore
from jobworth.stats.histogram import HistogramStore

__all__ = ["DriftReport", "HistogramReconciler"]

logger = get_logger("jobworth.services.reconcile", component="reconcile")


@dataclass(frozen=True, slots=True)
class DriftReport:
    authoritative_total: int
    histogram_total: int
    histogram_recorded_total: int
    histogram_backend: str

    @property
    def drift(self) -> int:
        return self.authoritative_total - self.histogram_total

    def as_dict(self) -> dict[str, object]:
        return {
            "authoritativeTotal": self.authoritative_total,
            "histogramTotal": self.histogram_total,
            "histogramRecordedTotal": self.histogram_recorded_total,
            "histogramBackend": self.histogram_backend,
            "drift": self.drift,
        }


class HistogramReconciler:
    """Operator tooling that brings the histogram back in line with the store."""

    def __init__(self, store: AuthoritativeStore, histogram: HistogramStore) -> None:
        self.store = store
        self.histogram = histogram

    def drift_report(self) -> DriftReport:
        distribution = self.histogram.distribution()
        return DriftReport(
            authoritative_total=self.store.count_total(),
            histogram_total=distribution.total_count,
            histogram_recorded_total=distribution.recorded_total,
            histogram_backend=self.histogram.backend_name,
        )

    def rebuild(self) -> DriftReport:
        """Replay every stored score into the histogram and report the result.

        Submissions landing during the replay may be missed or double counted.
        """
        before = self.drift_report()
        folded = self.histogram.rebuild(self.store.iter_scores())
        inc_counter("histogram.rebuild")
        after = self.drift_report()
        logger.info(
            "histogram_reconciled",
            extra={"structured_data": {"folded": folded, "drift_before": before.drift, "drift_after": after.drift}},
        )
        return after
