from fastapi import APIRouter, Depends

from jobworth.core.metrics import get_counters, get_metrics
from jobworth.dependencies import get_recency_cache, get_reconciler, require_admin
from jobworth.dedup.recency import RecencyCache
from jobworth.services.reconcile import HistogramReconciler

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.get("/histogram/drift")
def histogram_drift(reconciler: HistogramReconciler = Depends(get_reconciler)):
    """Compare histogram totals against the authoritative row count."""
    return reconciler.drift_report().as_dict()


@router.post("/histogram/rebuild")
def rebuild_histogram(reconciler: HistogramReconciler = Depends(get_reconciler)):
    return reconciler.rebuild().as_dict()


@router.get("/metrics")
def metrics_snapshot(recency: RecencyCache = Depends(get_recency_cache)):
    return {
        "counters": get_counters(),
        "timings": get_metrics(),
        "recency_cache": {
            "size": len(recency),
            "soft_capacity": recency.soft_capacity,
            "hard_capacity": recency.hard_capacity,
        },
    }
