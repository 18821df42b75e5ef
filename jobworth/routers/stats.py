from fastapi import APIRouter, Depends

from jobworth.dependencies import get_authoritative_store, get_histogram_store
from jobworth.stats.authoritative import AuthoritativeStore
from jobworth.stats.histogram import HistogramStore

router = APIRouter(tags=["stats"])


@router.get("/stats")
def get_stats(
    store: AuthoritativeStore = Depends(get_authoritative_store),
    histogram: HistogramStore = Depends(get_histogram_store),
):
    """Exact totals from the store next to the approximate histogram."""
    return {
        "success": True,
        "data": {
            "jobWorth": store.summary().as_dict(),
            "scoreDistribution": histogram.distribution().as_dict(),
        },
    }
