from jobworth.db.repositories.evaluations import EvaluationRepository
from jobworth.db.repositories.histogram import HistogramRepository

__all__ = [
    "EvaluationRepository",
    "HistogramRepository",
]
