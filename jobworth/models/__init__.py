from __future__ import annotations

from .evaluation import JobWorthEvaluation
from .histogram import SCORE_COUNT_KEY, ScoreHistogramBucket, ScoreHistogramCounter

__all__ = [
    "JobWorthEvaluation",
    "ScoreHistogramBucket",
    "ScoreHistogramCounter",
    "SCORE_COUNT_KEY",
]
