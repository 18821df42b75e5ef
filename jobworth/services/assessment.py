from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Tuple

__all__ = ["ScoreRating", "rate_score", "improvement_suggestions"]


@dataclass(frozen=True, slots=True)
class ScoreRating:
    key: str
    label: str


# (upper bound, inclusive?, rating); first matching row wins
_RATING_TIERS: Tuple[Tuple[float, bool, ScoreRating], ...] = (
    (0.6, False, ScoreRating("rating_terrible", "Terrible")),
    (1.0, False, ScoreRating("rating_poor", "Poor")),
    (1.8, True, ScoreRating("rating_average", "Average")),
    (2.5, True, ScoreRating("rating_good", "Good")),
    (3.2, True, ScoreRating("rating_great", "Great")),
    (4.0, True, ScoreRating("rating_excellent", "Excellent")),
)
_TOP_RATING = ScoreRating("rating_perfect", "Perfect")


def rate_score(score: float) -> ScoreRating:
    for bound, inclusive, rating in _RATING_TIERS:
        if score < bound or (inclusive and score == bound):
            return rating
    return _TOP_RATING


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# (form field, predicate, suggestion)
_SUGGESTION_RULES: Tuple[Tuple[str, Callable[[float], bool], str], ...] = (
    ("commuteHours", lambda v: v > 2, "Your commute is long; moving closer or finding a job nearer home would cut the daily strain."),
    ("workHours", lambda v: v > 10, "Your working day is long enough to affect health and focus; raise the schedule with your manager."),
    ("cityFactor", lambda v: v < 0.8, "Living costs in your city are high; look for better-paid roles or remote positions."),
    ("workEnvironment", lambda v: v < 1.0, "Your workplace conditions could be better; talk to HR or look for a better office setup."),
    ("leadership", lambda v: v < 0.9, "The relationship with your manager could improve; communicate proactively or consider a team change."),
    ("teamwork", lambda v: v < 1.0, "Team collaboration could be stronger; take part in team activities to build rapport."),
)
_GENERAL_SUGGESTION = "Your job looks well balanced overall; keep building skills to open up further opportunities."


def improvement_suggestions(input_data: Mapping[str, Any]) -> List[str]:
    """Suggestions derived from the stored form fields; unparseable fields are ignored."""
    suggestions: List[str] = []
    for field_name, predicate, text in _SUGGESTION_RULES:
        value = _as_float(input_data.get(field_name))
        if value is not None and predicate(value):
            suggestions.append(text)
    return suggestions or [_GENERAL_SUGGESTION]
