"""Numeric helpers shared by the statistics backends.

Bucket keys and percentile strings are produced here so the histogram, the
authoritative store and the recency cache all agree on precision and
rounding (decimal half-up, applied to the shortest repr of the float).
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

from jobworth.core.errors import InvalidScoreError

__all__ = [
    "SCORE_DECIMALS",
    "PERCENTILE_DECIMALS",
    "safe_div",
    "quantize",
    "score_key",
    "format_percentile",
    "ensure_score",
]


SCORE_DECIMALS = 2
PERCENTILE_DECIMALS = 1


def safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Divide, returning ``default`` when the denominator is zero.

    Example:
        >>> safe_div(10, 2)
        5.0
        >>> safe_div(10, 0)
        0.0
    """
    if denominator == 0:
        return default
    return numerator / denominator


def quantize(value: float, decimals: int = SCORE_DECIMALS) -> Decimal:
    """Round ``value`` half-up to ``decimals`` places as a ``Decimal``.

    Example:
        >>> quantize(2.345)
        Decimal('2.35')
        >>> quantize(1, 2)
        Decimal('1.00')
        >>> quantize(-0.0)
        Decimal('0.00')

    Precision grows with the magnitude, so very large finite scores keep
    every integer digit instead of overflowing the default context.
    """
    exact = Decimal(str(value))
    quantizer = Decimal(10) ** -decimals
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, exact.adjusted() + decimals + 2)
        result = exact.quantize(quantizer, rounding=ROUND_HALF_UP)
    # -0.0 shares the zero bucket
    return result.copy_abs() if result.is_zero() else result


def score_key(score: float) -> str:
    """Histogram bucket / request-key representation of a score (2 decimals)."""

    return str(quantize(score, SCORE_DECIMALS))


def format_percentile(lower_count: int, total_count: int) -> str:
    """Percentile of ``lower_count`` out of ``total_count`` as a 1-decimal string.

    An empty population yields ``"0"`` rather than ``"0.0"``.
    """
    if total_count <= 0:
        return "0"
    value = safe_div(lower_count, total_count) * 100.0
    return str(quantize(value, PERCENTILE_DECIMALS))


def ensure_score(value: Any) -> float:
    """Validate a caller-supplied score and return it as ``float``.

    Booleans, strings, ``None`` and non-finite numbers are rejected.
    """
    if value is None:
        raise InvalidScoreError("Score is required")
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise InvalidScoreError("Score must be a number", detail={"received": type(value).__name__})
    result = float(value)
    if math.isnan(result) or math.isinf(result):
        raise InvalidScoreError("Score must be a finite number")
    return result
