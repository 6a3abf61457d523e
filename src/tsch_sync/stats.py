from __future__ import annotations

from math import floor
from typing import Sequence

from .results import SyncResults


def relative_error(value: float, reference: float) -> float:
    if reference == 0:
        raise ValueError("reference must be non-zero")
    return abs(value - reference) / abs(reference)


def max_abs_cdf_error(a: SyncResults, b: SyncResults) -> float:
    """Largest |a.cdf(k) - b.cdf(k)| over the steps where either CDF is still below 1."""
    worst = 0.0
    k = 1
    while a.cdf(k) < 1.0 or b.cdf(k) < 1.0:
        worst = max(worst, abs(a.cdf(k) - b.cdf(k)))
        k += 1
    return worst


def percentile_interval(values: Sequence[float], confidence: float = 0.95) -> tuple[float, float]:
    """Empirical confidence interval taken from the sorted sample."""
    if len(values) == 0:
        raise ValueError("values must not be empty")
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"confidence must be in (0, 1): {confidence}")
    ordered = sorted(values)
    lower_q = (1.0 - confidence) / 2.0
    upper_q = 1.0 - lower_q
    lo = min(len(ordered) - 1, floor(len(ordered) * lower_q))
    hi = min(len(ordered) - 1, floor(len(ordered) * upper_q))
    return ordered[lo], ordered[hi]
