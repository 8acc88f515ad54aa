"""
Numeric helpers shared by the simulator, analyzer and Monte Carlo engine.

Percentiles use the nearest-rank-below rule `sorted[min(floor(p * n), n - 1)]`
so that every implementation reads the same sample for a given trial set.
"""

import math
from typing import Sequence

import numpy as np

from grid_evaluator.logging import get_logger

logger = get_logger(__name__)


def mean(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.mean(values))


def pstdev(values: Sequence[float]) -> float:
    """Population standard deviation (divides by n)."""
    if len(values) == 0:
        return 0.0
    return float(np.std(values))


def percentile_index(n: int, level: float) -> int:
    return min(int(math.floor(level * n)), n - 1)


def percentile(sorted_values: Sequence[float], level: float) -> float:
    """Read a percentile from already sorted values."""
    if len(sorted_values) == 0:
        return 0.0
    return float(sorted_values[percentile_index(len(sorted_values), level)])


def simple_returns(prices: Sequence[float]) -> np.ndarray:
    """Day-over-day simple returns; length len(prices) - 1."""
    arr = np.asarray(prices, dtype=float)
    if arr.size < 2:
        return np.empty(0)
    return np.diff(arr) / arr[:-1]


def finite_or(value: float, fallback: float, name: str) -> float:
    """Return value when finite, else log the degeneracy and return fallback."""
    if value is None or not math.isfinite(value):
        logger.warning("Non-finite value replaced by fallback", field=name, value=str(value), fallback=fallback)
        return fallback
    return float(value)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (round() would go to even)."""
    return int(math.floor(value + 0.5))
