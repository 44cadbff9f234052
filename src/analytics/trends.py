"""First-half vs second-half trend classification."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import numpy as np

from constants import TREND_CHANGE_PCT, TREND_MIN_POINTS


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    UNKNOWN = "unknown"


def percent_change(previous: float, current: float) -> float:
    """Relative change in percent; 0 when there is no baseline."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100.0


def classify_change(change_pct: float, threshold: float = TREND_CHANGE_PCT) -> TrendDirection:
    if change_pct > threshold:
        return TrendDirection.INCREASING
    if change_pct < -threshold:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def trend_change_pct(values: Sequence[float]) -> Optional[float]:
    """Percent change between the mean of the second half and the first half."""
    if len(values) < TREND_MIN_POINTS:
        return None
    arr = np.asarray(values, dtype=float)
    mid = len(arr) // 2
    first = float(arr[:mid].mean())
    second = float(arr[mid:].mean())
    change = percent_change(first, second)
    return change if np.isfinite(change) else 0.0


def analyze_trend(values: Sequence[float]) -> TrendDirection:
    """Classify a series ordered oldest -> newest."""
    change = trend_change_pct(values)
    if change is None:
        return TrendDirection.UNKNOWN
    return classify_change(change)
