"""Bounded Pearson correlation between two metric series."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from constants import CORRELATION_MIN_POINTS


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """Pearson r clamped to [-1, 1].

    Returns None for series shorter than 3 points, mismatched lengths,
    zero variance in either series, or a non-finite result.
    """
    if len(xs) != len(ys) or len(xs) < CORRELATION_MIN_POINTS:
        return None

    x = np.asarray(xs, dtype=float)
    y = np.asarray(ys, dtype=float)
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        return None

    dx = x - x.mean()
    dy = y - y.mean()
    den = float(np.sqrt(np.sum(dx * dx)) * np.sqrt(np.sum(dy * dy)))
    if den <= 0:
        return None

    r = float(np.sum(dx * dy)) / den
    if not np.isfinite(r):
        return None
    return max(-1.0, min(1.0, r))


def is_significant(r: Optional[float], threshold: float) -> bool:
    return r is not None and abs(r) > threshold
