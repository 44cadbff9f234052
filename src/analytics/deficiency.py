"""Consistent nutrient deficiencies and excesses against reference intakes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Tuple

from constants import (
    CONSISTENCY_SHARE,
    DEFICIENCY_NUTRIENTS,
    DEFICIENCY_RATIO,
    EXCESS_NUTRIENTS,
    EXCESS_RATIO,
    REFERENCE_DAILY_VALUES,
)
from daily_log import DailyRecord


@dataclass(frozen=True)
class DeficiencyReport:
    deficiencies: Tuple[str, ...] = ()
    excesses: Tuple[str, ...] = ()
    deficient_days: Dict[str, int] = field(default_factory=dict)
    excess_days: Dict[str, int] = field(default_factory=dict)
    qualifying_days: int = 0


def detect_deficiencies(
    records: Iterable[DailyRecord],
    reference: Optional[Mapping[str, float]] = None,
) -> DeficiencyReport:
    """Flag nutrients under 70% (or limit nutrients over 150%) of reference.

    Only days with at least one food entry qualify.  A nutrient is reported
    when it is flagged on at least half of the qualifying days; names come
    back in reference-table order.
    """
    reference = reference or REFERENCE_DAILY_VALUES
    days = [r.nutrition for r in records if r.has_food]
    if not days:
        return DeficiencyReport()

    deficient_days: Dict[str, int] = {}
    for label, key in DEFICIENCY_NUTRIENTS:
        ref = reference.get(key, 0.0)
        if ref <= 0:
            continue
        deficient_days[label] = sum(1 for n in days if n.get(key) < ref * DEFICIENCY_RATIO)

    excess_days: Dict[str, int] = {}
    for label, key in EXCESS_NUTRIENTS:
        ref = reference.get(key, 0.0)
        if ref <= 0:
            continue
        excess_days[label] = sum(1 for n in days if n.get(key) > ref * EXCESS_RATIO)

    cutoff = len(days) * CONSISTENCY_SHARE
    return DeficiencyReport(
        deficiencies=tuple(k for k, c in deficient_days.items() if c > 0 and c >= cutoff),
        excesses=tuple(k for k, c in excess_days.items() if c > 0 and c >= cutoff),
        deficient_days=deficient_days,
        excess_days=excess_days,
        qualifying_days=len(days),
    )
