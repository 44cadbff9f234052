"""Consecutive-day streaks against a goal threshold."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional, Tuple, Union

DateLike = Union[date, str]


@dataclass(frozen=True)
class StreakResult:
    current: int = 0
    longest: int = 0


def _as_date(value: DateLike) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def calculate_streaks(
    points: Iterable[Tuple[DateLike, float]],
    threshold: float,
    today: Optional[date] = None,
) -> StreakResult:
    """Return current and longest run of days with ``value >= threshold``.

    A hit extends the running streak only when its date is exactly one day
    after the previous record; otherwise it starts a new streak of 1.  A
    miss resets the streak to 0.  The current streak only counts when the
    newest record is dated today or yesterday.
    """
    ordered = sorted(((_as_date(d), float(v or 0.0)) for d, v in points), key=lambda p: p[0])
    if not ordered:
        return StreakResult(0, 0)

    today = today or date.today()
    running = 0
    longest = 0
    prev_day: Optional[date] = None

    for day, value in ordered:
        if value >= threshold:
            if prev_day is not None and (day - prev_day).days == 1:
                running += 1
            else:
                running = 1
        else:
            running = 0
        longest = max(longest, running)
        prev_day = day

    last_day = ordered[-1][0]
    current = running if last_day in (today, today - timedelta(days=1)) else 0
    return StreakResult(current=current, longest=longest)
