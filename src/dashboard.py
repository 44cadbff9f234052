"""
Dashboard composition.

DashboardComposer turns one AggregationSnapshot plus the current and
previous record windows into ComputedDashboardData: completion, period
trend, focus area, streaks, metric cards, nutrition and pattern insights.
Pure and synchronous; the same inputs always give the same output.

Two trend thresholds apply:
  - period completion compares percentage points (±5 pts)
  - streak / PeriodComparison compare relative change (±10 %)
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from aggregated_data import AggregationSnapshot, PatternData
from analytics.correlation import is_significant
from analytics.streaks import calculate_streaks
from analytics.trends import TrendDirection, analyze_trend, classify_change, percent_change
from constants import (
    ACTIVE_DAY_FACTOR,
    CALORIE_GOAL_BAND,
    DEFICIENCY_NUTRIENTS,
    OVERALL_STREAK_RATIO,
    PATTERN_CORRELATION_MIN_DAYS,
    PERIOD_CHANGE_POINTS,
    REFERENCE_DAILY_VALUES,
    REST_DAY_FACTOR,
    SIGNIFICANT_CORRELATION,
    SLEEP_GOAL_RATIO,
    WEEKDAY_NAMES,
    WEEKDAY_SHORT,
)
from daily_log import DailyRecord, GoalConfig

EMPTY_SUMMARY = "Start tracking to see your analytics"

TREND_ARROWS = {
    TrendDirection.INCREASING: "↑",
    TrendDirection.DECREASING: "↓",
    TrendDirection.STABLE: "→",
    TrendDirection.UNKNOWN: "",
}


# ─── Output types ───────────────────────────────────────────

@dataclass(frozen=True)
class MetricCard:
    name: str
    average: float
    goal: float
    unit: str
    trend: TrendDirection
    best_day: str
    best_value: float
    days_hit_goal: int
    total_days: int

    @property
    def goal_percentage(self) -> float:
        if self.goal <= 0:
            return 0.0
        return max(0.0, min(100.0, self.average / self.goal * 100))

    @property
    def consistency_text(self) -> str:
        return f"{self.days_hit_goal}/{self.total_days} days hit goal"


@dataclass(frozen=True)
class NutrientDeficiency:
    name: str
    avg_percent: float
    deficient_days: int
    total_days: int

    @property
    def description(self) -> str:
        return f"{self.deficient_days}/{self.total_days} days deficient"


@dataclass(frozen=True)
class TopFood:
    name: str
    count: int


@dataclass(frozen=True)
class NutritionInsight:
    avg_protein: float = 0.0
    avg_carbs: float = 0.0
    avg_fat: float = 0.0
    avg_fiber: float = 0.0
    protein_goal: float = REFERENCE_DAILY_VALUES["protein"]
    carbs_goal: float = REFERENCE_DAILY_VALUES["carbs"]
    fat_goal: float = REFERENCE_DAILY_VALUES["fat"]
    fiber_goal: float = REFERENCE_DAILY_VALUES["fiber"]
    deficiencies: Tuple[NutrientDeficiency, ...] = ()
    top_foods: Tuple[TopFood, ...] = ()
    avg_meals_per_day: float = 0.0
    has_food_data: bool = False

    @staticmethod
    def _pct(value: float, goal: float) -> float:
        return value / goal * 100 if goal > 0 else 0.0

    @property
    def protein_percent(self) -> float:
        return self._pct(self.avg_protein, self.protein_goal)

    @property
    def carbs_percent(self) -> float:
        return self._pct(self.avg_carbs, self.carbs_goal)

    @property
    def fat_percent(self) -> float:
        return self._pct(self.avg_fat, self.fat_goal)

    @property
    def fiber_percent(self) -> float:
        return self._pct(self.avg_fiber, self.fiber_goal)


@dataclass(frozen=True)
class CorrelationInsight:
    description: str
    is_positive: bool


@dataclass(frozen=True)
class TrendInsight:
    metric: str
    direction: TrendDirection


@dataclass(frozen=True)
class PatternInsight:
    most_active_days: Tuple[str, ...] = ()
    rest_days: Tuple[str, ...] = ()
    correlations: Tuple[CorrelationInsight, ...] = ()
    trends: Tuple[TrendInsight, ...] = ()
    has_enough_data: bool = False


@dataclass(frozen=True)
class PeriodComparison:
    current: float
    previous: float
    label: str = ""
    unit: str = ""

    @property
    def percent_change(self) -> float:
        if self.previous == 0:
            return 100.0 if self.current > 0 else 0.0
        return (self.current - self.previous) / self.previous * 100

    @property
    def trend(self) -> TrendDirection:
        return classify_change(self.percent_change)

    @property
    def formatted_change(self) -> str:
        arrow = TREND_ARROWS[self.trend] or "→"
        return f"{arrow} {round_half_up(abs(self.percent_change))}%"


@dataclass(frozen=True)
class ComputedDashboardData:
    period_summary: str
    avg_completion: float = 0.0
    previous_completion: Optional[float] = None
    completion_trend: TrendDirection = TrendDirection.UNKNOWN
    streak_trend: TrendDirection = TrendDirection.UNKNOWN
    current_streak: int = 0
    days_tracked: int = 0
    perfect_days: int = 0
    focus_area: Optional[str] = None
    focus_area_percent: float = 0.0
    streaks: Dict[str, int] = field(default_factory=dict)
    metric_cards: Tuple[MetricCard, ...] = ()
    nutrition_insights: NutritionInsight = field(default_factory=NutritionInsight)
    pattern_insights: PatternInsight = field(default_factory=PatternInsight)
    has_data: bool = False

    @classmethod
    def empty(cls, goals: Optional[GoalConfig] = None) -> "ComputedDashboardData":
        protein_goal = goals.protein_grams if goals else REFERENCE_DAILY_VALUES["protein"]
        return cls(
            period_summary=EMPTY_SUMMARY,
            nutrition_insights=NutritionInsight(protein_goal=protein_goal),
        )


# ─── Pure helpers ───────────────────────────────────────────

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _ratio(value: float, goal: float) -> float:
    return max(0.0, min(1.0, value / goal))


def record_completion(record: DailyRecord, goals: GoalConfig) -> float:
    """Mean of the clamped water/exercise/sunlight/sleep goal ratios (0..1).

    Metrics with a non-positive goal are left out of the mean.
    """
    pairs = (
        (record.water_liters, goals.water_liters),
        (record.exercise_minutes, goals.exercise_minutes),
        (record.sunlight_minutes, goals.sunlight_minutes),
        (record.sleep_hours, goals.sleep_hours),
    )
    ratios = [_ratio(v, g) for v, g in pairs if g > 0]
    if not ratios:
        return 0.0
    return sum(ratios) / len(ratios)


def average_completion(records: Sequence[DailyRecord], goals: GoalConfig) -> float:
    """Mean daily completion as a percentage (0..100)."""
    if not records:
        return 0.0
    return sum(record_completion(r, goals) * 100 for r in records) / len(records)


def classify_period_change(current: float, previous: Optional[float]) -> TrendDirection:
    """Percentage-point comparison of two completion averages."""
    if previous is None:
        return TrendDirection.UNKNOWN
    if current > previous + PERIOD_CHANGE_POINTS:
        return TrendDirection.INCREASING
    if current < previous - PERIOD_CHANGE_POINTS:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def classify_relative_change(current: float, previous: Optional[float]) -> TrendDirection:
    if previous is None:
        return TrendDirection.UNKNOWN
    return classify_change(percent_change(previous, current))


def find_focus_area(completions: Mapping[str, float]) -> Tuple[Optional[str], float]:
    """Metric with the lowest completion percentage; first one wins ties."""
    focus: Optional[str] = None
    lowest = 0.0
    for name, pct in completions.items():
        if focus is None or pct < lowest:
            focus, lowest = name, pct
    return focus, lowest


def snapshot_completions(snapshot: AggregationSnapshot, goals: GoalConfig) -> Dict[str, float]:
    sm = snapshot.simple_metrics

    def pct(avg: float, goal: float) -> float:
        return avg / goal * 100 if goal > 0 else 100.0

    return {
        "Water": pct(sm.avg_water_liters, goals.water_liters),
        "Sunlight": pct(sm.avg_sunlight_minutes, goals.sunlight_minutes),
        "Sleep": pct(sm.avg_sleep_hours, goals.sleep_hours),
        "Exercise": pct(snapshot.exercise.avg_minutes_per_day, goals.exercise_minutes),
    }


def best_day_of_week(
    records: Sequence[DailyRecord], value_of: Callable[[DailyRecord], float]
) -> Tuple[str, float]:
    """Weekday name of the first record holding the maximum value."""
    best: Optional[DailyRecord] = None
    best_value = -1.0
    for record in records:
        value = float(value_of(record))
        if value > best_value:
            best, best_value = record, value
    if best is None:
        return "N/A", 0.0
    return WEEKDAY_NAMES[best.parsed_date.isoweekday()], best_value


def metric_streaks(records: Sequence[DailyRecord], goals: GoalConfig) -> Dict[str, int]:
    """Trailing run of goal-hitting days per metric, ending at the newest record."""
    if not records:
        return {}
    last_day = max(r.parsed_date for r in records)

    def trailing(value_of: Callable[[DailyRecord], float], threshold: float) -> int:
        points = [(r.date, value_of(r)) for r in records]
        return calculate_streaks(points, threshold, today=last_day).current

    return {
        "water": trailing(lambda r: r.water_liters, goals.water_liters),
        "exercise": trailing(lambda r: r.exercise_minutes, goals.exercise_minutes),
        "sunlight": trailing(lambda r: r.sunlight_minutes, goals.sunlight_minutes),
        "sleep": trailing(lambda r: r.sleep_hours, goals.sleep_hours),
        "nutrition": trailing(lambda r: 1.0 if r.has_food else 0.0, 1.0),
        "social": trailing(lambda r: r.social_minutes, goals.social_minutes),
        "overall": trailing(lambda r: record_completion(r, goals), OVERALL_STREAK_RATIO),
    }


def split_windows(
    records: Sequence[DailyRecord], days: int, today: Optional[date] = None
) -> Tuple[List[DailyRecord], List[DailyRecord]]:
    """Split a 2×days fetch into (current, previous) windows by calendar date."""
    today = today or date.today()
    current_start = today - timedelta(days=days - 1)
    previous_start = current_start - timedelta(days=days)
    ordered = sorted(records, key=lambda r: r.date)
    current = [r for r in ordered if current_start <= r.parsed_date <= today]
    previous = [r for r in ordered if previous_start <= r.parsed_date < current_start]
    return current, previous


def _calorie_hit(record: DailyRecord, goal: float) -> bool:
    if goal <= 0:
        return False
    lo, hi = CALORIE_GOAL_BAND
    return lo <= record.nutrition.calories / goal <= hi


# ─── Composer ───────────────────────────────────────────────

class DashboardComposer:
    """Derive dashboard-ready values from a snapshot and its record windows."""

    def __init__(self, goals: GoalConfig):
        self.goals = goals

    def compose(
        self,
        snapshot: AggregationSnapshot,
        records: Sequence[DailyRecord],
        previous_records: Sequence[DailyRecord] = (),
    ) -> ComputedDashboardData:
        if not records:
            return ComputedDashboardData.empty(self.goals)

        goals = self.goals
        records = sorted((r.with_finite_metrics() for r in records), key=lambda r: r.date)
        previous_records = sorted((r.with_finite_metrics() for r in previous_records), key=lambda r: r.date)

        avg = average_completion(records, goals)
        prev_avg = average_completion(previous_records, goals) if previous_records else None

        streaks = metric_streaks(records, goals)
        prev_streaks = metric_streaks(previous_records, goals) if previous_records else None

        focus, focus_pct = find_focus_area(snapshot_completions(snapshot, goals))
        completion_trend = classify_period_change(avg, prev_avg)

        return ComputedDashboardData(
            period_summary=self.period_summary(avg, completion_trend, focus, focus_pct),
            avg_completion=avg,
            previous_completion=prev_avg,
            completion_trend=completion_trend,
            streak_trend=classify_relative_change(
                float(streaks["overall"]),
                float(prev_streaks["overall"]) if prev_streaks is not None else None,
            ),
            current_streak=streaks["overall"],
            days_tracked=len(records),
            perfect_days=sum(1 for r in records if record_completion(r, goals) >= 1.0),
            focus_area=focus,
            focus_area_percent=focus_pct,
            streaks=streaks,
            metric_cards=tuple(self.metric_cards(snapshot, records)),
            nutrition_insights=self.nutrition_insights(snapshot),
            pattern_insights=self.pattern_insights(snapshot.patterns, len(records)),
            has_data=True,
        )

    @staticmethod
    def period_summary(
        avg: float, trend: TrendDirection, focus: Optional[str], focus_pct: float
    ) -> str:
        trend_text = {
            TrendDirection.INCREASING: ", trending ↑ from last period",
            TrendDirection.DECREASING: ", trending ↓ from last period",
            TrendDirection.STABLE: ", stable from last period",
        }.get(trend, "")
        label = f"{focus} ({round_half_up(focus_pct)}% of goal)" if focus else "N/A"
        return f"This period: {round_half_up(avg)}% avg completion{trend_text}. Focus area: {label}"

    # ─── Cards ──────────────────────────────────────────────

    def metric_cards(
        self, snapshot: AggregationSnapshot, records: Sequence[DailyRecord]
    ) -> List[MetricCard]:
        goals = self.goals
        sm = snapshot.simple_metrics
        patterns = snapshot.patterns
        total = len(records)

        def card(name, average, goal, unit, trend, value_of, hit) -> MetricCard:
            best_day, best_value = best_day_of_week(records, value_of)
            return MetricCard(
                name=name,
                average=average,
                goal=goal,
                unit=unit,
                trend=trend,
                best_day=best_day,
                best_value=best_value,
                days_hit_goal=sum(1 for r in records if hit(r)),
                total_days=total,
            )

        cards = [
            card(
                "Water", sm.avg_water_liters, goals.water_liters, "L",
                analyze_trend([r.water_liters for r in records]),
                lambda r: r.water_liters,
                lambda r: r.water_liters >= goals.water_liters,
            ),
            card(
                "Sunlight", sm.avg_sunlight_minutes, goals.sunlight_minutes, "min",
                analyze_trend([r.sunlight_minutes for r in records]),
                lambda r: r.sunlight_minutes,
                lambda r: r.sunlight_minutes >= goals.sunlight_minutes,
            ),
            card(
                "Sleep", sm.avg_sleep_hours, goals.sleep_hours, "hrs",
                patterns.sleep_trend,
                lambda r: r.sleep_hours,
                lambda r: r.sleep_hours >= goals.sleep_hours * SLEEP_GOAL_RATIO,
            ),
            card(
                "Exercise", snapshot.exercise.avg_minutes_per_day, goals.exercise_minutes, "min",
                patterns.exercise_trend,
                lambda r: r.exercise_minutes,
                lambda r: r.exercise_minutes >= goals.exercise_minutes,
            ),
        ]

        if snapshot.nutrition.has_data:
            cards.append(card(
                "Nutrition", snapshot.nutrition.avg_calories, goals.calories, "kcal",
                patterns.nutrition_trend,
                lambda r: len(r.food_entries),
                lambda r: _calorie_hit(r, goals.calories),
            ))

        if snapshot.social.has_data:
            cards.append(card(
                "Social", snapshot.social.avg_minutes_per_day, goals.social_minutes, "min",
                analyze_trend([r.social_minutes for r in records]),
                lambda r: r.social_minutes,
                lambda r: r.social_minutes >= goals.social_minutes,
            ))

        return cards

    # ─── Nutrition insight ──────────────────────────────────

    def nutrition_insights(self, snapshot: AggregationSnapshot) -> NutritionInsight:
        n = snapshot.nutrition
        ref = REFERENCE_DAILY_VALUES
        macro_avgs = {
            "protein": n.avg_protein,
            "carbs": n.avg_carbs,
            "fat": n.avg_fat,
            "fiber": n.avg_fiber,
        }
        keys = dict(DEFICIENCY_NUTRIENTS)

        deficiencies = []
        for name in n.deficiencies[:5]:
            key = keys.get(name)
            if key is None or ref.get(key, 0) <= 0:
                continue
            value = macro_avgs[key] if key in macro_avgs else n.avg_micronutrients.get(key, 0.0)
            deficiencies.append(NutrientDeficiency(
                name=name,
                avg_percent=value / ref[key] * 100,
                deficient_days=n.deficient_days.get(name, 0),
                total_days=n.days_with_data,
            ))

        return NutritionInsight(
            avg_protein=n.avg_protein,
            avg_carbs=n.avg_carbs,
            avg_fat=n.avg_fat,
            avg_fiber=n.avg_fiber,
            protein_goal=self.goals.protein_grams,
            carbs_goal=ref["carbs"],
            fat_goal=ref["fat"],
            fiber_goal=ref["fiber"],
            deficiencies=tuple(deficiencies),
            top_foods=tuple(TopFood(name, n.food_frequency.get(name, 0)) for name in n.top_foods[:5]),
            avg_meals_per_day=n.avg_meals_per_day,
            has_food_data=n.has_data,
        )

    # ─── Pattern insight ────────────────────────────────────

    @staticmethod
    def pattern_insights(patterns: PatternData, record_count: int) -> PatternInsight:
        if not patterns.has_patterns or record_count < PATTERN_CORRELATION_MIN_DAYS:
            return PatternInsight()

        by_day = patterns.exercise_by_weekday
        mean = sum(by_day.values()) / len(by_day) if by_day else 0.0
        active = tuple(WEEKDAY_SHORT[d] for d, v in by_day.items() if v > mean * ACTIVE_DAY_FACTOR)
        rest = tuple(WEEKDAY_SHORT[d] for d, v in by_day.items() if v < mean * REST_DAY_FACTOR)

        correlations = []
        r = patterns.sleep_exercise_correlation
        if is_significant(r, SIGNIFICANT_CORRELATION):
            positive = r > 0
            correlations.append(CorrelationInsight(
                description=(
                    "You sleep better on exercise days" if positive
                    else "Exercise might be affecting your sleep"
                ),
                is_positive=positive,
            ))
        r = patterns.exercise_calories_correlation
        if is_significant(r, SIGNIFICANT_CORRELATION):
            correlations.append(CorrelationInsight(
                description=(
                    "You eat more on exercise days" if r > 0
                    else "You tend to eat less on exercise days"
                ),
                # either direction is fine
                is_positive=True,
            ))

        trends = tuple(
            TrendInsight(metric, direction)
            for metric, direction in (
                ("Exercise", patterns.exercise_trend),
                ("Sleep", patterns.sleep_trend),
                ("Nutrition", patterns.nutrition_trend),
            )
            if direction is not TrendDirection.UNKNOWN
        )

        return PatternInsight(
            most_active_days=active,
            rest_days=rest,
            correlations=tuple(correlations),
            trends=trends,
            has_enough_data=True,
        )
