"""
Aggregation engine.

Turns the N most recent daily records (plus discrete activity logs) into a
single immutable AggregationSnapshot.  The engine is pure with respect to
its inputs: it reads the LogStore once, never logs, and resolves missing
data to the empty sentinels of each sub-aggregate.  Only caller contract
violations raise (AggregationInputError).
"""

from __future__ import annotations

import re
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from aggregated_data import (
    AggregationSnapshot,
    ExerciseAggregates,
    NutritionAggregates,
    PatternData,
    SimpleMetricsAggregates,
    SocialAggregates,
)
from analytics.correlation import pearson_correlation
from analytics.deficiency import detect_deficiencies
from analytics.streaks import calculate_streaks
from analytics.trends import analyze_trend
from constants import (
    CALORIE_GOAL_BAND,
    DAIRY_KEYWORDS,
    DEFAULT_WORKOUT_CATEGORY,
    MEAT_KEYWORDS,
    MICRONUTRIENT_KEYS,
    PATTERN_CORRELATION_MIN_DAYS,
    PATTERN_MIN_DAYS,
    PROTEIN_GOAL_RATIO,
    REFERENCE_DAILY_VALUES,
    SLEEP_GOAL_RATIO,
    TOP_FOODS_LIMIT,
    TOP_SOCIAL_CATEGORIES_LIMIT,
    TOP_WORKOUT_TYPES_LIMIT,
    VEGETABLE_KEYWORDS,
    WORKOUT_CATEGORY_RULES,
)
from daily_log import ActivityRecord, DailyRecord, GoalConfig, SocialActivity, finite_or_zero
from log_store import LogStore

_QUANTITY_PREFIX = re.compile(r"^\d+(?:\.\d+)?\s*(?:(?:kg|g|ml|oz|cups?|tbsp|tsp)\b)?\s*")


class AggregationInputError(ValueError):
    """Raised when the caller breaks the engine's input contract."""


# ─── Pure helpers ───────────────────────────────────────────

def normalize_food_name(name: str) -> str:
    """Lower-case, strip a leading quantity/unit, re-capitalise the first letter."""
    normalized = _QUANTITY_PREFIX.sub("", (name or "").lower().strip(), count=1)
    if normalized:
        normalized = normalized[0].upper() + normalized[1:]
    return normalized


def infer_workout_category(name: str) -> str:
    lower = (name or "").lower()
    for category, keywords in WORKOUT_CATEGORY_RULES:
        if any(k in lower for k in keywords):
            return category
    return DEFAULT_WORKOUT_CATEGORY


def infer_dietary_preferences(
    avg_protein: float,
    avg_carbs: float,
    avg_fat: float,
    avg_fiber: float,
    top_foods: Sequence[str],
    reference: Optional[Dict[str, float]] = None,
) -> Tuple[str, ...]:
    ref = reference or REFERENCE_DAILY_VALUES
    tags: List[str] = []

    if avg_protein > ref["protein"] * 1.2:
        tags.append("high protein")
    elif avg_protein < ref["protein"] * 0.7:
        tags.append("low protein")

    if avg_carbs < ref["carbs"] * 0.5:
        tags.append("low carb")
    elif avg_carbs > ref["carbs"] * 1.2:
        tags.append("high carb")

    if avg_fiber > ref["fiber"] * 1.2:
        tags.append("high fiber")

    if avg_fat > ref["fat"] * 1.2:
        tags.append("higher fat")
    elif avg_fat < ref["fat"] * 0.6:
        tags.append("low fat")

    foods = [f.lower() for f in top_foods]

    def _mentions(keywords: Iterable[str]) -> bool:
        return any(k in f for f in foods for k in keywords)

    if not _mentions(MEAT_KEYWORDS) and _mentions(VEGETABLE_KEYWORDS):
        tags.append("vegetarian-leaning")
    if not _mentions(DAIRY_KEYWORDS):
        tags.append("possibly dairy-free")
    return tuple(tags)


def _rank(counts: Dict[str, int], limit: int) -> Tuple[str, ...]:
    # Stable: ties keep first-seen order.
    ordered = sorted(counts.items(), key=lambda kv: -kv[1])
    return tuple(k for k, _ in ordered[:limit])


def weekday_means(days: Sequence[date], values: Sequence[float]) -> Dict[int, float]:
    """Mean value per ISO weekday (1=Monday .. 7=Sunday)."""
    if not days:
        return {}
    df = pd.DataFrame({"weekday": [d.isoweekday() for d in days], "value": list(values)})
    means = df.groupby("weekday")["value"].mean()
    return {int(k): float(v) for k, v in means.items()}


def _rate(hits: int, total: int) -> float:
    return hits / total if total > 0 else 0.0


def _naive_local(ts: datetime) -> datetime:
    if ts.tzinfo is not None:
        return ts.astimezone().replace(tzinfo=None)
    return ts


# ─── Engine ─────────────────────────────────────────────────

class AggregationEngine:
    """Compute AggregationSnapshots from a LogStore."""

    def __init__(self, log_store: LogStore):
        self.log_store = log_store

    def compute_aggregates(
        self,
        window_days: int,
        goals: GoalConfig,
        social_activities: Optional[Sequence[SocialActivity]] = None,
        now: Optional[datetime] = None,
    ) -> AggregationSnapshot:
        if isinstance(window_days, bool) or not isinstance(window_days, int):
            raise AggregationInputError(f"window_days must be an integer, got {window_days!r}")
        if window_days < 1:
            raise AggregationInputError(f"window_days must be >= 1, got {window_days}")

        now = _naive_local(now or datetime.now())
        records = self._validated(self.log_store.get_recent_records(window_days))

        period_start = now - timedelta(days=window_days)
        activities = [
            replace(a, duration_minutes=finite_or_zero(a.duration_minutes))
            for a in self.log_store.get_all_activity_records()
            if a.kind == "exercise" and _naive_local(a.timestamp) > period_start
        ]

        return AggregationSnapshot(
            window_days=window_days,
            generated_at=now,
            nutrition=self.nutrition_aggregates(records, goals),
            exercise=self.exercise_aggregates(records, activities, goals, today=now.date()),
            social=self.social_aggregates(records, social_activities, goals, today=now.date()),
            simple_metrics=self.simple_metrics_aggregates(records, goals),
            patterns=self.pattern_data(records),
        )

    @staticmethod
    def _validated(records: Iterable[DailyRecord]) -> List[DailyRecord]:
        """Sort oldest -> newest, rejecting malformed or duplicate date keys.

        Non-finite metric values are read as 0 so no average can turn NaN.
        """
        keyed: Dict[date, DailyRecord] = {}
        for record in records:
            try:
                day = date.fromisoformat(str(record.date))
            except ValueError as e:
                raise AggregationInputError(f"Malformed date key {record.date!r}") from e
            if day in keyed:
                raise AggregationInputError(f"Duplicate record for {record.date}")
            keyed[day] = record.with_finite_metrics()
        return [keyed[d] for d in sorted(keyed)]

    # ─── Nutrition ──────────────────────────────────────────

    def nutrition_aggregates(self, records: Sequence[DailyRecord], goals: GoalConfig) -> NutritionAggregates:
        with_food = [r for r in records if r.has_food]
        n = len(with_food)
        if n == 0:
            return NutritionAggregates.empty()

        totals = [r.nutrition for r in with_food]
        frequency: Dict[str, int] = {}
        total_meals = 0
        calorie_hits = 0
        protein_hits = 0
        lo, hi = CALORIE_GOAL_BAND

        for record, nutrition in zip(with_food, totals):
            total_meals += len(record.food_entries)
            for entry in record.food_entries:
                key = normalize_food_name(entry.name)
                frequency[key] = frequency.get(key, 0) + 1

            if goals.calories > 0 and lo <= nutrition.calories / goals.calories <= hi:
                calorie_hits += 1
            if goals.protein_grams > 0 and nutrition.protein / goals.protein_grams >= PROTEIN_GOAL_RATIO:
                protein_hits += 1

        def avg(key: str) -> float:
            return sum(t.get(key) for t in totals) / n

        top_foods = _rank(frequency, TOP_FOODS_LIMIT)
        report = detect_deficiencies(with_food, REFERENCE_DAILY_VALUES)

        return NutritionAggregates(
            avg_calories=avg("calories"),
            avg_protein=avg("protein"),
            avg_carbs=avg("carbs"),
            avg_fat=avg("fat"),
            avg_fiber=avg("fiber"),
            avg_micronutrients={key: avg(key) for key in MICRONUTRIENT_KEYS},
            calorie_goal_hit_rate=calorie_hits / n,
            protein_goal_hit_rate=protein_hits / n,
            total_meals=total_meals,
            avg_meals_per_day=total_meals / n,
            food_frequency=dict(sorted(frequency.items(), key=lambda kv: -kv[1])),
            top_foods=top_foods,
            deficiencies=report.deficiencies,
            excesses=report.excesses,
            deficient_days=report.deficient_days,
            excess_days=report.excess_days,
            dietary_preferences=infer_dietary_preferences(
                avg("protein"), avg("carbs"), avg("fat"), avg("fiber"), top_foods
            ),
            days_with_data=n,
        )

    # ─── Exercise ───────────────────────────────────────────

    def exercise_aggregates(
        self,
        records: Sequence[DailyRecord],
        activities: Sequence[ActivityRecord],
        goals: GoalConfig,
        today: Optional[date] = None,
    ) -> ExerciseAggregates:
        days_with_data = sum(1 for r in records if r.exercise_minutes > 0)
        if days_with_data == 0 and not activities:
            return ExerciseAggregates.empty()

        n = len(records)
        total = float(sum(r.exercise_minutes for r in records))
        hits = sum(1 for r in records if r.exercise_minutes >= goals.exercise_minutes)
        overall_avg = total / n if n else 0.0

        by_weekday = weekday_means([r.parsed_date for r in records], [r.exercise_minutes for r in records])
        active = tuple(sorted(d for d, v in by_weekday.items() if v > overall_avg))

        types: Dict[str, int] = {}
        for activity in activities:
            category = infer_workout_category(activity.name)
            types[category] = types.get(category, 0) + 1

        streaks = calculate_streaks(
            ((r.date, r.exercise_minutes) for r in records), goals.exercise_minutes, today=today
        )
        per_workout = (
            sum(a.duration_minutes for a in activities) / len(activities) if activities else 0.0
        )

        return ExerciseAggregates(
            total_workouts=len(activities),
            total_minutes=total,
            avg_minutes_per_day=overall_avg,
            avg_minutes_per_workout=float(per_workout),
            goal_hit_rate=_rate(hits, n),
            current_streak=streaks.current,
            longest_streak=streaks.longest,
            weekday_minutes=by_weekday,
            active_weekdays=active,
            workout_types=types,
            preferred_types=_rank(types, TOP_WORKOUT_TYPES_LIMIT),
            fitness_goal=goals.fitness_goal,
            fitness_level=goals.fitness_level,
            preferred_duration=(
                goals.preferred_workout_minutes
                if goals.preferred_workout_minutes is not None
                else goals.exercise_minutes
            ),
            days_with_data=days_with_data,
        )

    # ─── Social ─────────────────────────────────────────────

    def social_aggregates(
        self,
        records: Sequence[DailyRecord],
        activities: Optional[Sequence[SocialActivity]],
        goals: GoalConfig,
        today: Optional[date] = None,
    ) -> SocialAggregates:
        n = len(records)
        total = float(sum(r.social_minutes for r in records))
        hits = sum(1 for r in records if r.social_minutes >= goals.social_minutes)
        activities = list(activities or [])

        categories: Dict[str, int] = {}
        visited: List[str] = []
        for activity in activities:
            categories[activity.category] = categories.get(activity.category, 0) + 1
            if activity.category not in visited:
                visited.append(activity.category)

        streaks = calculate_streaks(
            ((r.date, r.social_minutes) for r in records), goals.social_minutes, today=today
        )

        return SocialAggregates(
            total_activities=len(activities),
            total_minutes=total,
            avg_minutes_per_day=total / n if n else 0.0,
            goal_hit_rate=_rate(hits, n),
            current_streak=streaks.current,
            longest_streak=streaks.longest,
            category_frequency=categories,
            preferred_categories=_rank(categories, TOP_SOCIAL_CATEGORIES_LIMIT),
            visited_place_types=tuple(visited),
            current_location=goals.location,
            days_with_data=sum(1 for r in records if r.social_minutes > 0),
        )

    # ─── Simple metrics ─────────────────────────────────────

    def simple_metrics_aggregates(
        self, records: Sequence[DailyRecord], goals: GoalConfig
    ) -> SimpleMetricsAggregates:
        n = len(records)
        if n == 0:
            return SimpleMetricsAggregates.empty()

        slept = [r.sleep_hours for r in records if r.sleep_hours > 0]
        return SimpleMetricsAggregates(
            avg_water_liters=sum(r.water_liters for r in records) / n,
            water_goal_hit_rate=_rate(sum(1 for r in records if r.water_liters >= goals.water_liters), n),
            avg_sunlight_minutes=sum(r.sunlight_minutes for r in records) / n,
            sunlight_goal_hit_rate=_rate(
                sum(1 for r in records if r.sunlight_minutes >= goals.sunlight_minutes), n
            ),
            avg_sleep_hours=sum(r.sleep_hours for r in records) / n,
            sleep_goal_hit_rate=_rate(
                sum(1 for r in records if r.sleep_hours >= goals.sleep_hours * SLEEP_GOAL_RATIO), n
            ),
            min_sleep=min(slept) if slept else 0.0,
            max_sleep=max(slept) if slept else 0.0,
            days_with_data=sum(
                1 for r in records if r.water_liters > 0 or r.sunlight_minutes > 0 or r.sleep_hours > 0
            ),
        )

    # ─── Patterns ───────────────────────────────────────────

    def pattern_data(self, records: Sequence[DailyRecord]) -> PatternData:
        if len(records) < PATTERN_MIN_DAYS:
            return PatternData.empty()

        days = [r.parsed_date for r in records]
        exercise = [float(r.exercise_minutes) for r in records]
        calories = [r.nutrition.calories for r in records]
        sleep = [float(r.sleep_hours) for r in records]

        sleep_exercise = None
        exercise_calories = None
        if len(records) >= PATTERN_CORRELATION_MIN_DAYS:
            sleep_exercise = pearson_correlation(sleep, exercise)
            exercise_calories = pearson_correlation(exercise, calories)

        return PatternData(
            exercise_by_weekday=weekday_means(days, exercise),
            calories_by_weekday=weekday_means(days, calories),
            sleep_by_weekday=weekday_means(days, sleep),
            sleep_exercise_correlation=sleep_exercise,
            exercise_calories_correlation=exercise_calories,
            exercise_trend=analyze_trend(exercise),
            nutrition_trend=analyze_trend(calories),
            sleep_trend=analyze_trend(sleep),
        )


