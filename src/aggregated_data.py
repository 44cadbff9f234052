"""
Aggregation snapshot types.

Every sub-aggregate is a frozen value with an ``empty()`` sentinel and a
``has_data`` flag, so consumers branch on data presence instead of on None.
A snapshot is never mutated; the next recompute replaces it wholesale.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from analytics.trends import TrendDirection
from constants import SIGNIFICANT_CORRELATION, WEEKDAY_SHORT


@dataclass(frozen=True)
class NutritionAggregates:
    avg_calories: float = 0.0
    avg_protein: float = 0.0
    avg_carbs: float = 0.0
    avg_fat: float = 0.0
    avg_fiber: float = 0.0
    avg_micronutrients: Mapping[str, float] = field(default_factory=dict)
    calorie_goal_hit_rate: float = 0.0
    protein_goal_hit_rate: float = 0.0
    total_meals: int = 0
    avg_meals_per_day: float = 0.0
    food_frequency: Mapping[str, int] = field(default_factory=dict)
    top_foods: Tuple[str, ...] = ()
    deficiencies: Tuple[str, ...] = ()
    excesses: Tuple[str, ...] = ()
    deficient_days: Mapping[str, int] = field(default_factory=dict)
    excess_days: Mapping[str, int] = field(default_factory=dict)
    dietary_preferences: Tuple[str, ...] = ()
    days_with_data: int = 0

    def __post_init__(self):
        _freeze_maps(self)

    @classmethod
    def empty(cls) -> "NutritionAggregates":
        return cls()

    @property
    def has_data(self) -> bool:
        return self.days_with_data > 0

    def to_ai_context(self) -> str:
        if not self.has_data:
            return ""
        lines = [
            f"User's eating patterns (last {self.days_with_data} days with food logged):",
            f"- Average daily calories: {round(self.avg_calories)} kcal",
            f"- Average macros: {round(self.avg_protein)}g protein, "
            f"{round(self.avg_carbs)}g carbs, {round(self.avg_fat)}g fat",
        ]
        if self.top_foods:
            lines.append(f"- Common foods they enjoy: {', '.join(self.top_foods[:5])}")
        if self.deficiencies:
            lines.append(f"- Consistent deficiencies: {', '.join(self.deficiencies)}")
        if self.excesses:
            lines.append(f"- Consistently exceeds: {', '.join(self.excesses)}")
        if self.dietary_preferences:
            lines.append(f"- Dietary tendencies: {', '.join(self.dietary_preferences)}")
        lines.append(f"- Calorie goal hit rate: {round(self.calorie_goal_hit_rate * 100)}%")
        lines.append(f"- Protein goal hit rate: {round(self.protein_goal_hit_rate * 100)}%")
        return "\n".join(lines)


@dataclass(frozen=True)
class ExerciseAggregates:
    total_workouts: int = 0
    total_minutes: float = 0.0
    avg_minutes_per_day: float = 0.0
    avg_minutes_per_workout: float = 0.0
    goal_hit_rate: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    weekday_minutes: Mapping[int, float] = field(default_factory=dict)
    active_weekdays: Tuple[int, ...] = ()
    workout_types: Mapping[str, int] = field(default_factory=dict)
    preferred_types: Tuple[str, ...] = ()
    fitness_goal: Optional[str] = None
    fitness_level: Optional[str] = None
    preferred_duration: Optional[float] = None
    days_with_data: int = 0

    def __post_init__(self):
        _freeze_maps(self)

    @classmethod
    def empty(cls) -> "ExerciseAggregates":
        return cls()

    @property
    def has_data(self) -> bool:
        return self.days_with_data > 0 or self.total_workouts > 0

    def format_active_days(self) -> str:
        if not self.active_weekdays:
            return "No consistent pattern"
        return ", ".join(WEEKDAY_SHORT[d] for d in self.active_weekdays)

    def to_ai_context(self) -> str:
        if not self.has_data:
            return ""
        lines = [
            f"User's exercise history (last {self.total_workouts} workouts):",
            f"- Average workout duration: {round(self.avg_minutes_per_workout)} min",
        ]
        if self.preferred_types:
            lines.append(f"- Preferred workout types: {', '.join(self.preferred_types)}")
        if self.active_weekdays:
            lines.append(f"- Most active days: {self.format_active_days()}")
        lines.append(f"- Current streak: {self.current_streak} days")
        lines.append(f"- Goal hit rate: {round(self.goal_hit_rate * 100)}%")
        if self.fitness_goal:
            lines.append(f"- Fitness goal: {self.fitness_goal}")
        if self.fitness_level:
            lines.append(f"- Fitness level: {self.fitness_level}")
        return "\n".join(lines)


@dataclass(frozen=True)
class SocialAggregates:
    total_activities: int = 0
    total_minutes: float = 0.0
    avg_minutes_per_day: float = 0.0
    goal_hit_rate: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    category_frequency: Mapping[str, int] = field(default_factory=dict)
    preferred_categories: Tuple[str, ...] = ()
    visited_place_types: Tuple[str, ...] = ()
    current_location: Optional[str] = None
    days_with_data: int = 0

    def __post_init__(self):
        _freeze_maps(self)

    @classmethod
    def empty(cls) -> "SocialAggregates":
        return cls()

    @property
    def has_data(self) -> bool:
        return self.total_activities > 0 or self.total_minutes > 0

    def to_ai_context(self) -> str:
        if not self.has_data:
            return ""
        lines = ["User's social preferences:"]
        if self.preferred_categories:
            lines.append(f"- Favorite activity types: {', '.join(self.preferred_categories[:3])}")
        lines.append(f"- Total activities logged: {self.total_activities}")
        lines.append(f"- Average social time per day: {round(self.avg_minutes_per_day)} min")
        lines.append(f"- Social goal hit rate: {round(self.goal_hit_rate * 100)}%")
        if self.current_location:
            lines.append(f"- Current location: {self.current_location}")
        return "\n".join(lines)


@dataclass(frozen=True)
class SimpleMetricsAggregates:
    avg_water_liters: float = 0.0
    water_goal_hit_rate: float = 0.0
    avg_sunlight_minutes: float = 0.0
    sunlight_goal_hit_rate: float = 0.0
    avg_sleep_hours: float = 0.0
    sleep_goal_hit_rate: float = 0.0
    min_sleep: float = 0.0
    max_sleep: float = 0.0
    days_with_data: int = 0

    @classmethod
    def empty(cls) -> "SimpleMetricsAggregates":
        return cls()

    @property
    def has_data(self) -> bool:
        return self.days_with_data > 0


@dataclass(frozen=True)
class PatternData:
    exercise_by_weekday: Mapping[int, float] = field(default_factory=dict)
    calories_by_weekday: Mapping[int, float] = field(default_factory=dict)
    sleep_by_weekday: Mapping[int, float] = field(default_factory=dict)
    sleep_exercise_correlation: Optional[float] = None
    exercise_calories_correlation: Optional[float] = None
    exercise_trend: TrendDirection = TrendDirection.UNKNOWN
    nutrition_trend: TrendDirection = TrendDirection.UNKNOWN
    sleep_trend: TrendDirection = TrendDirection.UNKNOWN

    def __post_init__(self):
        _freeze_maps(self)

    @classmethod
    def empty(cls) -> "PatternData":
        return cls()

    @property
    def has_patterns(self) -> bool:
        return bool(self.exercise_by_weekday or self.calories_by_weekday or self.sleep_by_weekday)

    @property
    def most_active_day(self) -> Optional[int]:
        return _max_key(self.exercise_by_weekday)

    @property
    def highest_calorie_day(self) -> Optional[int]:
        return _max_key(self.calories_by_weekday)


def _max_key(by_day: Mapping[int, float]) -> Optional[int]:
    best: Optional[int] = None
    for day, value in by_day.items():
        if best is None or value > by_day[best]:
            best = day
    return best


@dataclass(frozen=True)
class AggregationSnapshot:
    window_days: int
    generated_at: datetime
    nutrition: NutritionAggregates = field(default_factory=NutritionAggregates.empty)
    exercise: ExerciseAggregates = field(default_factory=ExerciseAggregates.empty)
    social: SocialAggregates = field(default_factory=SocialAggregates.empty)
    simple_metrics: SimpleMetricsAggregates = field(default_factory=SimpleMetricsAggregates.empty)
    patterns: PatternData = field(default_factory=PatternData.empty)

    def to_ai_context(self) -> str:
        """Plain-text digest consumed as prompt context by the insight client."""
        sm = self.simple_metrics
        parts = [
            f"=== User Health Data Summary ({self.window_days} days analyzed) ===",
            f"Last updated: {self.generated_at.isoformat()}",
            "",
        ]
        for block in (self.nutrition, self.exercise, self.social):
            if block.has_data:
                parts.append(block.to_ai_context())
                parts.append("")

        parts.append("Daily Metrics Summary:")
        parts.append(
            f"- Water: {sm.avg_water_liters:.1f}L avg, "
            f"{round(sm.water_goal_hit_rate * 100)}% goal hit rate"
        )
        parts.append(
            f"- Sunlight: {round(sm.avg_sunlight_minutes)} min avg, "
            f"{round(sm.sunlight_goal_hit_rate * 100)}% goal hit rate"
        )
        parts.append(
            f"- Sleep: {sm.avg_sleep_hours:.1f} hrs avg "
            f"(range: {sm.min_sleep:.1f}-{sm.max_sleep:.1f}), "
            f"{round(sm.sleep_goal_hit_rate * 100)}% goal hit rate"
        )
        parts.append("")

        p = self.patterns
        if p.has_patterns:
            parts.append("Detected Patterns:")
            for label, trend in (
                ("Exercise", p.exercise_trend),
                ("Sleep", p.sleep_trend),
                ("Nutrition", p.nutrition_trend),
            ):
                if trend is not TrendDirection.UNKNOWN:
                    parts.append(f"- {label} trend: {trend.value}")
            for label, r in (
                ("Sleep-exercise", p.sleep_exercise_correlation),
                ("Exercise-calories", p.exercise_calories_correlation),
            ):
                if r is not None and abs(r) > SIGNIFICANT_CORRELATION:
                    parts.append(f"- {label} correlation: {r:.2f}")
            parts.append("")

        return "\n".join(parts)

    # ─── Persistence round trip ─────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict (weekday keys become strings, trends their value)."""
        out = _plain(self)
        out["generated_at"] = self.generated_at.isoformat()
        for key in ("exercise_by_weekday", "calories_by_weekday", "sleep_by_weekday"):
            out["patterns"][key] = {str(d): v for d, v in out["patterns"][key].items()}
        out["exercise"]["weekday_minutes"] = {
            str(d): v for d, v in out["exercise"]["weekday_minutes"].items()
        }
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AggregationSnapshot":
        nutrition = dict(data.get("nutrition") or {})
        exercise = dict(data.get("exercise") or {})
        social = dict(data.get("social") or {})
        patterns = dict(data.get("patterns") or {})

        for key in ("top_foods", "deficiencies", "excesses", "dietary_preferences"):
            nutrition[key] = tuple(nutrition.get(key) or ())
        exercise["active_weekdays"] = tuple(int(d) for d in exercise.get("active_weekdays") or ())
        exercise["preferred_types"] = tuple(exercise.get("preferred_types") or ())
        exercise["weekday_minutes"] = _int_keys(exercise.get("weekday_minutes"))
        for key in ("preferred_categories", "visited_place_types"):
            social[key] = tuple(social.get(key) or ())
        for key in ("exercise_by_weekday", "calories_by_weekday", "sleep_by_weekday"):
            patterns[key] = _int_keys(patterns.get(key))
        for key in ("exercise_trend", "nutrition_trend", "sleep_trend"):
            patterns[key] = TrendDirection(patterns.get(key) or TrendDirection.UNKNOWN.value)

        return cls(
            window_days=int(data["window_days"]),
            generated_at=datetime.fromisoformat(data["generated_at"]),
            nutrition=NutritionAggregates(**nutrition),
            exercise=ExerciseAggregates(**exercise),
            social=SocialAggregates(**social),
            simple_metrics=SimpleMetricsAggregates(**dict(data.get("simple_metrics") or {})),
            patterns=PatternData(**patterns),
        )


def _int_keys(raw: Optional[Mapping[Any, float]]) -> Dict[int, float]:
    return {int(k): float(v) for k, v in (raw or {}).items()}


def _freeze_maps(obj: Any) -> None:
    """Wrap dict fields in read-only views so a published snapshot stays fixed."""
    for f in fields(obj):
        value = getattr(obj, f.name)
        if isinstance(value, (dict, MappingProxyType)):
            object.__setattr__(obj, f.name, MappingProxyType(dict(value)))


def _plain(value: Any) -> Any:
    if is_dataclass(value):
        return {f.name: _plain(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Mapping):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value
