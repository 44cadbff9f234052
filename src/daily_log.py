"""
Tracking record types.

DailyRecord is one row per calendar date (ISO date string key), holding the
simple metrics plus the day's food entries.  ActivityRecord and
SocialActivity are discrete logs that feed the exercise/social aggregates.
GoalConfig is read once per computation; from_env() builds it from .env.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from dotenv import load_dotenv

log = logging.getLogger("daily_log")

NUTRIENT_FIELDS = (
    "calories", "protein", "carbs", "fat", "fiber", "sugar", "sodium",
    "vitamin_c", "vitamin_d", "vitamin_a", "vitamin_b12",
    "calcium", "iron", "potassium", "magnesium", "zinc",
)
METRIC_FIELDS = ("water_liters", "exercise_minutes", "sunlight_minutes", "sleep_hours", "social_minutes")


def finite_or_zero(value: Any) -> float:
    """Missing, NaN and infinite measurements count as 0."""
    if value is None:
        return 0.0
    value = float(value)
    return value if math.isfinite(value) else 0.0


@dataclass(frozen=True)
class FoodEntry:
    name: str
    timestamp: datetime | None = None
    id: str | None = None
    calories: float | None = None
    protein: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    sugar: float | None = None
    sodium: float | None = None
    vitamin_c: float | None = None
    vitamin_d: float | None = None
    vitamin_a: float | None = None
    vitamin_b12: float | None = None
    calcium: float | None = None
    iron: float | None = None
    potassium: float | None = None
    magnesium: float | None = None
    zinc: float | None = None
    serving_size: float | None = None
    serving_unit: str | None = None


@dataclass(frozen=True)
class NutritionTotals:
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    fiber: float = 0.0
    sugar: float = 0.0
    sodium: float = 0.0
    vitamin_c: float = 0.0
    vitamin_d: float = 0.0
    vitamin_a: float = 0.0
    vitamin_b12: float = 0.0
    calcium: float = 0.0
    iron: float = 0.0
    potassium: float = 0.0
    magnesium: float = 0.0
    zinc: float = 0.0

    @classmethod
    def from_entries(cls, entries: Iterable[FoodEntry]) -> "NutritionTotals":
        """Sum nutrient fields, missing or non-finite values count as 0."""
        sums = {name: 0.0 for name in NUTRIENT_FIELDS}
        for entry in entries:
            for name in NUTRIENT_FIELDS:
                sums[name] += finite_or_zero(getattr(entry, name))
        return cls(**sums)

    def get(self, nutrient: str) -> float:
        return float(getattr(self, nutrient, 0.0) or 0.0)


@dataclass(frozen=True)
class DailyRecord:
    date: str
    water_liters: float = 0.0
    exercise_minutes: float = 0.0
    sunlight_minutes: float = 0.0
    sleep_hours: float = 0.0
    social_minutes: float = 0.0
    notes: str = ""
    food_entries: Tuple[FoodEntry, ...] = ()

    @property
    def nutrition(self) -> NutritionTotals:
        return NutritionTotals.from_entries(self.food_entries)

    @property
    def has_food(self) -> bool:
        return len(self.food_entries) > 0

    @property
    def parsed_date(self) -> date:
        return date.fromisoformat(self.date)

    def with_finite_metrics(self) -> "DailyRecord":
        return replace(self, **{name: finite_or_zero(getattr(self, name)) for name in METRIC_FIELDS})


@dataclass(frozen=True)
class ActivityRecord:
    name: str
    duration_minutes: float
    timestamp: datetime
    kind: str = "exercise"  # exercise | social
    id: str | None = None
    notes: str = ""


@dataclass(frozen=True)
class SocialActivity:
    name: str
    category: str
    timestamp: datetime | None = None
    duration_minutes: float = 0.0
    id: str | None = None


# ─── Goals ──────────────────────────────────────────────────

_GOAL_ENV = {
    "water_liters": "GOAL_WATER_LITERS",
    "exercise_minutes": "GOAL_EXERCISE_MINUTES",
    "sunlight_minutes": "GOAL_SUNLIGHT_MINUTES",
    "sleep_hours": "GOAL_SLEEP_HOURS",
    "social_minutes": "GOAL_SOCIAL_MINUTES",
    "protein_grams": "GOAL_PROTEIN_GRAMS",
    "calories": "GOAL_CALORIES",
}


@dataclass(frozen=True)
class GoalConfig:
    water_liters: float = 2.5
    exercise_minutes: float = 30.0
    sunlight_minutes: float = 20.0
    sleep_hours: float = 8.0
    social_minutes: float = 20.0
    protein_grams: float = 50.0
    calories: float = 2000.0
    fitness_goal: str | None = None
    fitness_level: str | None = None
    preferred_workout_minutes: float | None = None
    location: str | None = None

    @classmethod
    def from_env(cls) -> "GoalConfig":
        """Build goals from environment variables (.env honoured)."""
        load_dotenv()
        defaults = cls()
        kwargs: Dict[str, Any] = {}
        for attr, env_name in _GOAL_ENV.items():
            raw = os.getenv(env_name)
            if raw is None or not raw.strip():
                continue
            try:
                kwargs[attr] = float(raw)
            except ValueError:
                log.warning(
                    "Ignoring %s=%r (not a number), using default %s",
                    env_name, raw, getattr(defaults, attr),
                )

        kwargs["fitness_goal"] = os.getenv("FITNESS_GOAL") or None
        kwargs["fitness_level"] = os.getenv("FITNESS_LEVEL") or None
        kwargs["location"] = os.getenv("TRACKER_LOCATION") or None
        preferred = _optional_float(os.getenv("PREFERRED_WORKOUT_MINUTES"))
        if preferred is not None:
            kwargs["preferred_workout_minutes"] = preferred
        return cls(**kwargs)

    def as_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or not raw.strip():
        return None
    try:
        return float(raw)
    except ValueError:
        log.warning("Ignoring non-numeric value %r", raw)
        return None
