"""
Tests for dashboard composition.

Covers: completion averaging, focus area selection, period and streak
trend thresholds, best-day lookup, trailing streaks, window splitting,
metric cards, nutrition/pattern insights and the summary sentence.
"""
from datetime import date, datetime, timedelta

import pytest

from aggregated_data import AggregationSnapshot, NutritionAggregates, PatternData
from aggregation_engine import AggregationEngine
from analytics.trends import TrendDirection
from daily_log import DailyRecord, FoodEntry, GoalConfig
from dashboard import (
    EMPTY_SUMMARY,
    ComputedDashboardData,
    DashboardComposer,
    MetricCard,
    PeriodComparison,
    average_completion,
    best_day_of_week,
    classify_period_change,
    classify_relative_change,
    find_focus_area,
    metric_streaks,
    record_completion,
    round_half_up,
    split_windows,
)
from log_store import InMemoryLogStore

TODAY = date(2024, 1, 14)  # Sunday
NOW = datetime(2024, 1, 14, 21, 0)
GOALS = GoalConfig()


def _on(day: date, **values) -> DailyRecord:
    return DailyRecord(date=day.isoformat(), **values)


# ─── Completion ──────────────────────────────────────────────


class TestCompletion:

    def test_ratios_are_clamped_and_averaged(self):
        record = DailyRecord(date="2024-01-10", water_liters=5.0, exercise_minutes=15,
                             sunlight_minutes=0, sleep_hours=8.0)
        # 1.0 + 0.5 + 0.0 + 1.0
        assert record_completion(record, GOALS) == pytest.approx(0.625)

    def test_non_positive_goals_are_left_out(self):
        goals = GoalConfig(water_liters=0, exercise_minutes=0, sunlight_minutes=20, sleep_hours=8)
        record = DailyRecord(date="2024-01-10", sunlight_minutes=20, sleep_hours=4.0)
        assert record_completion(record, goals) == pytest.approx(0.75)

    def test_all_goals_zero(self):
        goals = GoalConfig(water_liters=0, exercise_minutes=0, sunlight_minutes=0, sleep_hours=0)
        assert record_completion(DailyRecord(date="2024-01-10", water_liters=3.0), goals) == 0.0

    def test_average_is_percentage(self):
        records = [
            DailyRecord(date="2024-01-10", water_liters=2.5, exercise_minutes=30,
                        sunlight_minutes=20, sleep_hours=8.0),
            DailyRecord(date="2024-01-11"),
        ]
        assert average_completion(records, GOALS) == pytest.approx(50.0)
        assert average_completion([], GOALS) == 0.0

    def test_round_half_up(self):
        assert round_half_up(87.5) == 88
        assert round_half_up(2.5) == 3
        assert round_half_up(49.4) == 49


# ─── Focus area and trends ───────────────────────────────────


class TestFocusArea:

    def test_lowest_completion_wins(self):
        focus, pct = find_focus_area({"Water": 80, "Sleep": 40, "Exercise": 90, "Sunlight": 60})
        assert focus == "Sleep"
        assert pct == 40

    def test_first_metric_wins_ties(self):
        assert find_focus_area({"Water": 50, "Sunlight": 50, "Sleep": 70})[0] == "Water"

    def test_empty(self):
        assert find_focus_area({}) == (None, 0.0)


class TestTrendThresholds:

    @pytest.mark.parametrize("current,previous,expected", [
        (55.0, 50.0, TrendDirection.STABLE),
        (55.1, 50.0, TrendDirection.INCREASING),
        (45.0, 50.0, TrendDirection.STABLE),
        (44.9, 50.0, TrendDirection.DECREASING),
        (70.0, None, TrendDirection.UNKNOWN),
    ])
    def test_period_change_uses_points(self, current, previous, expected):
        assert classify_period_change(current, previous) == expected

    def test_relative_change_uses_percent(self):
        assert classify_relative_change(12.0, 10.0) == TrendDirection.INCREASING
        assert classify_relative_change(11.0, 10.0) == TrendDirection.STABLE
        assert classify_relative_change(8.0, 10.0) == TrendDirection.DECREASING
        assert classify_relative_change(5.0, 0.0) == TrendDirection.STABLE
        assert classify_relative_change(5.0, None) == TrendDirection.UNKNOWN


class TestPeriodComparison:

    def test_no_baseline(self):
        assert PeriodComparison(current=5, previous=0).percent_change == 100.0
        assert PeriodComparison(current=0, previous=0).percent_change == 0.0
        assert PeriodComparison(current=0, previous=0).trend == TrendDirection.STABLE

    def test_ten_percent_band(self):
        assert PeriodComparison(current=90, previous=100).trend == TrendDirection.STABLE
        assert PeriodComparison(current=89, previous=100).trend == TrendDirection.DECREASING
        assert PeriodComparison(current=111, previous=100).trend == TrendDirection.INCREASING

    def test_formatted_change(self):
        assert PeriodComparison(current=120, previous=100).formatted_change == "↑ 20%"
        assert PeriodComparison(current=75, previous=100).formatted_change == "↓ 25%"
        assert PeriodComparison(current=100, previous=100).formatted_change == "→ 0%"


# ─── Record helpers ──────────────────────────────────────────


class TestBestDayOfWeek:

    def test_first_maximum_wins(self):
        records = [
            _on(date(2024, 1, 8), water_liters=1.0),
            _on(date(2024, 1, 9), water_liters=3.0),
            _on(date(2024, 1, 10), water_liters=3.0),
        ]
        assert best_day_of_week(records, lambda r: r.water_liters) == ("Tuesday", 3.0)

    def test_empty(self):
        assert best_day_of_week([], lambda r: r.water_liters) == ("N/A", 0.0)


class TestMetricStreaks:

    def test_trailing_runs_end_at_newest_record(self):
        water = [3.0, 0.0, 3.0, 3.0, 3.0]
        records = [
            _on(TODAY - timedelta(days=4 - i), water_liters=w, exercise_minutes=10)
            for i, w in enumerate(water)
        ]
        streaks = metric_streaks(records, GOALS)
        assert streaks["water"] == 3
        assert streaks["exercise"] == 0
        assert streaks["nutrition"] == 0
        assert set(streaks) == {"water", "exercise", "sunlight", "sleep", "nutrition", "social", "overall"}

    def test_old_windows_still_count(self):
        # a previous window ends a week ago; its streak is anchored to its own newest day
        records = [_on(date(2023, 6, d), water_liters=2.5) for d in (1, 2, 3)]
        assert metric_streaks(records, GOALS)["water"] == 3

    def test_nutrition_counts_days_with_food(self):
        records = [
            _on(TODAY - timedelta(days=1), food_entries=(FoodEntry(name="Toast"),)),
            _on(TODAY, food_entries=(FoodEntry(name="Soup"),)),
        ]
        assert metric_streaks(records, GOALS)["nutrition"] == 2

    def test_empty(self):
        assert metric_streaks([], GOALS) == {}


class TestSplitWindows:

    def test_split_by_calendar_date(self):
        records = [_on(TODAY - timedelta(days=i)) for i in range(-1, 16)]
        current, previous = split_windows(records, 7, today=TODAY)
        assert [r.date for r in current] == [(TODAY - timedelta(days=i)).isoformat() for i in range(6, -1, -1)]
        assert [r.date for r in previous] == [(TODAY - timedelta(days=i)).isoformat() for i in range(13, 6, -1)]

    def test_gaps_stay_gaps(self):
        records = [_on(TODAY), _on(TODAY - timedelta(days=9))]
        current, previous = split_windows(records, 7, today=TODAY)
        assert len(current) == 1
        assert len(previous) == 1


class TestMetricCard:

    def test_goal_percentage_is_clamped(self):
        card = MetricCard("Water", 5.0, 2.5, "L", TrendDirection.STABLE, "Monday", 5.0, 3, 7)
        assert card.goal_percentage == 100.0
        assert card.consistency_text == "3/7 days hit goal"

    def test_zero_goal(self):
        card = MetricCard("Water", 1.0, 0.0, "L", TrendDirection.STABLE, "Monday", 1.0, 0, 7)
        assert card.goal_percentage == 0.0


# ─── Composer ────────────────────────────────────────────────


def _compose(current_values, previous_values=None, goals=GOALS):
    """Fill a store with a 7-day window (and optionally the 7 days before)."""
    store = InMemoryLogStore(today=lambda: TODAY)
    for i, values in enumerate(current_values):
        store.upsert(_on(TODAY - timedelta(days=len(current_values) - 1 - i), **values))
    for i, values in enumerate(previous_values or []):
        store.upsert(_on(TODAY - timedelta(days=13 - i), **values))

    snapshot = AggregationEngine(store).compute_aggregates(7, goals, now=NOW)
    current, previous = split_windows(store.get_recent_records(14), 7, today=TODAY)
    return DashboardComposer(goals).compose(snapshot, current, previous)


SHORT_SLEEP_DAY = dict(water_liters=2.5, exercise_minutes=30, sunlight_minutes=20, sleep_hours=4.0)
HALF_DAY = dict(water_liters=0.0, exercise_minutes=30, sunlight_minutes=20, sleep_hours=0.0)


class TestDashboardComposer:

    def test_no_records_gives_empty_dashboard(self):
        goals = GoalConfig(protein_grams=80)
        snapshot = AggregationSnapshot(window_days=7, generated_at=NOW)
        data = DashboardComposer(goals).compose(snapshot, [])
        assert data == ComputedDashboardData.empty(goals)
        assert data.period_summary == EMPTY_SUMMARY
        assert not data.has_data
        assert data.nutrition_insights.protein_goal == 80

    def test_summary_without_previous_window(self):
        data = _compose([SHORT_SLEEP_DAY] * 7)
        assert data.period_summary == "This period: 88% avg completion. Focus area: Sleep (50% of goal)"
        assert data.avg_completion == pytest.approx(87.5)
        assert data.previous_completion is None
        assert data.completion_trend == TrendDirection.UNKNOWN
        assert data.focus_area == "Sleep"
        assert data.days_tracked == 7
        assert data.perfect_days == 0
        assert data.has_data

    def test_summary_trending_up(self):
        data = _compose([SHORT_SLEEP_DAY] * 7, [HALF_DAY] * 7)
        assert data.previous_completion == pytest.approx(50.0)
        assert data.completion_trend == TrendDirection.INCREASING
        assert data.period_summary == (
            "This period: 88% avg completion, trending ↑ from last period. "
            "Focus area: Sleep (50% of goal)"
        )

    def test_summary_trending_down(self):
        data = _compose([HALF_DAY] * 7, [SHORT_SLEEP_DAY] * 7)
        assert data.completion_trend == TrendDirection.DECREASING
        assert ", trending ↓ from last period." in data.period_summary

    def test_nan_metric_counts_as_missed_goal(self):
        data = _compose([SHORT_SLEEP_DAY] * 6 + [dict(SHORT_SLEEP_DAY, sleep_hours=float("nan"))])
        # the last day keeps water, exercise and sunlight: 75%
        assert data.avg_completion == pytest.approx((6 * 87.5 + 75.0) / 7)
        assert data.streaks["sleep"] == 0

    def test_streaks(self):
        data = _compose([SHORT_SLEEP_DAY] * 7, [HALF_DAY] * 7)
        assert data.current_streak == 7
        assert data.streaks["water"] == 7
        assert data.streaks["exercise"] == 7
        assert data.streaks["sleep"] == 0
        assert data.streak_trend == TrendDirection.STABLE

    def test_metric_cards(self):
        data = _compose([SHORT_SLEEP_DAY] * 7)
        cards = {c.name: c for c in data.metric_cards}
        assert list(cards) == ["Water", "Sunlight", "Sleep", "Exercise"]
        water = cards["Water"]
        assert water.goal_percentage == pytest.approx(100.0)
        assert water.best_day == "Monday"
        assert water.consistency_text == "7/7 days hit goal"
        assert water.trend == TrendDirection.STABLE
        assert cards["Sleep"].days_hit_goal == 0

    def test_nutrition_and_social_cards_need_data(self):
        day = dict(SHORT_SLEEP_DAY, social_minutes=25,
                   food_entries=(FoodEntry(name="Oats", calories=2000, protein=60),))
        data = _compose([day] * 7)
        cards = {c.name: c for c in data.metric_cards}
        assert cards["Nutrition"].days_hit_goal == 7
        assert cards["Nutrition"].unit == "kcal"
        assert cards["Social"].average == pytest.approx(25.0)
        assert data.streaks["nutrition"] == 7

    def test_flat_week_has_trends_but_no_day_split(self):
        data = _compose([SHORT_SLEEP_DAY] * 7)
        p = data.pattern_insights
        assert p.has_enough_data
        assert p.most_active_days == ()
        assert p.rest_days == ()
        assert p.correlations == ()
        assert [t.metric for t in p.trends] == ["Exercise", "Sleep", "Nutrition"]


class TestInsights:

    def test_nutrition_insight_deficiencies_and_top_foods(self):
        nutrition = NutritionAggregates(
            avg_protein=25.0,
            avg_carbs=200.0,
            avg_micronutrients={"iron": 9.0},
            deficiencies=("Protein", "Iron"),
            deficient_days={"Protein": 3, "Iron": 2},
            top_foods=("Eggs", "Rice"),
            food_frequency={"Eggs": 4, "Rice": 2},
            avg_meals_per_day=2.5,
            days_with_data=4,
        )
        snapshot = AggregationSnapshot(window_days=7, generated_at=NOW, nutrition=nutrition)
        insight = DashboardComposer(GoalConfig(protein_grams=50)).nutrition_insights(snapshot)

        assert insight.has_food_data
        assert [d.name for d in insight.deficiencies] == ["Protein", "Iron"]
        assert insight.deficiencies[0].avg_percent == pytest.approx(50.0)
        assert insight.deficiencies[1].avg_percent == pytest.approx(50.0)
        assert insight.deficiencies[0].description == "3/4 days deficient"
        assert [(f.name, f.count) for f in insight.top_foods] == [("Eggs", 4), ("Rice", 2)]
        assert insight.protein_percent == pytest.approx(50.0)

    def test_pattern_insight_days_and_correlations(self):
        patterns = PatternData(
            exercise_by_weekday={1: 60.0, 3: 30.0, 5: 0.0, 7: 30.0},
            sleep_exercise_correlation=0.5,
            exercise_calories_correlation=-0.4,
            exercise_trend=TrendDirection.INCREASING,
        )
        insight = DashboardComposer.pattern_insights(patterns, 7)
        assert insight.most_active_days == ("Mon",)
        assert insight.rest_days == ("Fri",)
        assert [c.description for c in insight.correlations] == [
            "You sleep better on exercise days",
            "You tend to eat less on exercise days",
        ]
        assert all(c.is_positive for c in insight.correlations)
        assert [(t.metric, t.direction) for t in insight.trends] == [("Exercise", TrendDirection.INCREASING)]

    def test_negative_sleep_correlation(self):
        patterns = PatternData(exercise_by_weekday={1: 30.0}, sleep_exercise_correlation=-0.6)
        insight = DashboardComposer.pattern_insights(patterns, 10)
        assert insight.correlations[0].description == "Exercise might be affecting your sleep"
        assert not insight.correlations[0].is_positive

    def test_weak_correlation_is_ignored(self):
        patterns = PatternData(exercise_by_weekday={1: 30.0}, sleep_exercise_correlation=0.3)
        assert DashboardComposer.pattern_insights(patterns, 10).correlations == ()

    def test_pattern_insight_needs_a_week(self):
        patterns = PatternData(exercise_by_weekday={1: 60.0, 3: 0.0})
        assert DashboardComposer.pattern_insights(patterns, 6).has_enough_data is False
