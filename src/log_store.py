"""
Record store adapters.

LogStore is the read side the aggregation engine consumes.  Two
implementations live here: an in-memory store (also used by the tracking
UI tests and the CLI dry runs) and a PostgreSQL store that reads the
tables created by pipeline.migrations.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from psycopg2.extras import RealDictCursor

from daily_log import ActivityRecord, DailyRecord, FoodEntry, NUTRIENT_FIELDS
from db_utils import connect, to_float

log = logging.getLogger("log_store")


class LogStore(ABC):
    """Read-only view of daily records and discrete activity logs."""

    @abstractmethod
    def get_recent_records(self, days: int) -> List[DailyRecord]:
        """Records dated within the last ``days`` calendar days (today included)."""

    @abstractmethod
    def get_all_activity_records(self) -> List[ActivityRecord]:
        """Every logged activity; callers filter to their own window."""


def window_start(today: date, days: int) -> date:
    return today - timedelta(days=max(days, 1) - 1)


# ─── In-memory store ────────────────────────────────────────

class InMemoryLogStore(LogStore):
    """Dict-backed store keyed by ISO date; one record per date."""

    def __init__(self, today: Optional[Callable[[], date]] = None):
        self._today = today or date.today
        self._records: Dict[str, DailyRecord] = {}
        self._activities: List[ActivityRecord] = []

    def get_or_create(self, day: str) -> DailyRecord:
        date.fromisoformat(day)
        record = self._records.get(day)
        if record is None:
            record = DailyRecord(date=day)
            self._records[day] = record
        return record

    def upsert(self, record: DailyRecord) -> None:
        date.fromisoformat(record.date)
        self._records[record.date] = record

    def add_food(self, day: str, entry: FoodEntry) -> DailyRecord:
        record = self.get_or_create(day)
        updated = replace(record, food_entries=record.food_entries + (entry,))
        self._records[day] = updated
        return updated

    def log_activity(self, activity: ActivityRecord) -> DailyRecord:
        """Append the activity and add its minutes to that day's total."""
        self._activities.append(activity)
        day = activity.timestamp.date().isoformat()
        record = self.get_or_create(day)
        if activity.kind == "social":
            updated = replace(record, social_minutes=record.social_minutes + activity.duration_minutes)
        else:
            updated = replace(record, exercise_minutes=record.exercise_minutes + activity.duration_minutes)
        self._records[day] = updated
        return updated

    def reset(self) -> None:
        self._records.clear()
        self._activities.clear()

    def get_recent_records(self, days: int) -> List[DailyRecord]:
        today = self._today()
        start = window_start(today, days)
        return [
            self._records[k]
            for k in sorted(self._records)
            if start <= date.fromisoformat(k) <= today
        ]

    def get_all_activity_records(self) -> List[ActivityRecord]:
        return list(self._activities)


# ─── PostgreSQL store ───────────────────────────────────────

_FOOD_COLUMNS = ", ".join(("id", "log_date", "name", "logged_at") + NUTRIENT_FIELDS + ("serving_size", "serving_unit"))


class PostgresLogStore(LogStore):
    """Reads daily_records, food_entries and activity_records."""

    def __init__(self, conn_str: str | None = None, today: Optional[Callable[[], date]] = None):
        self.conn_str = conn_str
        self._today = today or date.today

    def _fetch_all(self, query: str, params: Optional[tuple] = None) -> List[Dict[str, Any]]:
        conn = connect(self.conn_str)
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params or ())
                return [dict(row) for row in cur.fetchall()]
        finally:
            conn.close()

    def get_recent_records(self, days: int) -> List[DailyRecord]:
        today = self._today()
        start = window_start(today, days)

        rows = self._fetch_all(
            """
            SELECT log_date, water_liters, exercise_minutes, sunlight_minutes,
                   sleep_hours, social_minutes, notes
            FROM daily_records
            WHERE log_date BETWEEN %s AND %s
            ORDER BY log_date
            """,
            (start, today),
        )
        food_rows = self._fetch_all(
            f"""
            SELECT {_FOOD_COLUMNS}
            FROM food_entries
            WHERE log_date BETWEEN %s AND %s
            ORDER BY log_date, logged_at NULLS LAST, id
            """,
            (start, today),
        )

        foods: Dict[str, List[FoodEntry]] = {}
        for row in food_rows:
            foods.setdefault(_iso(row["log_date"]), []).append(_food_from_row(row))

        records = [
            DailyRecord(
                date=_iso(row["log_date"]),
                water_liters=to_float(row.get("water_liters")),
                exercise_minutes=to_float(row.get("exercise_minutes")),
                sunlight_minutes=to_float(row.get("sunlight_minutes")),
                sleep_hours=to_float(row.get("sleep_hours")),
                social_minutes=to_float(row.get("social_minutes")),
                notes=row.get("notes") or "",
                food_entries=tuple(foods.get(_iso(row["log_date"]), ())),
            )
            for row in rows
        ]
        log.info("Loaded %d daily records (%s .. %s)", len(records), start, today)
        return records

    def get_all_activity_records(self) -> List[ActivityRecord]:
        rows = self._fetch_all(
            """
            SELECT id, name, duration_minutes, logged_at, kind, notes
            FROM activity_records
            ORDER BY logged_at
            """
        )
        return [
            ActivityRecord(
                id=str(row["id"]) if row.get("id") is not None else None,
                name=row.get("name") or "",
                duration_minutes=to_float(row.get("duration_minutes")),
                timestamp=row["logged_at"],
                kind=row.get("kind") or "exercise",
                notes=row.get("notes") or "",
            )
            for row in rows
        ]


def _iso(value: Any) -> str:
    if isinstance(value, (date, datetime)):
        return value.isoformat()[:10]
    return str(value)


def _food_from_row(row: Dict[str, Any]) -> FoodEntry:
    nutrients = {
        name: (float(row[name]) if row.get(name) is not None else None)
        for name in NUTRIENT_FIELDS
    }
    return FoodEntry(
        id=str(row["id"]) if row.get("id") is not None else None,
        name=row.get("name") or "",
        timestamp=row.get("logged_at"),
        serving_size=float(row["serving_size"]) if row.get("serving_size") is not None else None,
        serving_unit=row.get("serving_unit"),
        **nutrients,
    )
