"""Startup migration and audit helpers for the tracker tables."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from daily_log import NUTRIENT_FIELDS
from db_utils import connect

log = logging.getLogger("pipeline.migrations")

REQUIRED_TABLES: List[str] = [
    "daily_records",
    "food_entries",
    "activity_records",
    "social_activities",
    "aggregation_snapshots",
]

_NUTRIENT_COLUMNS = ",\n".join(f"    {name} DOUBLE PRECISION" for name in NUTRIENT_FIELDS)

SCHEMA_STATEMENTS: List[str] = [
    """
    CREATE TABLE IF NOT EXISTS daily_records (
        log_date          DATE PRIMARY KEY,
        water_liters      DOUBLE PRECISION DEFAULT 0,
        exercise_minutes  DOUBLE PRECISION DEFAULT 0,
        sunlight_minutes  DOUBLE PRECISION DEFAULT 0,
        sleep_hours       DOUBLE PRECISION DEFAULT 0,
        social_minutes    DOUBLE PRECISION DEFAULT 0,
        notes             TEXT DEFAULT '',
        updated_at        TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    f"""
    CREATE TABLE IF NOT EXISTS food_entries (
        id            SERIAL PRIMARY KEY,
        log_date      DATE NOT NULL REFERENCES daily_records(log_date) ON DELETE CASCADE,
        name          TEXT NOT NULL,
        logged_at     TIMESTAMP,
    {_NUTRIENT_COLUMNS},
        serving_size  DOUBLE PRECISION,
        serving_unit  TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_food_entries_date
    ON food_entries(log_date)
    """,
    """
    CREATE TABLE IF NOT EXISTS activity_records (
        id                SERIAL PRIMARY KEY,
        name              TEXT NOT NULL,
        duration_minutes  DOUBLE PRECISION DEFAULT 0,
        logged_at         TIMESTAMP NOT NULL,
        kind              TEXT NOT NULL DEFAULT 'exercise',
        notes             TEXT DEFAULT ''
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_activity_records_logged_at
    ON activity_records(logged_at DESC)
    """,
    """
    CREATE TABLE IF NOT EXISTS social_activities (
        id                SERIAL PRIMARY KEY,
        name              TEXT NOT NULL,
        category          TEXT NOT NULL,
        logged_at         TIMESTAMP,
        duration_minutes  DOUBLE PRECISION DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS aggregation_snapshots (
        snapshot_key  TEXT PRIMARY KEY,
        window_days   INTEGER NOT NULL,
        generated_at  TIMESTAMP NOT NULL,
        payload       JSONB NOT NULL,
        updated_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def ensure_startup_schema(conn_str: str | None = None) -> None:
    """Run idempotent startup migrations before any recompute."""
    conn = connect(conn_str)
    conn.autocommit = True
    try:
        with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                cur.execute(statement)
    finally:
        conn.close()

    log.info("Startup migrations completed (%d statements).", len(SCHEMA_STATEMENTS))


def schema_audit(conn_str: str | None = None) -> Dict[str, Any]:
    """Return which required tables exist, for runtime inspection."""
    try:
        conn = connect(conn_str)
    except RuntimeError as e:
        return {"ok": False, "error": str(e), "tables": {}, "missing_tables": []}

    out: Dict[str, Any] = {"ok": True, "tables": {}, "missing_tables": []}
    try:
        with conn.cursor() as cur:
            for table in REQUIRED_TABLES:
                cur.execute(
                    """
                    SELECT EXISTS (
                        SELECT 1
                        FROM information_schema.tables
                        WHERE table_schema = 'public' AND table_name = %s
                    )
                    """,
                    (table,),
                )
                exists = bool(cur.fetchone()[0])
                out["tables"][table] = {"exists": exists}
                if not exists:
                    out["missing_tables"].append(table)
    finally:
        conn.close()

    out["ok"] = not out["missing_tables"]
    return out
