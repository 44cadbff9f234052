"""
Shared database utilities.
Single source of truth for PostgreSQL connection-string resolution and
row coercion for the record store and snapshot repository.
"""

from __future__ import annotations

import math
import os
from datetime import date, datetime
from decimal import Decimal
from typing import Any

import psycopg2
from dotenv import load_dotenv


def get_conn_str() -> str:
    """Return PostgreSQL connection string.

    Checks TRACKER_CONNECTION_STRING, then POSTGRES_CONNECTION_STRING, then
    DATABASE_URL (Heroku standard).  Normalises postgres:// to postgresql://
    for psycopg2.
    """
    load_dotenv()
    url = (
        os.getenv("TRACKER_CONNECTION_STRING")
        or os.getenv("POSTGRES_CONNECTION_STRING")
        or os.getenv("DATABASE_URL")
        or ""
    ).strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


def connect(conn_str: str | None = None):
    """Open a psycopg2 connection, failing loudly when nothing is configured."""
    cs = conn_str or get_conn_str()
    if not cs:
        raise RuntimeError(
            "TRACKER_CONNECTION_STRING (or POSTGRES_CONNECTION_STRING / DATABASE_URL) is not configured"
        )
    return psycopg2.connect(cs)


def to_jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def to_float(value: Any) -> float:
    if value is None:
        return 0.0
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    # PostgreSQL DOUBLE PRECISION columns can hold NaN and Infinity.
    return result if math.isfinite(result) else 0.0
