"""
Latest-snapshot persistence.

Only the most recent AggregationSnapshot is kept: saving replaces the
single row keyed 'latest'.  The in-memory repository is used by tests and
dry runs; the PostgreSQL one stores the snapshot as JSONB.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional

from aggregated_data import AggregationSnapshot
from db_utils import connect, to_jsonable

log = logging.getLogger("snapshot_repository")

LATEST_KEY = "latest"


class SnapshotRepository(ABC):
    @abstractmethod
    def save(self, snapshot: AggregationSnapshot) -> None:
        ...

    @abstractmethod
    def load_latest(self) -> Optional[AggregationSnapshot]:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class InMemorySnapshotRepository(SnapshotRepository):
    def __init__(self):
        self._latest: Optional[AggregationSnapshot] = None

    def save(self, snapshot: AggregationSnapshot) -> None:
        self._latest = snapshot

    def load_latest(self) -> Optional[AggregationSnapshot]:
        return self._latest

    def clear(self) -> None:
        self._latest = None


class PostgresSnapshotRepository(SnapshotRepository):
    """Upserts the latest snapshot into aggregation_snapshots."""

    def __init__(self, conn_str: str | None = None):
        self.conn_str = conn_str

    def save(self, snapshot: AggregationSnapshot) -> None:
        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False, default=to_jsonable)
        conn = connect(self.conn_str)
        conn.autocommit = True
        try:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO aggregation_snapshots
                        (snapshot_key, window_days, generated_at, payload)
                    VALUES (%s, %s, %s, %s::jsonb)
                    ON CONFLICT (snapshot_key) DO UPDATE SET
                        window_days  = EXCLUDED.window_days,
                        generated_at = EXCLUDED.generated_at,
                        payload      = EXCLUDED.payload,
                        updated_at   = CURRENT_TIMESTAMP
                    """,
                    (LATEST_KEY, snapshot.window_days, snapshot.generated_at, payload),
                )
        finally:
            conn.close()
        log.info(
            "Snapshot saved (window=%d days, generated_at=%s)",
            snapshot.window_days, snapshot.generated_at.isoformat(),
        )

    def load_latest(self) -> Optional[AggregationSnapshot]:
        conn = connect(self.conn_str)
        try:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT payload FROM aggregation_snapshots WHERE snapshot_key = %s",
                    (LATEST_KEY,),
                )
                row = cur.fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        payload = row[0]
        if isinstance(payload, str):
            payload = json.loads(payload)
        try:
            return AggregationSnapshot.from_dict(payload)
        except (KeyError, TypeError, ValueError) as e:
            log.warning("Stored snapshot is unreadable, ignoring it: %s", e)
            return None

    def clear(self) -> None:
        conn = connect(self.conn_str)
        conn.autocommit = True
        try:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM aggregation_snapshots WHERE snapshot_key = %s", (LATEST_KEY,))
        finally:
            conn.close()
        log.info("Stored snapshot cleared.")
