"""Single-flight recompute orchestration with debounced change triggers."""

from __future__ import annotations

import json
import logging
import os
import threading
import traceback
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional, Sequence

from aggregated_data import AggregationSnapshot
from aggregation_engine import AggregationEngine
from daily_log import GoalConfig, SocialActivity
from dashboard import ComputedDashboardData, DashboardComposer, split_windows
from log_store import LogStore
from snapshot_repository import SnapshotRepository

log = logging.getLogger("recompute")

DEFAULT_WINDOW_DAYS = 14
DEFAULT_DEBOUNCE_SECONDS = 2.0


class RecomputeCoordinator:
    """Owns the 'latest snapshot' and guarantees one recompute at a time.

    A trigger that arrives while a recompute is running is dropped, not
    queued.  The new snapshot replaces the old one by reference, so readers
    of ``latest`` always see a complete snapshot.
    """

    def __init__(
        self,
        engine: AggregationEngine,
        goals_provider: Callable[[], GoalConfig],
        repository: Optional[SnapshotRepository] = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
        social_provider: Optional[Callable[[], Sequence[SocialActivity]]] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        status_path: str | None = None,
    ):
        self.engine = engine
        self.goals_provider = goals_provider
        self.repository = repository
        self.window_days = window_days
        self.social_provider = social_provider
        self.debounce_seconds = debounce_seconds
        self.status_path = status_path or os.getenv("RECOMPUTE_STATUS_PATH") or None

        self._run_lock = threading.Lock()
        self._timer_lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._latest: Optional[AggregationSnapshot] = None
        self.dropped_triggers = 0
        self.last_status: Dict[str, Any] = {}

    @classmethod
    def from_env(cls, engine: AggregationEngine, repository: Optional[SnapshotRepository] = None,
                 **kwargs) -> "RecomputeCoordinator":
        window = _env_int("RECOMPUTE_WINDOW_DAYS", DEFAULT_WINDOW_DAYS)
        debounce = _env_float("RECOMPUTE_DEBOUNCE_SECONDS", DEFAULT_DEBOUNCE_SECONDS)
        return cls(
            engine,
            goals_provider=GoalConfig.from_env,
            repository=repository,
            window_days=window,
            debounce_seconds=debounce,
            **kwargs,
        )

    # ─── State ────────────────────────────────────────────

    @property
    def latest(self) -> Optional[AggregationSnapshot]:
        return self._latest

    @property
    def is_computing(self) -> bool:
        return self._run_lock.locked()

    def restore(self) -> Optional[AggregationSnapshot]:
        """Load the persisted snapshot when nothing has been computed yet."""
        if self._latest is None and self.repository is not None:
            self._latest = self.repository.load_latest()
        return self._latest

    # ─── Triggers ─────────────────────────────────────────

    def trigger(self, window_days: Optional[int] = None, raise_errors: bool = True) -> Optional[AggregationSnapshot]:
        """Recompute now; returns None when another recompute is in flight."""
        days = window_days if window_days is not None else self.window_days
        if not self._run_lock.acquire(blocking=False):
            self.dropped_triggers += 1
            self.last_status = {
                "run_started_at": datetime.utcnow().isoformat() + "Z",
                "window_days": days,
                "outcome": "dropped",
                "persisted": False,
            }
            log.info("Recompute already running, trigger dropped.")
            return None

        status: Dict[str, Any] = {
            "run_started_at": datetime.utcnow().isoformat() + "Z",
            "window_days": days,
            "outcome": "unknown",
            "persisted": False,
        }
        try:
            goals = self.goals_provider()
            social = list(self.social_provider()) if self.social_provider else None
            snapshot = self.engine.compute_aggregates(days, goals, social_activities=social)
            self._latest = snapshot
            status["outcome"] = "success"
            status["generated_at"] = snapshot.generated_at.isoformat()
            status["persisted"] = self._persist(snapshot)
            log.info(
                "Recompute complete (window=%d days, nutrition=%s, exercise=%s, patterns=%s)",
                days,
                snapshot.nutrition.has_data,
                snapshot.exercise.has_data,
                snapshot.patterns.has_patterns,
            )
            return snapshot
        except Exception as e:
            status["outcome"] = "failed"
            status["error"] = str(e)
            log.error("Recompute failed: %s", e)
            if raise_errors:
                raise
            traceback.print_exc()
            return None
        finally:
            status["run_finished_at"] = datetime.utcnow().isoformat() + "Z"
            self.last_status = status
            self._write_status_file(status)
            self._run_lock.release()

    def notify_record_changed(self) -> None:
        """Schedule a recompute after the debounce delay, restarting any pending one."""
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._debounced_run)
            self._timer.daemon = True
            self._timer.start()

    def cancel_pending(self) -> bool:
        with self._timer_lock:
            if self._timer is None:
                return False
            self._timer.cancel()
            self._timer = None
            return True

    def close(self) -> None:
        self.cancel_pending()

    def _debounced_run(self) -> None:
        with self._timer_lock:
            self._timer = None
        self.trigger(raise_errors=False)

    # ─── Dashboard ────────────────────────────────────────

    def compose_dashboard(
        self,
        store: LogStore,
        window_days: Optional[int] = None,
        today: Optional[date] = None,
    ) -> ComputedDashboardData:
        """Dashboard for the last ``window_days`` compared with the window before it."""
        days = window_days if window_days is not None else self.window_days
        goals = self.goals_provider()

        snapshot = self._latest
        if snapshot is None or snapshot.window_days != days:
            snapshot = self.engine.compute_aggregates(days, goals)

        current, previous = split_windows(store.get_recent_records(days * 2), days, today=today)
        return DashboardComposer(goals).compose(snapshot, current, previous)

    # ─── Helpers ──────────────────────────────────────────

    def _persist(self, snapshot: AggregationSnapshot) -> bool:
        if self.repository is None:
            return False
        try:
            self.repository.save(snapshot)
            return True
        except Exception as e:
            log.warning("Snapshot persistence failed (in-memory snapshot kept): %s", e)
            return False

    def _write_status_file(self, status: Dict[str, Any]) -> None:
        if not self.status_path:
            return
        try:
            with open(self.status_path, "w", encoding="utf-8") as fh:
                json.dump(status, fh, indent=2, ensure_ascii=False)
            log.info("Recompute status written to %s", self.status_path)
        except Exception as e:
            log.warning("Failed to write recompute status file: %s", e)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Ignoring %s=%r (not an integer), using %d", name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Ignoring %s=%r (not a number), using %s", name, raw, default)
        return default
