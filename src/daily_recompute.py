"""
Daily Recompute: Tracker Aggregation Runner
===========================================
Standalone orchestrator.  Run on a schedule (or after a bulk edit) to:
  1. Ensure the tracker schema exists
  2. Recompute the aggregation snapshot over the last N days
  3. Persist it as the latest snapshot
  4. Optionally log the dashboard summary and the AI prompt

Usage:
    python daily_recompute.py                 # 14-day window, persisted
    python daily_recompute.py --days 30       # custom window
    python daily_recompute.py --no-persist    # compute only
    python daily_recompute.py --dashboard     # also log dashboard cards
    python daily_recompute.py --prompt        # also log the AI prompt
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger("daily_recompute")

from aggregation_engine import AggregationEngine
from log_store import PostgresLogStore
from pipeline.insight_prompt import build_analysis_messages
from pipeline.migrations import ensure_startup_schema
from pipeline.recompute import RecomputeCoordinator
from snapshot_repository import PostgresSnapshotRepository


def run(days: int | None = None, persist: bool = True, dashboard: bool = False, prompt: bool = False) -> bool:
    log.info("=" * 60)
    log.info("  DAILY RECOMPUTE STARTED")
    log.info("=" * 60)

    try:
        log.info("Step 1/3: Running startup migrations...")
        ensure_startup_schema()

        store = PostgresLogStore()
        coordinator = RecomputeCoordinator.from_env(
            AggregationEngine(store),
            repository=PostgresSnapshotRepository() if persist else None,
        )
        window = days if days is not None else coordinator.window_days

        log.info("Step 2/3: Computing %d-day aggregates...", window)
        snapshot = coordinator.trigger(window)
        if snapshot is None:
            log.error("Recompute was dropped (another run in progress).")
            return False

        log.info("Step 3/3: Persisted=%s", coordinator.last_status.get("persisted"))

        if dashboard:
            data = coordinator.compose_dashboard(store, window)
            log.info("DASHBOARD: %s", data.period_summary)
            for card in data.metric_cards:
                log.info(
                    "  %-10s avg %.1f %s / goal %.1f (%s, best %s)",
                    card.name, card.average, card.unit, card.goal,
                    card.consistency_text, card.best_day,
                )

        if prompt:
            records = store.get_recent_records(window)
            for message in build_analysis_messages(snapshot, records, coordinator.goals_provider()):
                log.info("AI PROMPT [%s]:\n%s", message["role"], message["content"])

        return True

    except Exception as e:
        log.error("Recompute failed: %s", e)
        return False
    finally:
        log.info("=" * 60)
        log.info("  DAILY RECOMPUTE COMPLETE")
        log.info("=" * 60)


def main():
    parser = argparse.ArgumentParser(
        description="Tracker aggregation recompute"
    )
    parser.add_argument("--days", type=int, default=None,
                        help="Window size in days (default: RECOMPUTE_WINDOW_DAYS or 14)")
    parser.add_argument("--no-persist", action="store_true",
                        help="Compute only, do not store the snapshot")
    parser.add_argument("--dashboard", action="store_true",
                        help="Log the composed dashboard summary and metric cards")
    parser.add_argument("--prompt", action="store_true",
                        help="Log the AI insight prompt for the new snapshot")
    args = parser.parse_args()

    success = run(
        days=args.days,
        persist=not args.no_persist,
        dashboard=args.dashboard,
        prompt=args.prompt,
    )
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
