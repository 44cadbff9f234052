"""
Pipeline Package
================
Orchestration around the pure aggregation engine.

Modules:
  migrations     - idempotent tracker schema setup / audit
  recompute      - single-flight, debounced snapshot recompute
  insight_prompt - AI prompt assembly and response parsing
"""
