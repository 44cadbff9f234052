"""Prompt building and response parsing for the AI insight client.

The HTTP call itself belongs to the client; this module only turns a
snapshot into prompt text and the model's reply into a StoredAnalysis.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from aggregated_data import AggregationSnapshot
from analytics.trends import TrendDirection
from constants import SIGNIFICANT_CORRELATION
from daily_log import DailyRecord, GoalConfig

SYSTEM_PROMPT = (
    "You are a health analytics expert. Analyze user health data and provide "
    "specific, actionable insights. Always respond with valid JSON only, no "
    "markdown or explanation."
)

RESPONSE_CONTRACT = """Provide analysis in this JSON format ONLY (no other text):
{
  "working": ["point 1", "point 2"],
  "attention": ["point 1", "point 2"],
  "recommendations": ["point 1", "point 2"]
}

Rules:
1. "working" - 2-3 genuine wins based on the data, not generic praise. Reference specific numbers.
2. "attention" - 2-3 specific issues with context (e.g., "Water intake dropped from 1.5L to 0.8L")
3. "recommendations" - 2-3 actionable, specific suggestions based on their actual patterns
4. Be direct and specific. Reference actual numbers from their data.
5. No generic advice like "drink more water" - be specific to their situation.
6. If a metric is at 0 or no data exists, don't include it in analysis.
"""

RECENT_DAYS_IN_PROMPT = 5

_FENCE_OPEN = re.compile(r"^```\w*\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass(frozen=True)
class StoredAnalysis:
    generated_at: datetime
    data_timestamp: datetime
    days_analyzed: int
    working: List[str] = field(default_factory=list)
    attention: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def has_content(self) -> bool:
        return bool(self.working or self.attention or self.recommendations)

    def needs_regeneration(self, data_timestamp: datetime) -> bool:
        """True when the snapshot it was built from has since been replaced."""
        return data_timestamp > self.data_timestamp

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "data_timestamp": self.data_timestamp.isoformat(),
            "days_analyzed": self.days_analyzed,
            "working": list(self.working),
            "attention": list(self.attention),
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredAnalysis":
        return cls(
            generated_at=datetime.fromisoformat(data["generated_at"]),
            data_timestamp=datetime.fromisoformat(data["data_timestamp"]),
            days_analyzed=int(data.get("days_analyzed", 0)),
            working=_string_list(data.get("working")),
            attention=_string_list(data.get("attention")),
            recommendations=_string_list(data.get("recommendations")),
        )


def _fmt(value: float) -> str:
    """Compact number for prompt text (2.0 -> '2', 2.5 -> '2.5')."""
    return f"{value:g}"


def build_analysis_prompt(
    snapshot: AggregationSnapshot,
    recent_records: Sequence[DailyRecord],
    goals: GoalConfig,
) -> str:
    """Assemble the analysis prompt from a snapshot and the latest records."""
    lines: List[str] = [
        "Analyze this health tracking data and provide insights.",
        "",
        f"=== AGGREGATED DATA ({snapshot.window_days} days) ===",
        "",
    ]

    for block in (snapshot.nutrition, snapshot.exercise, snapshot.social):
        if block.has_data:
            lines.append(block.to_ai_context())
            lines.append("")

    sm = snapshot.simple_metrics
    if sm.has_data:
        lines.extend([
            "Simple Metrics:",
            f"- Water: {sm.avg_water_liters:.1f}L avg (goal: {_fmt(goals.water_liters)}L), "
            f"{round(sm.water_goal_hit_rate * 100)}% hit rate",
            f"- Sunlight: {round(sm.avg_sunlight_minutes)} min avg (goal: {_fmt(goals.sunlight_minutes)} min), "
            f"{round(sm.sunlight_goal_hit_rate * 100)}% hit rate",
            f"- Sleep: {sm.avg_sleep_hours:.1f} hrs avg (goal: {_fmt(goals.sleep_hours)} hrs), "
            f"{round(sm.sleep_goal_hit_rate * 100)}% hit rate",
            "",
        ])

    p = snapshot.patterns
    if p.has_patterns:
        lines.append("Patterns detected:")
        if p.exercise_trend is not TrendDirection.UNKNOWN:
            lines.append(f"- Exercise trend: {p.exercise_trend.value}")
        if p.sleep_trend is not TrendDirection.UNKNOWN:
            lines.append(f"- Sleep trend: {p.sleep_trend.value}")
        r = p.sleep_exercise_correlation
        if r is not None and abs(r) > SIGNIFICANT_CORRELATION:
            kind = "positive" if r > 0 else "negative"
            lines.append(f"- Sleep-exercise correlation: {kind} ({r:.2f})")
        lines.append("")

    lines.append("=== RECENT DAILY VALUES ===")
    newest_first = sorted(recent_records, key=lambda rec: rec.date, reverse=True)
    for rec in newest_first[:RECENT_DAYS_IN_PROMPT]:
        lines.append(
            f"{rec.date}: Water {_fmt(rec.water_liters)}L, Sleep {_fmt(rec.sleep_hours)}hrs, "
            f"Exercise {_fmt(rec.exercise_minutes)}min, Calories {round(rec.nutrition.calories)}"
        )
    lines.append("")
    lines.append(RESPONSE_CONTRACT)
    return "\n".join(lines)


def build_analysis_messages(
    snapshot: AggregationSnapshot,
    recent_records: Sequence[DailyRecord],
    goals: GoalConfig,
) -> List[Dict[str, str]]:
    """Chat messages for the insight client: system role first, then the prompt."""
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": build_analysis_prompt(snapshot, recent_records, goals)},
    ]


def _string_list(value: Any) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    return []


def parse_analysis_response(
    response: str,
    snapshot: AggregationSnapshot,
    generated_at: Optional[datetime] = None,
) -> StoredAnalysis:
    """Parse the model reply; raises ValueError when no JSON object can be read."""
    cleaned = str(response or "").strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", cleaned, count=1)).strip()

    match = _JSON_OBJECT.search(cleaned)
    if match:
        cleaned = match.group(0)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ValueError(f"AI response is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("AI response JSON is not an object")

    return StoredAnalysis(
        generated_at=generated_at or datetime.now(),
        data_timestamp=snapshot.generated_at,
        days_analyzed=snapshot.window_days,
        working=_string_list(data.get("working")),
        attention=_string_list(data.get("attention")),
        recommendations=_string_list(data.get("recommendations")),
    )


def build_concise_summary(analysis: Optional[StoredAnalysis]) -> str:
    """Strict 3-bullet summary of a stored analysis for log lines and cards."""
    if analysis is None or not analysis.has_content:
        return (
            "- Working: Not enough analysed data yet.\n"
            "- Needs attention: Nothing flagged.\n"
            "- Next step: Keep logging and regenerate after the next recompute."
        )

    def clip(s: str, limit: int = 240) -> str:
        s = s.replace("\n", " ").strip()
        if len(s) <= limit:
            return s
        return s[: limit - 3].rstrip() + "..."

    working = analysis.working[0] if analysis.working else "Nothing stood out."
    attention = analysis.attention[0] if analysis.attention else "Nothing flagged."
    step = analysis.recommendations[0] if analysis.recommendations else "Keep the current routine."
    return "\n".join([
        f"- Working: {clip(working)}",
        f"- Needs attention: {clip(attention)}",
        f"- Next step: {clip(step)}",
    ])
