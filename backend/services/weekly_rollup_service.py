from __future__ import annotations

from datetime import date, timedelta
from typing import Any

from sqlalchemy.orm import Session

from db.models import DailyLog, User
from services.daily_log_store import list_daily_logs_in_range

# metric -> section whose completion makes the value meaningful
ROLLUP_METRICS: dict[str, str] = {
    "sleep_hours": "morning_completed",
    "sleep_quality": "morning_completed",
    "morning_mood": "morning_completed",
    "focus_level": "midday_completed",
    "energy_level": "midday_completed",
    "rumination_level": "midday_completed",
    "anxiety_level": "afternoon_completed",
    "overall_mood": "evening_completed",
    "day_rating": "evening_completed",
}


def _average(values: list[float]) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def summarize_logs(logs: list[DailyLog]) -> dict[str, Any]:
    averages: dict[str, float | None] = {}
    for metric, completed_attr in ROLLUP_METRICS.items():
        values = [
            float(getattr(log, metric))
            for log in logs
            if getattr(log, completed_attr) and getattr(log, metric) is not None
        ]
        averages[metric] = _average(values)

    return {
        "days_logged": len(logs),
        "days_complete": sum(1 for log in logs if log.is_complete),
        "medication_taken_days": sum(1 for log in logs if log.medication_completed and log.medication_taken),
        "averages": averages,
        "days": [
            {
                "id": log.id,
                "day": log.day_key,
                "is_complete": bool(log.is_complete),
                "morning_mood": log.morning_mood if log.morning_completed else None,
                "focus_level": log.focus_level if log.midday_completed else None,
                "overall_mood": log.overall_mood if log.evening_completed else None,
            }
            for log in logs
        ],
    }


def summarize_week(db: Session, user: User, week_start: date) -> dict[str, Any]:
    """Roll up the seven local days starting at week_start."""
    week_end = week_start + timedelta(days=6)
    logs = list_daily_logs_in_range(db, user.id, week_start, week_end)
    summary = summarize_logs(logs)
    summary["week_start"] = week_start.isoformat()
    summary["week_end"] = week_end.isoformat()
    return summary
