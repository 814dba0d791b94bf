# services/sleep_math.py
"""
Sleep duration arithmetic and history statistics.
"""
from typing import Any, Dict, Iterable, Literal

MINUTES_PER_DAY = 24 * 60
IDEAL_MIN_HOURS = 7
IDEAL_MAX_HOURS = 9
RESTFUL_QUALITY = 4


def _minutes(value: str) -> int:
    hour, minute = value.split(":")[:2]
    return int(hour) * 60 + int(minute)


def calculate_duration(bedtime: str, wake_time: str) -> float:
    """
    Hours between bedtime and wake time, rounded to one decimal.

    A wake time earlier than the bedtime is taken to be on the next day.
    """
    bed_minutes = _minutes(bedtime)
    wake_minutes = _minutes(wake_time)
    if wake_minutes < bed_minutes:
        wake_minutes += MINUTES_PER_DAY
    return round((wake_minutes - bed_minutes) / 60, 1)


def duration_feedback(hours: float) -> Literal["short", "ideal", "long"]:
    if hours < IDEAL_MIN_HOURS:
        return "short"
    if hours > IDEAL_MAX_HOURS:
        return "long"
    return "ideal"


def sleep_stats(entries: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Average duration and quality over a list of sleep_entries rows."""
    entries = list(entries)
    if not entries:
        return {
            "entries": 0,
            "average_duration": 0.0,
            "average_quality": 0.0,
            "restful_nights": 0,
        }

    durations = [float(e.get("duration") or 0) for e in entries]
    qualities = [int(e.get("quality") or 0) for e in entries]
    return {
        "entries": len(entries),
        "average_duration": round(sum(durations) / len(entries), 1),
        "average_quality": round(sum(qualities) / len(entries), 1),
        "restful_nights": sum(1 for q in qualities if q >= RESTFUL_QUALITY),
    }
