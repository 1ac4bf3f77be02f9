"""Stats presentation: turns engine results into what people read.

Format helpers are shared with the timer (clock faces, lap offsets); the
``*_payload`` functions build the JSON documents the stats endpoints
return.
"""

from __future__ import annotations

from .aggregation import (
    Consistency,
    InstrumentBreakdown,
    TempoProgression,
    TopItem,
    TotalTime,
    WeekTrend,
)


# ═══════════════════════════════════════════════════════════════════════════
#  FORMAT HELPERS
# ═══════════════════════════════════════════════════════════════════════════

# Ordered descending so the first match wins.
CONSISTENCY_GRADES: list[tuple[float, str]] = [
    (90, "Excellent"),
    (75, "Great"),
    (50, "Good"),
    (25, "Fair"),
    (0,  "Needs Improvement"),
]


def split_minutes(total_minutes: int) -> tuple[int, int]:
    """125 → (2, 5)."""
    total_minutes = max(0, int(total_minutes))
    return total_minutes // 60, total_minutes % 60


def format_minutes(total_minutes: int) -> str:
    """125 → '2h 5m', 0 → '0m', 60 → '1h 0m'."""
    if total_minutes <= 0:
        return "0m"
    hours, mins = split_minutes(total_minutes)
    if hours == 0:
        return f"{mins}m"
    return f"{hours}h {mins}m"


def consistency_grade(percentage: float) -> str:
    """Label for a consistency percentage."""
    for threshold, label in CONSISTENCY_GRADES:
        if percentage >= threshold:
            return label
    return CONSISTENCY_GRADES[-1][1]


def streak_message(streak: int) -> str:
    if streak <= 0:
        return "Start your streak today!"
    return f"You've practiced {streak} day{'s' if streak > 1 else ''} in a row!"


def format_clock(seconds: int) -> str:
    """Timer face: 75 → '01:15', 3725 → '1:02:05'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins:02d}:{secs:02d}"


def format_lap_offset(seconds: int) -> str:
    """Offset into a session as zero-padded HH:MM:SS: 75 → '00:01:15'."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


# ═══════════════════════════════════════════════════════════════════════════
#  RESPONSE PAYLOADS
# ═══════════════════════════════════════════════════════════════════════════


def total_time_payload(result: TotalTime) -> dict:
    hours, remaining = split_minutes(result.total_minutes)
    return {
        "total_minutes": result.total_minutes,
        "total_hours": hours,
        "remaining_minutes": remaining,
        "formatted": format_minutes(result.total_minutes),
        "session_count": result.session_count,
        "avg_session_duration": result.avg_session_duration,
    }


def streak_payload(streak: int) -> dict:
    return {"current_streak": streak, "message": streak_message(streak)}


def consistency_payload(result: Consistency) -> dict:
    return {
        "days_practiced": result.days_practiced,
        "total_days": result.total_days,
        "consistency_percentage": result.consistency_percentage,
        "grade": consistency_grade(result.consistency_percentage),
    }


def top_items_payload(items: list[TopItem]) -> list[dict]:
    return [
        {
            "item_name": item.item_name,
            "item_type": item.item_type,
            "practice_count": item.practice_count,
            "avg_tempo": item.avg_tempo,
            "total_time": item.total_time,
        }
        for item in items
    ]


def tempo_progression_payload(result: TempoProgression) -> dict:
    return {
        "item_name": result.item_name,
        "progression": [
            {
                "date": point.date.isoformat(),
                "tempo_bpm": point.tempo_bpm,
                "difficulty_level": point.difficulty_level,
            }
            for point in result.points
        ],
        "summary": {
            "first_tempo": result.first_tempo,
            "latest_tempo": result.latest_tempo,
            "improvement_bpm": result.improvement_bpm,
            "improvement_percentage": result.improvement_percentage,
            "total_sessions": result.total_sessions,
        },
    }


def session_trends_payload(trends: list[WeekTrend]) -> list[dict]:
    return [
        {
            "week_start": week.week_start.isoformat(),
            "session_count": week.session_count,
            "avg_duration": week.avg_duration,
            "total_minutes": week.total_minutes,
        }
        for week in trends
    ]


def instrument_breakdown_payload(result: InstrumentBreakdown) -> dict:
    return {
        "total_minutes": result.total_minutes,
        "instruments": [
            {
                "instrument": share.instrument,
                "session_count": share.session_count,
                "total_minutes": share.total_minutes,
                "avg_duration": share.avg_duration,
                "percentage": share.percentage,
            }
            for share in result.instruments
        ],
    }
