"""Stats package: aggregation engine and presentation helpers."""

from .aggregation import (
    Consistency,
    InstrumentBreakdown,
    InstrumentShare,
    TempoPoint,
    TempoProgression,
    TopItem,
    TotalTime,
    WeekTrend,
    consistency_score,
    instrument_breakdown,
    practice_streak,
    session_trends,
    tempo_progression,
    timeframe_bounds,
    top_items,
    total_practice_time,
)
from .presentation import (
    consistency_grade,
    format_clock,
    format_lap_offset,
    format_minutes,
    split_minutes,
    streak_message,
)

__all__ = [
    "Consistency",
    "InstrumentBreakdown",
    "InstrumentShare",
    "TempoPoint",
    "TempoProgression",
    "TopItem",
    "TotalTime",
    "WeekTrend",
    "consistency_score",
    "instrument_breakdown",
    "practice_streak",
    "session_trends",
    "tempo_progression",
    "timeframe_bounds",
    "top_items",
    "total_practice_time",
    "consistency_grade",
    "format_clock",
    "format_lap_offset",
    "format_minutes",
    "split_minutes",
    "streak_message",
]
