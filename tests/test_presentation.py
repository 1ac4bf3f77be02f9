"""Tests for stats presentation: grades, messages, clock faces, payloads,
and the half-up rounding they all share."""

import pytest
from datetime import date

from practicetrack.numbers import percentage, round_half_up, safe_ratio
from practicetrack.stats.aggregation import (
    Consistency, InstrumentBreakdown, InstrumentShare, TempoPoint,
    TempoProgression, TotalTime, WeekTrend,
)
from practicetrack.stats.presentation import (
    consistency_grade,
    consistency_payload,
    format_clock,
    format_lap_offset,
    format_minutes,
    instrument_breakdown_payload,
    session_trends_payload,
    split_minutes,
    streak_message,
    streak_payload,
    tempo_progression_payload,
    total_time_payload,
)


# ═══════════════════════════════════════════════════════════════════════════
#  ROUNDING
# ═══════════════════════════════════════════════════════════════════════════


class TestRounding:

    @pytest.mark.parametrize("value,digits,expected", [
        (37.5, 0, 38),
        (36.5, 0, 37),
        (2.25, 1, 2.3),
        (14.2857, 1, 14.3),
        (-2.5, 0, -3),
        (10, 1, 10.0),
    ])
    def test_round_half_up(self, value, digits, expected):
        assert round_half_up(value, digits) == expected

    def test_integer_result_when_no_digits(self):
        assert isinstance(round_half_up(1.5), int)

    def test_safe_ratio(self):
        assert safe_ratio(3, 0) == 0.0
        assert safe_ratio(3, 4) == 0.75

    @pytest.mark.parametrize("part,whole,expected", [
        (23, 80, 28.8),
        (1, 7, 14.3),
        (2, 7, 28.6),
        (3, 0, 0.0),
        (-20, 80, -25.0),
    ])
    def test_percentage_exact_halves(self, part, whole, expected):
        assert percentage(part, whole) == expected


# ═══════════════════════════════════════════════════════════════════════════
#  FORMAT HELPERS
# ═══════════════════════════════════════════════════════════════════════════


class TestFormatting:

    @pytest.mark.parametrize("percentage,grade", [
        (100, "Excellent"),
        (90, "Excellent"),
        (89.9, "Great"),
        (75, "Great"),
        (50, "Good"),
        (25, "Fair"),
        (24.9, "Needs Improvement"),
        (0, "Needs Improvement"),
    ])
    def test_consistency_grade(self, percentage, grade):
        assert consistency_grade(percentage) == grade

    def test_streak_message(self):
        assert streak_message(0) == "Start your streak today!"
        assert streak_message(1) == "You've practiced 1 day in a row!"
        assert streak_message(5) == "You've practiced 5 days in a row!"

    def test_split_and_format_minutes(self):
        assert split_minutes(125) == (2, 5)
        assert format_minutes(125) == "2h 5m"
        assert format_minutes(45) == "45m"
        assert format_minutes(0) == "0m"

    def test_clock_faces(self):
        assert format_clock(75) == "01:15"
        assert format_clock(3725) == "1:02:05"
        assert format_lap_offset(75) == "00:01:15"
        assert format_lap_offset(3725) == "01:02:05"


# ═══════════════════════════════════════════════════════════════════════════
#  PAYLOADS
# ═══════════════════════════════════════════════════════════════════════════


class TestPayloads:

    def test_total_time(self):
        payload = total_time_payload(TotalTime(75, 2, 37.5))
        assert payload == {
            "total_minutes": 75,
            "total_hours": 1,
            "remaining_minutes": 15,
            "formatted": "1h 15m",
            "session_count": 2,
            "avg_session_duration": 37.5,
        }

    def test_streak(self):
        assert streak_payload(3) == {
            "current_streak": 3,
            "message": "You've practiced 3 days in a row!",
        }

    def test_consistency_includes_grade(self):
        payload = consistency_payload(Consistency(24, 30, 80.0))
        assert payload["grade"] == "Great"
        assert payload["days_practiced"] == 24

    def test_tempo_progression(self):
        result = TempoProgression(
            item_name="C major",
            points=[TempoPoint(date(2026, 3, 1), 80, None),
                    TempoPoint(date(2026, 3, 8), 100, "advanced")],
            first_tempo=80, latest_tempo=100,
            improvement_bpm=20, improvement_percentage=25.0,
        )
        payload = tempo_progression_payload(result)
        assert payload["progression"][1] == {
            "date": "2026-03-08", "tempo_bpm": 100, "difficulty_level": "advanced",
        }
        assert payload["summary"]["total_sessions"] == 2
        assert payload["summary"]["improvement_percentage"] == 25.0

    def test_trends_and_instruments(self):
        trends = session_trends_payload([WeekTrend(date(2026, 3, 9), 2, 45.0, 90)])
        assert trends == [{"week_start": "2026-03-09", "session_count": 2,
                           "avg_duration": 45.0, "total_minutes": 90}]

        breakdown = instrument_breakdown_payload(InstrumentBreakdown(
            total_minutes=90,
            instruments=[InstrumentShare("piano", 2, 90, 45.0, 100.0)],
        ))
        assert breakdown["instruments"][0]["percentage"] == 100.0
