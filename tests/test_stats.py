"""Tests for the aggregation engine: totals, streaks, consistency, top
items, tempo progression, weekly trends and the instrument breakdown.

Every test pins ``today`` so results do not depend on the calendar.
"""

import pytest
from datetime import date, timedelta

from practicetrack.database.db import get_session
from practicetrack.database.models import PracticeSession, SessionItem, User
from practicetrack.errors import NotFoundError, ValidationError
from practicetrack.stats.aggregation import (
    consistency_score,
    instrument_breakdown,
    practice_streak,
    session_trends,
    tempo_progression,
    timeframe_bounds,
    top_items,
    total_practice_time,
    week_start,
)


TODAY = date(2026, 3, 14)   # a Saturday


def _days_ago(n: int) -> date:
    return TODAY - timedelta(days=n)


def _user(name: str = "ana") -> int:
    with get_session() as db:
        user = User(email=f"{name}@example.com", username=name, password_hash="x")
        db.add(user)
        db.flush()
        return user.id


def _practice(user_id, day, total, actual=None, instrument=None, items=()):
    """Insert a completed session; *items* are SessionItem kwargs."""
    with get_session() as db:
        session = PracticeSession(
            user_id=user_id,
            practice_date=day,
            total_duration=total,
            actual_duration=actual,
            instrument=instrument,
        )
        session.items = [SessionItem(**kwargs) for kwargs in items]
        db.add(session)
        db.flush()
        return session.id


def _item(name, item_type="scale", tempo=None, minutes=None, **kwargs):
    return {"item_name": name, "item_type": item_type, "tempo_bpm": tempo,
            "time_spent_minutes": minutes, **kwargs}


# ═══════════════════════════════════════════════════════════════════════════
#  EFFECTIVE DURATION
# ═══════════════════════════════════════════════════════════════════════════


class TestEffectiveDuration:

    def test_actual_wins_over_planned(self):
        uid = _user()
        sid = _practice(uid, TODAY, total=60, actual=50)
        with get_session() as db:
            assert db.get(PracticeSession, sid).effective_duration == 50

    def test_planned_used_when_no_actual(self):
        uid = _user()
        sid = _practice(uid, TODAY, total=60)
        with get_session() as db:
            assert db.get(PracticeSession, sid).effective_duration == 60

    def test_expression_usable_in_queries(self):
        uid = _user()
        _practice(uid, TODAY, total=60, actual=10)
        _practice(uid, TODAY, total=20)
        with get_session() as db:
            rows = (
                db.query(PracticeSession.effective_duration)
                .order_by(PracticeSession.effective_duration)
                .all()
            )
        assert [r[0] for r in rows] == [10, 20]


# ═══════════════════════════════════════════════════════════════════════════
#  TOTAL PRACTICE TIME
# ═══════════════════════════════════════════════════════════════════════════


class TestTotalTime:

    def test_sums_effective_minutes(self):
        uid = _user()
        _practice(uid, TODAY, total=45)
        _practice(uid, _days_ago(1), total=60, actual=30)
        with get_session() as db:
            result = total_practice_time(db, uid)
        assert result.total_minutes == 75
        assert result.session_count == 2
        assert result.avg_session_duration == 37.5

    def test_no_sessions(self):
        uid = _user()
        with get_session() as db:
            result = total_practice_time(db, uid)
        assert (result.total_minutes, result.session_count, result.avg_session_duration) \
            == (0, 0, 0.0)

    def test_bounds_are_inclusive(self):
        uid = _user()
        _practice(uid, _days_ago(7), total=10)
        _practice(uid, _days_ago(8), total=100)
        _practice(uid, TODAY, total=20)
        start, end = timeframe_bounds("week", today=TODAY)
        with get_session() as db:
            result = total_practice_time(db, uid, start, end)
        assert result.total_minutes == 30

    def test_other_users_are_ignored(self):
        ana, ben = _user("ana"), _user("ben")
        _practice(ana, TODAY, total=30)
        _practice(ben, TODAY, total=90)
        with get_session() as db:
            assert total_practice_time(db, ana).total_minutes == 30

    @pytest.mark.parametrize("timeframe,expected", [
        ("today", (TODAY, TODAY)),
        ("week", (date(2026, 3, 7), TODAY)),
        ("month", (date(2026, 2, 12), TODAY)),
        ("all", (None, None)),
        (None, (None, None)),
        ("WEEK", (date(2026, 3, 7), TODAY)),
    ])
    def test_timeframe_bounds(self, timeframe, expected):
        assert timeframe_bounds(timeframe, today=TODAY) == expected

    def test_unknown_timeframe_rejected(self):
        with pytest.raises(ValidationError):
            timeframe_bounds("fortnight", today=TODAY)


# ═══════════════════════════════════════════════════════════════════════════
#  STREAK
# ═══════════════════════════════════════════════════════════════════════════


class TestStreak:

    def test_no_practice_means_zero(self):
        uid = _user()
        with get_session() as db:
            assert practice_streak(db, uid) == 0

    def test_consecutive_days_until_gap(self):
        uid = _user()
        for n in (0, 1, 2, 4, 5):
            _practice(uid, _days_ago(n), total=20)
        with get_session() as db:
            assert practice_streak(db, uid) == 3

    def test_same_day_counts_once(self):
        uid = _user()
        _practice(uid, TODAY, total=20)
        _practice(uid, TODAY, total=40)
        _practice(uid, _days_ago(1), total=20)
        with get_session() as db:
            assert practice_streak(db, uid) == 2

    def test_anchored_at_most_recent_practice(self):
        uid = _user()
        _practice(uid, _days_ago(5), total=20)
        _practice(uid, _days_ago(6), total=20)
        with get_session() as db:
            assert practice_streak(db, uid) == 2

    def test_zero_minute_sessions_do_not_count(self):
        uid = _user()
        _practice(uid, TODAY, total=30, actual=0)
        _practice(uid, _days_ago(1), total=20)
        with get_session() as db:
            assert practice_streak(db, uid) == 1


# ═══════════════════════════════════════════════════════════════════════════
#  CONSISTENCY
# ═══════════════════════════════════════════════════════════════════════════


class TestConsistency:

    def test_distinct_days_in_window(self):
        uid = _user()
        for n in (0, 0, 3, 30, 31):
            _practice(uid, _days_ago(n), total=15)
        with get_session() as db:
            result = consistency_score(db, uid, 30, today=TODAY)
        assert result.days_practiced == 3
        assert result.total_days == 30
        assert result.consistency_percentage == 10.0

    def test_rounds_to_one_decimal(self):
        uid = _user()
        _practice(uid, TODAY, total=15)
        with get_session() as db:
            result = consistency_score(db, uid, 7, today=TODAY)
        assert result.consistency_percentage == 14.3

    def test_exact_half_rounds_up(self):
        uid = _user()
        for n in range(23):
            _practice(uid, _days_ago(n), total=15)
        with get_session() as db:
            result = consistency_score(db, uid, 80, today=TODAY)
        assert result.days_practiced == 23
        assert result.consistency_percentage == 28.8

    def test_future_sessions_excluded(self):
        uid = _user()
        _practice(uid, TODAY + timedelta(days=1), total=15)
        with get_session() as db:
            assert consistency_score(db, uid, 30, today=TODAY).days_practiced == 0

    @pytest.mark.parametrize("days", [0, 366, -1])
    def test_days_out_of_range(self, days):
        uid = _user()
        with get_session() as db, pytest.raises(ValidationError) as info:
            consistency_score(db, uid, days, today=TODAY)
        assert "between 1 and 365" in info.value.message


# ═══════════════════════════════════════════════════════════════════════════
#  TOP ITEMS
# ═══════════════════════════════════════════════════════════════════════════


class TestTopItems:

    def _seed(self):
        uid = _user()
        _practice(uid, _days_ago(2), total=60, items=[
            _item("C major", tempo=80, minutes=5),
            _item("Sonata", "piece", minutes=20),
        ])
        _practice(uid, _days_ago(1), total=60, items=[
            _item("C major", tempo=90, minutes=5),
            _item("Sonata", "piece", minutes=20),
        ])
        _practice(uid, TODAY, total=60, items=[
            _item("C major", tempo=101, minutes=5),
            _item("Sonata", "piece", minutes=20),
            _item("Hanon 1", "exercise", tempo=100, minutes=10),
        ])
        return uid

    def test_ranked_by_count_then_time(self):
        uid = self._seed()
        with get_session() as db:
            items = top_items(db, uid)
        assert [(i.item_name, i.practice_count, i.total_time) for i in items] == [
            ("Sonata", 3, 60),
            ("C major", 3, 15),
            ("Hanon 1", 1, 10),
        ]

    def test_average_tempo(self):
        uid = self._seed()
        with get_session() as db:
            by_name = {i.item_name: i for i in top_items(db, uid)}
        assert by_name["C major"].avg_tempo == 90
        assert by_name["Sonata"].avg_tempo is None

    def test_average_tempo_rounds_half_up(self):
        uid = _user()
        _practice(uid, TODAY, total=30, items=[
            _item("Arpeggios", tempo=80), _item("Arpeggios", tempo=81),
        ])
        with get_session() as db:
            assert top_items(db, uid)[0].avg_tempo == 81

    def test_same_name_different_type_kept_apart(self):
        uid = _user()
        _practice(uid, TODAY, total=30, items=[
            _item("Blues", "scale"), _item("Blues", "piece"),
        ])
        with get_session() as db:
            assert len(top_items(db, uid)) == 2

    def test_limit(self):
        uid = self._seed()
        with get_session() as db:
            assert len(top_items(db, uid, limit=1)) == 1

    @pytest.mark.parametrize("limit", [0, 51])
    def test_limit_out_of_range(self, limit):
        uid = _user()
        with get_session() as db, pytest.raises(ValidationError):
            top_items(db, uid, limit=limit)


# ═══════════════════════════════════════════════════════════════════════════
#  TEMPO PROGRESSION
# ═══════════════════════════════════════════════════════════════════════════


class TestTempoProgression:

    def test_oldest_first_with_summary(self):
        uid = _user()
        _practice(uid, TODAY, total=30, items=[_item("C major", tempo=100)])
        _practice(uid, _days_ago(10), total=30, items=[
            _item("C major", tempo=80, difficulty_level="beginner"),
        ])
        _practice(uid, _days_ago(5), total=30, items=[
            _item("C major", tempo=None), _item("C major", tempo=92),
        ])
        with get_session() as db:
            result = tempo_progression(db, uid, "C major")

        assert [p.tempo_bpm for p in result.points] == [80, 92, 100]
        assert result.points[0].date == _days_ago(10)
        assert result.points[0].difficulty_level == "beginner"
        assert result.first_tempo == 80
        assert result.latest_tempo == 100
        assert result.improvement_bpm == 20
        assert result.improvement_percentage == 25.0
        assert result.total_sessions == 3

    def test_slower_is_negative(self):
        uid = _user()
        _practice(uid, _days_ago(1), total=30, items=[_item("Etude", tempo=120)])
        _practice(uid, TODAY, total=30, items=[_item("Etude", tempo=90)])
        with get_session() as db:
            result = tempo_progression(db, uid, "Etude")
        assert result.improvement_bpm == -30
        assert result.improvement_percentage == -25.0

    def test_unknown_item(self):
        uid = _user()
        _practice(uid, TODAY, total=30, items=[_item("Etude")])
        with get_session() as db, pytest.raises(NotFoundError):
            tempo_progression(db, uid, "Etude")


# ═══════════════════════════════════════════════════════════════════════════
#  SESSION TRENDS
# ═══════════════════════════════════════════════════════════════════════════


class TestSessionTrends:

    def test_week_start_is_monday(self):
        assert week_start(TODAY) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 9)) == date(2026, 3, 9)
        assert week_start(date(2026, 3, 8)) == date(2026, 3, 2)

    def test_buckets_newest_first(self):
        uid = _user()
        _practice(uid, TODAY, total=30)
        _practice(uid, date(2026, 3, 9), total=60)
        _practice(uid, date(2026, 3, 8), total=45)
        _practice(uid, date(2026, 3, 6), total=999)    # before the window
        with get_session() as db:
            trends = session_trends(db, uid, weeks=1, today=TODAY)

        assert [(t.week_start, t.session_count, t.total_minutes, t.avg_duration)
                for t in trends] == [
            (date(2026, 3, 9), 2, 90, 45.0),
            (date(2026, 3, 2), 1, 45, 45.0),
        ]

    def test_uses_effective_duration(self):
        uid = _user()
        _practice(uid, TODAY, total=60, actual=25)
        with get_session() as db:
            assert session_trends(db, uid, today=TODAY)[0].total_minutes == 25

    @pytest.mark.parametrize("weeks", [0, 53])
    def test_weeks_out_of_range(self, weeks):
        uid = _user()
        with get_session() as db, pytest.raises(ValidationError):
            session_trends(db, uid, weeks=weeks, today=TODAY)


# ═══════════════════════════════════════════════════════════════════════════
#  INSTRUMENT BREAKDOWN
# ═══════════════════════════════════════════════════════════════════════════


class TestInstrumentBreakdown:

    def test_shares(self):
        uid = _user()
        _practice(uid, TODAY, total=60, instrument="piano")
        _practice(uid, TODAY, total=40, actual=30, instrument="piano")
        _practice(uid, TODAY, total=45, instrument="Guitar")
        _practice(uid, TODAY, total=15)
        with get_session() as db:
            result = instrument_breakdown(db, uid)

        assert result.total_minutes == 150
        assert [(s.instrument, s.session_count, s.total_minutes, s.avg_duration, s.percentage)
                for s in result.instruments] == [
            ("piano", 2, 90, 45.0, 60.0),
            ("guitar", 1, 45, 45.0, 30.0),
            ("not specified", 1, 15, 15.0, 10.0),
        ]

    def test_exact_half_share_rounds_up(self):
        uid = _user()
        _practice(uid, TODAY, total=23, instrument="piano")
        _practice(uid, TODAY, total=57, instrument="guitar")
        with get_session() as db:
            result = instrument_breakdown(db, uid)
        assert [(s.instrument, s.percentage) for s in result.instruments] == [
            ("guitar", 71.3), ("piano", 28.8),
        ]

    def test_empty(self):
        uid = _user()
        with get_session() as db:
            result = instrument_breakdown(db, uid)
        assert result.total_minutes == 0
        assert result.instruments == []


# ═══════════════════════════════════════════════════════════════════════════
#  REPEATABILITY
# ═══════════════════════════════════════════════════════════════════════════


class TestRepeatability:

    def test_every_query_returns_identical_results_twice(self):
        uid = _user()
        # Equal counts, minutes and tempos so only the tie-breakers decide order.
        _practice(uid, TODAY, total=30, instrument="piano", items=[
            _item("Arpeggio", tempo=80, minutes=10), _item("Bourree", tempo=80, minutes=10),
        ])
        _practice(uid, TODAY, total=30, instrument="guitar", items=[
            _item("Bourree", tempo=90, minutes=10), _item("Arpeggio", tempo=90, minutes=10),
        ])
        _practice(uid, _days_ago(9), total=30, items=[
            _item("Arpeggio", "piece", tempo=70, minutes=10),
        ])

        def run():
            with get_session() as db:
                return (
                    total_practice_time(db, uid),
                    practice_streak(db, uid),
                    consistency_score(db, uid, 30, today=TODAY),
                    top_items(db, uid, 10),
                    tempo_progression(db, uid, "Arpeggio"),
                    session_trends(db, uid, 4, today=TODAY),
                    instrument_breakdown(db, uid),
                )

        first = run()
        assert run() == first
        assert [(i.item_name, i.item_type) for i in first[3]] == [
            ("Arpeggio", "scale"), ("Bourree", "scale"), ("Arpeggio", "piece"),
        ]
        assert [s.instrument for s in first[6].instruments] == [
            "guitar", "not specified", "piano",
        ]
