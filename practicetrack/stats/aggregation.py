"""Aggregation engine: everything the stats screen knows is computed here.

Every function takes an open ORM session and a user id, issues read-only
queries, and returns plain dataclasses.  Nothing is cached or written
back; calling twice against unchanged data returns identical results
(every ORDER BY carries a deterministic tie-breaker).

Effective duration
------------------
A session counts for ``actual_duration`` minutes when that was recorded,
otherwise for its planned ``total_duration``.  The rule lives in
:attr:`PracticeSession.effective_duration` (a hybrid property, so the
same definition works in Python and in SQL) and every sum, average,
streak and consistency check below goes through it.

Rounding
--------
Averages and percentages: one decimal, half away from zero.
Tempo, minutes and counts: integers.  Division by zero gives 0.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session as OrmSession

from ..database.models import NO_INSTRUMENT_LABEL, PracticeSession, SessionItem
from ..errors import NotFoundError, ValidationError
from ..numbers import percentage, round_half_up, safe_ratio


# ── limits (callers' query parameters are checked against these) ─────────

CONSISTENCY_DAYS_RANGE = (1, 365)
TOP_ITEMS_LIMIT_RANGE = (1, 50)
TRENDS_WEEKS_RANGE = (1, 52)

DEFAULT_CONSISTENCY_DAYS = 30
DEFAULT_TOP_ITEMS_LIMIT = 10
DEFAULT_TRENDS_WEEKS = 12

TIMEFRAMES = ("today", "week", "month", "all")

_EFFECTIVE = PracticeSession.effective_duration


# ═══════════════════════════════════════════════════════════════════════════
#  RESULT TYPES
# ═══════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class TotalTime:
    total_minutes: int = 0
    session_count: int = 0
    avg_session_duration: float = 0.0


@dataclass(frozen=True)
class Consistency:
    days_practiced: int
    total_days: int
    consistency_percentage: float


@dataclass(frozen=True)
class TopItem:
    item_name: str
    item_type: str
    practice_count: int
    avg_tempo: int | None
    total_time: int


@dataclass(frozen=True)
class TempoPoint:
    date: date
    tempo_bpm: int
    difficulty_level: str | None


@dataclass(frozen=True)
class TempoProgression:
    item_name: str
    points: list[TempoPoint]
    first_tempo: int
    latest_tempo: int
    improvement_bpm: int
    improvement_percentage: float

    @property
    def total_sessions(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class WeekTrend:
    week_start: date
    session_count: int
    avg_duration: float
    total_minutes: int


@dataclass(frozen=True)
class InstrumentShare:
    instrument: str
    session_count: int
    total_minutes: int
    avg_duration: float
    percentage: float


@dataclass(frozen=True)
class InstrumentBreakdown:
    total_minutes: int = 0
    instruments: list[InstrumentShare] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════
#  HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def check_range(name: str, value: int, bounds: tuple[int, int]) -> int:
    """Reject *value* outside the inclusive *bounds*."""
    low, high = bounds
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise ValidationError(f"{name} must be between {low} and {high}")
    return value


def timeframe_bounds(
    timeframe: str | None, today: date | None = None
) -> tuple[date | None, date | None]:
    """Inclusive (start, end) dates for a named timeframe.

    ``today`` → today only, ``week`` → the last 7 days plus today,
    ``month`` → the last 30 days plus today, ``all`` / ``None`` → no bounds.
    """
    today = today or date.today()
    key = (timeframe or "all").strip().lower()
    if key == "today":
        return today, today
    if key == "week":
        return today - timedelta(days=7), today
    if key == "month":
        return today - timedelta(days=30), today
    if key == "all":
        return None, None
    raise ValidationError(f"timeframe must be one of: {', '.join(TIMEFRAMES)}")


def week_start(day: date) -> date:
    """Monday of the ISO week containing *day*."""
    return day - timedelta(days=day.weekday())


def _practice_dates(db: OrmSession, user_id: int, since: date | None = None,
                    until: date | None = None) -> list[date]:
    """Distinct dates with at least one session of positive duration."""
    query = (
        db.query(PracticeSession.practice_date)
        .filter(PracticeSession.user_id == user_id, _EFFECTIVE > 0)
        .distinct()
    )
    if since is not None:
        query = query.filter(PracticeSession.practice_date >= since)
    if until is not None:
        query = query.filter(PracticeSession.practice_date <= until)
    return [row[0] for row in query.order_by(PracticeSession.practice_date.desc())]


# ═══════════════════════════════════════════════════════════════════════════
#  OPERATIONS
# ═══════════════════════════════════════════════════════════════════════════


def total_practice_time(
    db: OrmSession,
    user_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> TotalTime:
    """Total minutes, session count and mean session length.

    Bounds are inclusive; leaving both out means all time.
    """
    query = db.query(
        func.coalesce(func.sum(_EFFECTIVE), 0),
        func.count(PracticeSession.id),
    ).filter(PracticeSession.user_id == user_id)
    if start_date is not None:
        query = query.filter(PracticeSession.practice_date >= start_date)
    if end_date is not None:
        query = query.filter(PracticeSession.practice_date <= end_date)

    total, count = query.one()
    total, count = int(total or 0), int(count or 0)
    return TotalTime(
        total_minutes=total,
        session_count=count,
        avg_session_duration=round_half_up(safe_ratio(total, count), 1),
    )


def practice_streak(db: OrmSession, user_id: int) -> int:
    """Consecutive practice days ending at the most recent practice day.

    A gap of one calendar day or more ends the run.  0 when the user has
    never practised.
    """
    dates = _practice_dates(db, user_id)
    if not dates:
        return 0

    streak = 1
    for previous, current in zip(dates, dates[1:]):
        if previous - current != timedelta(days=1):
            break
        streak += 1
    return streak


def consistency_score(
    db: OrmSession,
    user_id: int,
    window_days: int = DEFAULT_CONSISTENCY_DAYS,
    today: date | None = None,
) -> Consistency:
    """Share of the trailing window on which the user practised.

    The window runs from ``today - window_days`` to ``today`` inclusive.
    """
    check_range("days", window_days, CONSISTENCY_DAYS_RANGE)
    today = today or date.today()
    practiced = len(
        _practice_dates(db, user_id, since=today - timedelta(days=window_days), until=today)
    )
    return Consistency(
        days_practiced=practiced,
        total_days=window_days,
        consistency_percentage=percentage(practiced, window_days),
    )


def top_items(
    db: OrmSession,
    user_id: int,
    limit: int = DEFAULT_TOP_ITEMS_LIMIT,
) -> list[TopItem]:
    """Most practised items, grouped by (name, type).

    Ranked by how many times the item was logged, ties broken by total
    minutes spent on it.
    """
    check_range("limit", limit, TOP_ITEMS_LIMIT_RANGE)

    practice_count = func.count(SessionItem.id).label("practice_count")
    total_time = func.coalesce(func.sum(SessionItem.time_spent_minutes), 0).label("total_time")
    rows = (
        db.query(
            SessionItem.item_name,
            SessionItem.item_type,
            practice_count,
            func.avg(SessionItem.tempo_bpm),
            total_time,
        )
        .join(PracticeSession, SessionItem.session_id == PracticeSession.id)
        .filter(PracticeSession.user_id == user_id, SessionItem.item_name.isnot(None))
        .group_by(SessionItem.item_name, SessionItem.item_type)
        .order_by(
            practice_count.desc(),
            total_time.desc(),
            SessionItem.item_name.asc(),
            SessionItem.item_type.asc(),
        )
        .limit(limit)
        .all()
    )
    return [
        TopItem(
            item_name=name,
            item_type=item_type,
            practice_count=int(count),
            avg_tempo=round_half_up(float(avg_tempo)) if avg_tempo is not None else None,
            total_time=int(total or 0),
        )
        for name, item_type, count, avg_tempo, total in rows
    ]


def tempo_progression(db: OrmSession, user_id: int, item_name: str) -> TempoProgression:
    """Recorded tempos of one item over time, oldest first.

    Raises :class:`NotFoundError` when the item has no tempo on record.
    """
    rows = (
        db.query(
            PracticeSession.practice_date,
            SessionItem.tempo_bpm,
            SessionItem.difficulty_level,
        )
        .join(PracticeSession, SessionItem.session_id == PracticeSession.id)
        .filter(
            PracticeSession.user_id == user_id,
            SessionItem.item_name == item_name,
            SessionItem.tempo_bpm.isnot(None),
        )
        .order_by(
            PracticeSession.practice_date.asc(),
            SessionItem.created_at.asc(),
            SessionItem.id.asc(),
        )
        .all()
    )
    if not rows:
        raise NotFoundError("No tempo data found for this item")

    points = [
        TempoPoint(date=day, tempo_bpm=int(tempo), difficulty_level=difficulty)
        for day, tempo, difficulty in rows
    ]
    first, last = points[0].tempo_bpm, points[-1].tempo_bpm
    improvement = last - first
    return TempoProgression(
        item_name=item_name,
        points=points,
        first_tempo=first,
        latest_tempo=last,
        improvement_bpm=improvement,
        improvement_percentage=percentage(improvement, first),
    )


def session_trends(
    db: OrmSession,
    user_id: int,
    weeks: int = DEFAULT_TRENDS_WEEKS,
    today: date | None = None,
) -> list[WeekTrend]:
    """Per-week session counts and minutes, newest week first.

    Covers sessions dated on or after ``today - weeks * 7``.  Weeks start
    on Monday.
    """
    check_range("weeks", weeks, TRENDS_WEEKS_RANGE)
    today = today or date.today()

    rows = (
        db.query(PracticeSession.practice_date, _EFFECTIVE)
        .filter(
            PracticeSession.user_id == user_id,
            PracticeSession.practice_date >= today - timedelta(days=weeks * 7),
        )
        .order_by(PracticeSession.practice_date.desc(), PracticeSession.id.asc())
        .all()
    )

    buckets: OrderedDict[date, list[int]] = OrderedDict()
    for day, minutes in rows:
        buckets.setdefault(week_start(day), []).append(int(minutes))

    return [
        WeekTrend(
            week_start=start,
            session_count=len(minutes),
            avg_duration=round_half_up(safe_ratio(sum(minutes), len(minutes)), 1),
            total_minutes=sum(minutes),
        )
        for start, minutes in buckets.items()
    ]


def instrument_breakdown(db: OrmSession, user_id: int) -> InstrumentBreakdown:
    """Minutes and sessions per instrument with each one's share of the total."""
    instrument = func.lower(
        func.coalesce(PracticeSession.instrument, NO_INSTRUMENT_LABEL)
    ).label("instrument")
    total_minutes = func.sum(_EFFECTIVE).label("total_minutes")
    rows = (
        db.query(instrument, func.count(PracticeSession.id), total_minutes)
        .filter(PracticeSession.user_id == user_id)
        .group_by(instrument)
        .order_by(total_minutes.desc(), instrument.asc())
        .all()
    )

    grand_total = sum(int(minutes or 0) for _, _, minutes in rows)
    shares = []
    for name, count, minutes in rows:
        minutes = int(minutes or 0)
        shares.append(InstrumentShare(
            instrument=name,
            session_count=int(count),
            total_minutes=minutes,
            avg_duration=round_half_up(safe_ratio(minutes, count), 1),
            percentage=percentage(minutes, grand_total),
        ))
    return InstrumentBreakdown(total_minutes=grand_total, instruments=shares)
