"""SQLAlchemy ORM models for PracticeTrack."""

from datetime import datetime

from sqlalchemy import (
    Boolean, Column, Integer, String, Text, DateTime, Date, JSON, ForeignKey, Index,
    func, text,
)
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    pass


# ── closed vocabularies (stored lower-case) ──────────────────────────────

INSTRUMENTS = ("piano", "guitar", "drums", "bass", "violin", "other")
SESSION_STATUSES = ("active", "paused", "completed", "abandoned")
OPEN_STATUSES = ("active", "paused")
ITEM_TYPES = ("scale", "piece", "technique", "exercise", "warmup", "other")
DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced")

NO_INSTRUMENT_LABEL = "not specified"

DEFAULT_PRACTICE_GOAL_MINUTES = 30
PRACTICE_GOAL_RANGE = (1, 480)


class User(Base):
    """A practising musician.  Owns sessions and sheet analyses."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True)
    username = Column(String(30), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    sessions = relationship(
        "PracticeSession", back_populates="user", cascade="all, delete-orphan"
    )
    settings = relationship(
        "UserSettings", back_populates="user", uselist=False,
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username}>"


class UserSettings(Base):
    """Per-user preferences.  A user without a row gets the defaults."""

    __tablename__ = "user_settings"

    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    notifications_enabled = Column(Boolean, nullable=False, default=True)
    practice_goal_minutes = Column(
        Integer, nullable=False, default=DEFAULT_PRACTICE_GOAL_MINUTES
    )
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user = relationship("User", back_populates="settings")

    @staticmethod
    def defaults(user_id: int) -> dict:
        return {
            "user_id": user_id,
            "notifications_enabled": True,
            "practice_goal_minutes": DEFAULT_PRACTICE_GOAL_MINUTES,
            "updated_at": None,
        }

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "notifications_enabled": self.notifications_enabled,
            "practice_goal_minutes": self.practice_goal_minutes,
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<UserSettings user={self.user_id} goal={self.practice_goal_minutes}>"


class PracticeSession(Base):
    """One timed practice session: planned vs. actual minutes."""

    __tablename__ = "practice_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    practice_date = Column(Date, nullable=False, index=True)
    total_duration = Column(Integer, nullable=False)      # planned minutes
    actual_duration = Column(Integer, nullable=True)      # minutes, set on completion
    instrument = Column(String(20), nullable=True)        # see INSTRUMENTS
    session_notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="completed")
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    user = relationship("User", back_populates="sessions")
    items = relationship(
        "SessionItem",
        back_populates="session",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [
            SessionItem.lap_number.is_(None),
            SessionItem.lap_number,
            SessionItem.created_at,
            SessionItem.id,
        ],
    )

    __table_args__ = (
        # At most one open (active/paused) session per user.
        Index(
            "uq_practice_sessions_one_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("status IN ('active', 'paused')"),
            postgresql_where=text("status IN ('active', 'paused')"),
        ),
    )

    @hybrid_property
    def effective_duration(self) -> int:
        """Actual minutes when recorded, otherwise the planned minutes."""
        if self.actual_duration is not None:
            return self.actual_duration
        return self.total_duration

    @effective_duration.inplace.expression
    @classmethod
    def _effective_duration_expression(cls):
        return func.coalesce(cls.actual_duration, cls.total_duration)

    def to_dict(self, *, with_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "practice_date": self.practice_date.isoformat() if self.practice_date else None,
            "total_duration": self.total_duration,
            "actual_duration": self.actual_duration,
            "instrument": self.instrument,
            "session_notes": self.session_notes,
            "status": self.status,
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if with_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data

    def __repr__(self) -> str:
        return (
            f"<PracticeSession id={self.id} date={self.practice_date} "
            f"status={self.status}>"
        )


class SessionItem(Base):
    """A lap inside a session: one scale, piece or exercise."""

    __tablename__ = "session_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(
        Integer,
        ForeignKey("practice_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    item_type = Column(String(20), nullable=False)        # see ITEM_TYPES
    item_name = Column(String(200), nullable=False, index=True)
    tempo_bpm = Column(Integer, nullable=True)
    time_spent_minutes = Column(Integer, nullable=True)
    difficulty_level = Column(String(20), nullable=True)  # see DIFFICULTY_LEVELS
    notes = Column(Text, nullable=True)
    lap_number = Column(Integer, nullable=True)
    started_at = Column(String(8), nullable=True)         # HH:MM:SS into the session
    ended_at = Column(String(8), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    session = relationship("PracticeSession", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "item_type": self.item_type,
            "item_name": self.item_name,
            "tempo_bpm": self.tempo_bpm,
            "time_spent_minutes": self.time_spent_minutes,
            "difficulty_level": self.difficulty_level,
            "notes": self.notes,
            "lap_number": self.lap_number,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return (
            f"<SessionItem id={self.id} lap={self.lap_number} "
            f"name={self.item_name!r}>"
        )


class SheetAnalysis(Base):
    """Structured recommendations returned by the vision service."""

    __tablename__ = "sheet_analyses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    key_signature = Column(String(64), nullable=True)
    tempo = Column(Integer, nullable=True)
    time_signature = Column(String(16), nullable=True)
    difficulty = Column(String(20), nullable=True)
    techniques = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    analysis_notes = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "key_signature": self.key_signature,
            "tempo": self.tempo,
            "time_signature": self.time_signature,
            "difficulty": self.difficulty,
            "techniques": list(self.techniques or []),
            "recommendations": list(self.recommendations or []),
            "analysis_notes": self.analysis_notes,
            "image_url": self.image_url,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<SheetAnalysis id={self.id} key={self.key_signature!r}>"


def _iso(value: datetime | None) -> str | None:
    """Stored datetimes are naive UTC."""
    if value is None:
        return None
    return value.isoformat() + "Z"
