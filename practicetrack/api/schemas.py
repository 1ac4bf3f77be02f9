"""Request DTOs.  Every body and query string is validated once, here.

Enumerated fields (instrument, status, item type, difficulty) are matched
case-insensitively and stored lower-case; nothing else is coerced beyond
pydantic's usual number parsing.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from ..database.models import (
    DIFFICULTY_LEVELS, INSTRUMENTS, ITEM_TYPES, PRACTICE_GOAL_RANGE, SESSION_STATUSES,
)
from ..errors import ValidationError
from ..stats.aggregation import (
    DEFAULT_CONSISTENCY_DAYS, DEFAULT_TOP_ITEMS_LIMIT, DEFAULT_TRENDS_WEEKS,
)


DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
LAP_TIME_PATTERN = r"^\d{2,}:[0-5]\d:[0-5]\d$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"

MAX_ITEM_MINUTES = 480
MAX_NOTES_LENGTH = 1000

Model = TypeVar("Model", bound=BaseModel)


def parse(model: type[Model], data: Any) -> Model:
    """Validate *data* against *model*, raising our ValidationError."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(describe_errors(exc)) from exc


def describe_errors(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    ctx_error = (first.get("ctx") or {}).get("error")
    message = str(ctx_error) if ctx_error else first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


def _choice(value: Any, choices: tuple[str, ...], label: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string")
    value = value.strip().lower()
    if not value:
        return None
    if value not in choices:
        raise ValueError(f"{label} must be one of: {', '.join(choices)}")
    return value


def _practice_date(value: Any) -> Any:
    if isinstance(value, str) and not DATE_PATTERN.match(value):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    if isinstance(value, datetime):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    return value


def _to_utc(value: datetime | None) -> datetime | None:
    """Store instants as naive UTC; a value without an offset is taken as UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _reject_cleared(model: BaseModel, names: tuple[str, ...]) -> None:
    for name in names:
        if name in model.model_fields_set and getattr(model, name) is None:
            raise ValueError(f"{name} cannot be cleared")


class _Body(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


# ═══════════════════════════════════════════════════════════════════════════
#  AUTH / PROFILE
# ═══════════════════════════════════════════════════════════════════════════


class RegisterRequest(_Body):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    username: str = Field(min_length=3, max_length=30)
    password: str = Field(min_length=6)


class LoginRequest(_Body):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdate(_Body):
    email: str | None = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    username: str | None = Field(default=None, min_length=3, max_length=30)

    @model_validator(mode="after")
    def _at_least_one(self) -> "ProfileUpdate":
        if self.email is None and self.username is None:
            raise ValueError("Provide at least one field to update")
        return self


class SettingsUpdate(_Body):
    """Fields left out (or sent as null) keep their stored value."""

    notifications_enabled: bool | None = None
    practice_goal_minutes: int | None = None

    @field_validator("practice_goal_minutes")
    @classmethod
    def _check_goal(cls, value: int | None) -> int | None:
        low, high = PRACTICE_GOAL_RANGE
        if value is not None and not low <= value <= high:
            raise ValueError(f"Practice goal must be between {low} and {high} minutes")
        return value


# ═══════════════════════════════════════════════════════════════════════════
#  SESSIONS
# ═══════════════════════════════════════════════════════════════════════════


class SessionCreate(_Body):
    practice_date: date
    total_duration: int = Field(ge=1)
    actual_duration: int | None = Field(default=None, ge=1)
    instrument: str | None = None
    session_notes: str | None = None
    status: str = "completed"
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("practice_date", mode="before")
    @classmethod
    def _check_date(cls, value: Any) -> Any:
        return _practice_date(value)

    @field_validator("instrument", mode="before")
    @classmethod
    def _check_instrument(cls, value: Any) -> str | None:
        return _choice(value, INSTRUMENTS, "Instrument")

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value: Any) -> str:
        return _choice(value, SESSION_STATUSES, "Status") or "completed"

    @field_validator("started_at", "completed_at")
    @classmethod
    def _check_timestamp(cls, value: datetime | None) -> datetime | None:
        return _to_utc(value)


class SessionUpdate(_Body):
    """Partial update: only the fields sent are touched."""

    practice_date: date | None = None
    total_duration: int | None = Field(default=None, ge=1)
    actual_duration: int | None = Field(default=None, ge=1)
    instrument: str | None = None
    session_notes: str | None = None
    status: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("practice_date", mode="before")
    @classmethod
    def _check_date(cls, value: Any) -> Any:
        return _practice_date(value)

    @field_validator("instrument", mode="before")
    @classmethod
    def _check_instrument(cls, value: Any) -> str | None:
        return _choice(value, INSTRUMENTS, "Instrument")

    @field_validator("status", mode="before")
    @classmethod
    def _check_status(cls, value: Any) -> str | None:
        return _choice(value, SESSION_STATUSES, "Status")

    @field_validator("started_at", "completed_at")
    @classmethod
    def _check_timestamp(cls, value: datetime | None) -> datetime | None:
        return _to_utc(value)

    @model_validator(mode="after")
    def _required_stay_set(self) -> "SessionUpdate":
        _reject_cleared(self, ("practice_date", "total_duration", "status"))
        return self


# ═══════════════════════════════════════════════════════════════════════════
#  ITEMS (LAPS)
# ═══════════════════════════════════════════════════════════════════════════


class ItemCreate(_Body):
    item_type: str
    item_name: str = Field(min_length=1, max_length=200)
    tempo_bpm: int | None = Field(default=None, gt=0)
    time_spent_minutes: int | None = Field(default=None, ge=0, le=MAX_ITEM_MINUTES)
    difficulty_level: str | None = None
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    lap_number: int | None = Field(default=None, ge=1)
    started_at: str | None = Field(default=None, pattern=LAP_TIME_PATTERN)
    ended_at: str | None = Field(default=None, pattern=LAP_TIME_PATTERN)

    @field_validator("item_type", mode="before")
    @classmethod
    def _check_type(cls, value: Any) -> str:
        checked = _choice(value, ITEM_TYPES, "Item type")
        if checked is None:
            raise ValueError("Item type and name are required")
        return checked

    @field_validator("difficulty_level", mode="before")
    @classmethod
    def _check_difficulty(cls, value: Any) -> str | None:
        return _choice(value, DIFFICULTY_LEVELS, "Difficulty level")


class ItemUpdate(_Body):
    item_type: str | None = None
    item_name: str | None = Field(default=None, min_length=1, max_length=200)
    tempo_bpm: int | None = Field(default=None, gt=0)
    time_spent_minutes: int | None = Field(default=None, ge=0, le=MAX_ITEM_MINUTES)
    difficulty_level: str | None = None
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)
    lap_number: int | None = Field(default=None, ge=1)
    started_at: str | None = Field(default=None, pattern=LAP_TIME_PATTERN)
    ended_at: str | None = Field(default=None, pattern=LAP_TIME_PATTERN)

    @field_validator("item_type", mode="before")
    @classmethod
    def _check_type(cls, value: Any) -> str | None:
        return _choice(value, ITEM_TYPES, "Item type")

    @field_validator("difficulty_level", mode="before")
    @classmethod
    def _check_difficulty(cls, value: Any) -> str | None:
        return _choice(value, DIFFICULTY_LEVELS, "Difficulty level")

    @model_validator(mode="after")
    def _required_stay_set(self) -> "ItemUpdate":
        _reject_cleared(self, ("item_type", "item_name"))
        return self


# ═══════════════════════════════════════════════════════════════════════════
#  STATS QUERY STRINGS
# ═══════════════════════════════════════════════════════════════════════════
# Ranges are checked by the aggregation engine; these only parse.


class TotalTimeQuery(_Body):
    timeframe: str = "all"


class ConsistencyQuery(_Body):
    days: int = DEFAULT_CONSISTENCY_DAYS


class TopItemsQuery(_Body):
    limit: int = DEFAULT_TOP_ITEMS_LIMIT


class TrendsQuery(_Body):
    weeks: int = DEFAULT_TRENDS_WEEKS


# ═══════════════════════════════════════════════════════════════════════════
#  SHEET ANALYSIS
# ═══════════════════════════════════════════════════════════════════════════


class AnalyzeSheetRequest(_Body):
    image: str = Field(min_length=1)
    image_url: str | None = Field(default=None, max_length=500)
