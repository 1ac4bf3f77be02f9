"""Database package."""

from .db import configure_engine, get_session, init_db
from .models import PracticeSession, SessionItem, SheetAnalysis, User, UserSettings

__all__ = [
    "configure_engine",
    "get_session",
    "init_db",
    "PracticeSession",
    "SessionItem",
    "SheetAnalysis",
    "User",
    "UserSettings",
]
