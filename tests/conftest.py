"""Shared pytest fixtures for PracticeTrack tests."""

import sys

import pytest

from PyQt6.QtCore import QCoreApplication

from practicetrack.api import create_app
from practicetrack.database.db import configure_engine, init_db
from practicetrack.timer.engine import TimerEngine
from practicetrack.timer.persistence import MemorySnapshotStore

from helpers import FIXED_NOW, TEST_SECRET, register_user


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication shared across the run (no display needed)."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def test_db(tmp_path, monkeypatch):
    """Point every test at a fresh in-memory SQLite database."""
    monkeypatch.setenv("PRACTICETRACK_HOME", str(tmp_path / "home"))
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


# ── timer ─────────────────────────────────────────────────────────────────


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def engine(qapp, store):
    """Fresh TimerEngine with an in-memory snapshot store and a fixed clock."""
    return TimerEngine(parent=None, store=store, clock=lambda: FIXED_NOW)


# ── HTTP API ──────────────────────────────────────────────────────────────


@pytest.fixture
def app(test_db):
    return create_app({
        "TESTING": True,
        "SECRET_KEY": TEST_SECRET,
        "DATABASE_URL": "sqlite:///:memory:",
        "SHEET_ANALYZER_URL": None,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth(client):
    """Register a user and return ``(headers, user)`` for authenticated calls."""
    return register_user(client, "ana@example.com", "ana")

