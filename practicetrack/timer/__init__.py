"""Timer package."""

from .engine import (
    Lap,
    SessionSubmitter,
    TimerEngine,
    TimerState,
    MIN_LAP_MINUTES,
    TICK_INTERVAL_MS,
)
from .persistence import JsonSnapshotStore, MemorySnapshotStore, SnapshotStore

__all__ = [
    "Lap",
    "SessionSubmitter",
    "TimerEngine",
    "TimerState",
    "MIN_LAP_MINUTES",
    "TICK_INTERVAL_MS",
    "JsonSnapshotStore",
    "MemorySnapshotStore",
    "SnapshotStore",
]
