"""Practice timer state machine for PracticeTrack.

States
------
IDLE        No local session, waiting for the musician to start.
RUNNING     Counting up towards the goal, one tick per second.
PAUSED      Clock frozen.  Laps are logged from here.
COMPLETED   Goal reached (or finished early).  Clock stopped, waiting to
            be saved or discarded.
SAVING      Session and laps are being sent to the backend.  Every other
            control is ignored until the save succeeds or fails.

Transitions
-----------
IDLE → RUNNING                  (start)
RUNNING → PAUSED                (pause)
PAUSED → RUNNING                (resume)
RUNNING → COMPLETED             (elapsed reaches the goal)
RUNNING | PAUSED → COMPLETED    (finish, ending early)
COMPLETED → SAVING → IDLE       (save succeeds)
SAVING → COMPLETED              (save fails; retry later)
Any → IDLE                      (stop; nothing is sent)

Crash recovery
--------------
The whole state is written to a :class:`SnapshotStore` after every
change, ticks included.  On launch ``has_saved_session()`` tells the UI
to offer resume / discard.  Resuming restores the snapshot verbatim:
time that passed while the app was not running is not added back.

Laps
----
A lap covers the time since the previous lap boundary.  Its
``time_spent_minutes`` is that gap in whole minutes, never less than 1,
so a quick 40-second scale run still shows up in the stats.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict, fields
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from ..database.models import DIFFICULTY_LEVELS, ITEM_TYPES
from ..errors import SaveIncompleteError, ValidationError
from ..numbers import round_half_up
from ..stats.presentation import format_clock, format_lap_offset
from .persistence import JsonSnapshotStore, SnapshotStore


logger = logging.getLogger(__name__)


# ── enums ─────────────────────────────────────────────────────────────────


class TimerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    SAVING = "saving"


# ── constants ─────────────────────────────────────────────────────────────

TICK_INTERVAL_MS = 1000
MIN_LAP_MINUTES = 1
MAX_NOTES_LENGTH = 1000
SNAPSHOT_VERSION = 1


def _timestamp(moment: datetime) -> str:
    """ISO-8601 with the UTC offset; a naive clock reading is taken as local time."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    return moment.isoformat(timespec="seconds")


# ── lap record ────────────────────────────────────────────────────────────


@dataclass
class Lap:
    """One completed lap, shaped like the session item it becomes."""

    lap_number: int
    item_type: str
    item_name: str
    time_spent_minutes: int
    duration_seconds: int
    started_at: str           # HH:MM:SS into the session
    ended_at: str
    tempo_bpm: int | None = None
    difficulty_level: str | None = None
    notes: str | None = None

    def to_item_payload(self) -> dict:
        """Body for ``POST /api/sessions/<id>/items``."""
        return {
            "item_type": self.item_type,
            "item_name": self.item_name,
            "tempo_bpm": self.tempo_bpm,
            "time_spent_minutes": self.time_spent_minutes,
            "difficulty_level": self.difficulty_level,
            "notes": self.notes,
            "lap_number": self.lap_number,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Lap":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


class SessionSubmitter(Protocol):
    """Where a finished timer is sent.  See ``practicetrack.client``."""

    def create_session(self, summary: dict) -> int: ...

    def create_item(self, session_id: int, item: dict) -> None: ...


# ── engine ────────────────────────────────────────────────────────────────


class TimerEngine(QObject):
    """Qt-based practice timer with laps, crash-safe snapshots and a
    resumable save.

    Signals
    -------
    tick(elapsed_seconds: int)
        Emitted every second while RUNNING.
    state_changed(new_state: TimerState)
        Emitted on every state transition.
    completed(elapsed_seconds: int)
        Emitted once when the session reaches COMPLETED.
    lap_added(lap: Lap)
        Emitted after a lap is recorded.
    saved(session_id: int)
        Emitted after the session and all laps reached the backend.
    """

    tick = pyqtSignal(int)
    state_changed = pyqtSignal(object)
    completed = pyqtSignal(int)
    lap_added = pyqtSignal(object)
    saved = pyqtSignal(int)

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        store: SnapshotStore | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(parent)

        self._store: SnapshotStore = store if store is not None else JsonSnapshotStore()
        self._clock: Callable[[], datetime] = clock or datetime.now

        self._state: TimerState = TimerState.IDLE
        self._clear_fields()

        # ── Qt timer ──────────────────────────────────────────────────
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(TICK_INTERVAL_MS)
        self._qt_timer.timeout.connect(self._on_tick)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def elapsed(self) -> int:
        """Seconds practised so far."""
        return self._elapsed

    @property
    def goal_seconds(self) -> int:
        return self._goal_seconds

    @property
    def remaining(self) -> int:
        """Seconds left until the goal."""
        return max(0, self._goal_seconds - self._elapsed)

    @property
    def remaining_formatted(self) -> str:
        return format_clock(self.remaining)

    @property
    def percent_complete(self) -> float:
        """0.0 → 1.0 progress towards the goal."""
        if self._goal_seconds <= 0:
            return 0.0
        return max(0.0, min(1.0, self._elapsed / self._goal_seconds))

    @property
    def is_running(self) -> bool:
        return self._state == TimerState.RUNNING

    @property
    def laps(self) -> list[Lap]:
        return list(self._laps)

    @property
    def current_lap_start(self) -> int:
        return self._lap_start

    @property
    def session_data(self) -> dict | None:
        """Metadata recorded at start (date, planned minutes, instrument...)."""
        return dict(self._session_data) if self._session_data else None

    @property
    def remote_session_id(self) -> int | None:
        """Backend id once the session itself has been created."""
        return self._remote_session_id

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(
        self,
        goal_minutes: int,
        instrument: str | None = None,
        notes: str = "",
    ) -> None:
        """Begin a new session.  Only valid from IDLE."""
        if self._state != TimerState.IDLE:
            return
        if isinstance(goal_minutes, bool):
            raise ValidationError("Goal must be at least 1 minute")
        try:
            goal_minutes = int(goal_minutes)
        except (TypeError, ValueError):
            raise ValidationError("Goal must be at least 1 minute") from None
        if goal_minutes < 1:
            raise ValidationError("Goal must be at least 1 minute")

        now = self._clock()
        self._clear_fields()
        self._goal_seconds = goal_minutes * 60
        self._session_data = {
            "practice_date": now.date().isoformat(),
            "total_duration": goal_minutes,
            "instrument": instrument.strip().lower() if instrument else None,
            "session_notes": notes or None,
            "started_at": _timestamp(now),
            "status": "active",
        }
        logger.info("Timer started: goal %d min", goal_minutes)

        self._set_state(TimerState.RUNNING)
        self._persist()
        self._qt_timer.start()

    def pause(self) -> None:
        if self._state != TimerState.RUNNING:
            return
        self._qt_timer.stop()
        self._session_data["status"] = "paused"
        self._set_state(TimerState.PAUSED)
        self._persist()

    def resume(self) -> None:
        """Resume from PAUSED.  A completed session stays completed."""
        if self._state != TimerState.PAUSED:
            return
        self._session_data["status"] = "active"
        self._set_state(TimerState.RUNNING)
        self._persist()
        self._qt_timer.start()

    def finish(self) -> None:
        """End the session before the goal is reached."""
        if self._state not in (TimerState.RUNNING, TimerState.PAUSED):
            return
        self._complete()

    def add_lap(
        self,
        item_type: str,
        item_name: str,
        *,
        tempo_bpm: int | None = None,
        difficulty_level: str | None = None,
        notes: str | None = None,
    ) -> Lap | None:
        """Close the current lap.  Valid while PAUSED or COMPLETED.

        The lap-entry form pauses the clock first, so laps are never
        cut while it is ticking.  Returns ``None`` when ignored.
        """
        if self._state not in (TimerState.PAUSED, TimerState.COMPLETED):
            return None

        item_type = (item_type or "").strip().lower()
        item_name = (item_name or "").strip()
        if item_type not in ITEM_TYPES:
            raise ValidationError(f"Item type must be one of: {', '.join(ITEM_TYPES)}")
        if not item_name:
            raise ValidationError("Item name is required")
        if tempo_bpm is not None and (isinstance(tempo_bpm, bool) or int(tempo_bpm) <= 0):
            raise ValidationError("Tempo must be a positive number")
        if difficulty_level:
            difficulty_level = difficulty_level.strip().lower()
            if difficulty_level not in DIFFICULTY_LEVELS:
                raise ValidationError(
                    f"Difficulty level must be one of: {', '.join(DIFFICULTY_LEVELS)}"
                )
        if notes is not None and len(notes) > MAX_NOTES_LENGTH:
            raise ValidationError(f"Notes cannot exceed {MAX_NOTES_LENGTH} characters")

        duration = self._elapsed - self._lap_start
        lap = Lap(
            lap_number=len(self._laps) + 1,
            item_type=item_type,
            item_name=item_name,
            time_spent_minutes=max(MIN_LAP_MINUTES, duration // 60),
            duration_seconds=duration,
            started_at=format_lap_offset(self._lap_start),
            ended_at=format_lap_offset(self._elapsed),
            tempo_bpm=int(tempo_bpm) if tempo_bpm is not None else None,
            difficulty_level=difficulty_level or None,
            notes=notes or None,
        )
        self._laps.append(lap)
        self._lap_start = self._elapsed
        self._persist()
        self.lap_added.emit(lap)
        return lap

    def stop(self) -> None:
        """Abandon the session.  Nothing is sent; the snapshot is deleted."""
        if self._state == TimerState.SAVING:
            return
        self._qt_timer.stop()
        self._store.clear()
        self._clear_fields()
        if self._state != TimerState.IDLE:
            logger.info("Timer stopped; local session discarded")
            self._set_state(TimerState.IDLE)

    # ══════════════════════════════════════════════════════════════════
    #  SAVING
    # ══════════════════════════════════════════════════════════════════

    def session_summary(self) -> dict | None:
        """The session as it will be created on the backend.

        Frozen at the first save attempt so a retry sends the same
        completion time.
        """
        if self._summary is not None:
            return dict(self._summary)
        if self._session_data is None:
            return None
        return {
            **self._session_data,
            "actual_duration": max(1, round_half_up(self._elapsed / 60)),
            "status": "completed",
            "completed_at": _timestamp(self._clock()),
        }

    def save(self, submitter: SessionSubmitter) -> int | None:
        """Send the completed session and its laps; return the backend id.

        The session is created once; laps follow in lap order.  If any
        call fails the timer drops back to COMPLETED with its snapshot
        intact and :class:`SaveIncompleteError` is raised.  Calling
        ``save`` again resumes where it stopped.
        """
        if self._state != TimerState.COMPLETED:
            return None

        if self._summary is None:
            self._summary = self.session_summary()
            self._persist()
        self._set_state(TimerState.SAVING)

        try:
            if self._remote_session_id is None:
                self._remote_session_id = int(submitter.create_session(dict(self._summary)))
                self._persist()
                logger.info("Session %d created on backend", self._remote_session_id)

            for lap in sorted(self._laps, key=lambda l: l.lap_number):
                if lap.lap_number in self._submitted_laps:
                    continue
                submitter.create_item(self._remote_session_id, lap.to_item_payload())
                self._submitted_laps.append(lap.lap_number)
                self._persist()
                logger.debug(
                    "Lap %d saved to session %d", lap.lap_number, self._remote_session_id
                )
        except Exception as exc:
            pending = [
                lap.lap_number for lap in self._laps
                if lap.lap_number not in self._submitted_laps
            ]
            self._set_state(TimerState.COMPLETED)
            self._persist()
            logger.warning(
                "Save interrupted (session %s, %d laps pending): %s",
                self._remote_session_id, len(pending), exc,
            )
            raise SaveIncompleteError(
                "Failed to save session. Please try again.",
                session_id=self._remote_session_id,
                pending_laps=pending,
            ) from exc

        session_id = self._remote_session_id
        self._store.clear()
        self._clear_fields()
        self._set_state(TimerState.IDLE)
        self.saved.emit(session_id)
        return session_id

    # ══════════════════════════════════════════════════════════════════
    #  CRASH RECOVERY
    # ══════════════════════════════════════════════════════════════════

    def has_saved_session(self) -> bool:
        """True when a snapshot from an earlier run is waiting."""
        return self._store.load() is not None

    def resume_saved(self) -> bool:
        """Restore the snapshot left by an earlier run.  Only from IDLE."""
        if self._state != TimerState.IDLE:
            return False
        snapshot = self._store.load()
        if not snapshot:
            return False

        self._goal_seconds = int(snapshot["goal_seconds"])
        self._elapsed = int(snapshot["elapsed_seconds"])
        self._session_data = snapshot.get("session_data")
        self._laps = [Lap.from_dict(d) for d in snapshot.get("laps", [])]
        self._lap_start = int(snapshot.get("current_lap_start", 0))
        self._remote_session_id = snapshot.get("remote_session_id")
        self._submitted_laps = list(snapshot.get("submitted_laps", []))
        self._summary = snapshot.get("summary")

        state = TimerState(snapshot.get("state", TimerState.PAUSED.value))
        if state in (TimerState.IDLE, TimerState.SAVING):
            state = TimerState.COMPLETED if self._summary else TimerState.PAUSED
        logger.info("Resuming saved timer at %ds (%s)", self._elapsed, state.value)

        self._set_state(state)
        if state == TimerState.RUNNING:
            self._qt_timer.start()
        return True

    def discard_saved(self) -> None:
        """Drop a snapshot from an earlier run without restoring it."""
        if self._state == TimerState.IDLE:
            self._store.clear()

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL
    # ══════════════════════════════════════════════════════════════════

    def _clear_fields(self) -> None:
        self._goal_seconds: int = 0
        self._elapsed: int = 0
        self._session_data: dict | None = None
        self._laps: list[Lap] = []
        self._lap_start: int = 0
        self._remote_session_id: int | None = None
        self._submitted_laps: list[int] = []
        self._summary: dict | None = None

    def _on_tick(self) -> None:
        if self._state != TimerState.RUNNING:
            return
        self._elapsed = min(self._elapsed + 1, self._goal_seconds)
        self.tick.emit(self._elapsed)

        if self._elapsed >= self._goal_seconds:
            self._complete()
        else:
            self._persist()

    def _complete(self) -> None:
        self._qt_timer.stop()
        self._set_state(TimerState.COMPLETED)
        self._persist()
        logger.info("Timer completed at %ds", self._elapsed)
        self.completed.emit(self._elapsed)

    def _set_state(self, new_state: TimerState) -> None:
        self._state = new_state
        self.state_changed.emit(new_state)

    def _snapshot(self) -> dict:
        # a crash mid-save comes back as COMPLETED so the save can be retried
        state = TimerState.COMPLETED if self._state == TimerState.SAVING else self._state
        return {
            "version": SNAPSHOT_VERSION,
            "state": state.value,
            "goal_seconds": self._goal_seconds,
            "elapsed_seconds": self._elapsed,
            "session_data": self._session_data,
            "laps": [asdict(lap) for lap in self._laps],
            "current_lap_start": self._lap_start,
            "remote_session_id": self._remote_session_id,
            "submitted_laps": list(self._submitted_laps),
            "summary": self._summary,
        }

    def _persist(self) -> None:
        self._store.save(self._snapshot())
