"""Snapshot stores for the in-progress timer.

The engine writes its full state after every change so a crash or a
kill loses at most the last second.  Two implementations of the same
three-method port:

* :class:`JsonSnapshotStore`: a JSON file in the app home, replaced
  atomically so a crash mid-write never leaves a half-written snapshot.
* :class:`MemorySnapshotStore`: a dict, for tests.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from ..settings import app_home


logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "active_timer.json"


class SnapshotStore(Protocol):
    def load(self) -> dict | None: ...

    def save(self, snapshot: dict) -> None: ...

    def clear(self) -> None: ...


class MemorySnapshotStore:
    """Keeps the snapshot in memory.  ``writes`` counts saves."""

    def __init__(self, snapshot: dict | None = None) -> None:
        self._snapshot = json.loads(json.dumps(snapshot)) if snapshot else None
        self.writes = 0

    def load(self) -> dict | None:
        if self._snapshot is None:
            return None
        return json.loads(json.dumps(self._snapshot))

    def save(self, snapshot: dict) -> None:
        # round-trip through JSON so tests catch anything unserialisable
        self._snapshot = json.loads(json.dumps(snapshot))
        self.writes += 1

    def clear(self) -> None:
        self._snapshot = None


class JsonSnapshotStore:
    """Persists the snapshot to ``<app home>/active_timer.json``."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or app_home() / SNAPSHOT_FILENAME

    def load(self) -> dict | None:
        try:
            if not self.path.exists():
                return None
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable timer snapshot %s: %s", self.path, exc)
            return None

    def save(self, snapshot: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=".timer-", suffix=".json"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(snapshot, fh)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
