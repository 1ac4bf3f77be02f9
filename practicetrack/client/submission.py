"""Turns a finished timer into backend calls.

:class:`ApiSubmitter` is the production implementation of the timer's
``SessionSubmitter`` port: one ``POST /api/sessions`` and then one
``POST /api/sessions/<id>/items`` per lap.  Ordering and resumption are
driven by :meth:`TimerEngine.save`.
"""

from __future__ import annotations

from .api import PracticeApi

# Fields of the timer summary the session endpoint accepts.
SESSION_FIELDS = (
    "practice_date",
    "total_duration",
    "actual_duration",
    "instrument",
    "session_notes",
    "status",
    "started_at",
    "completed_at",
)


class ApiSubmitter:
    def __init__(self, api: PracticeApi) -> None:
        self.api = api

    def create_session(self, summary: dict) -> int:
        payload = {k: summary.get(k) for k in SESSION_FIELDS if summary.get(k) is not None}
        return int(self.api.create_session(payload)["id"])

    def create_item(self, session_id: int, item: dict) -> None:
        payload = {k: v for k, v in item.items() if v is not None}
        self.api.create_item(session_id, payload)
