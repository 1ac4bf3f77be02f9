"""Shared test helpers for PracticeTrack."""

from datetime import datetime, timedelta, timezone
from urllib.parse import urlsplit

import requests

from practicetrack.timer.engine import TimerEngine


FIXED_NOW = datetime(2026, 3, 14, 18, 30, 0, tzinfo=timezone(timedelta(hours=1)))
TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"


class SignalCollector:
    """Utility to capture pyqtSignal emissions into a list."""

    def __init__(self):
        self.items: list = []

    def slot(self, *args):
        self.items.append(args if len(args) > 1 else args[0] if args else None)

    def __call__(self, *args):
        self.slot(*args)

    def __len__(self):
        return len(self.items)

    def __getitem__(self, idx):
        return self.items[idx]

    @property
    def last(self):
        return self.items[-1] if self.items else None

    def clear(self):
        self.items.clear()


def advance(engine: TimerEngine, seconds: int) -> None:
    """Tick the engine *seconds* times without waiting for the QTimer."""
    for _ in range(seconds):
        engine._on_tick()


def complete_session(engine: TimerEngine) -> None:
    """Fast-complete the current session by jumping to the last tick."""
    engine._elapsed = engine.goal_seconds - 1
    engine._on_tick()


class FakeSubmitter:
    """Records submissions; ``fail_on`` names calls that raise.

    ``fail_on`` holds ``"session"`` or lap numbers.  Each entry fails
    once and is then removed, so a retry succeeds.
    """

    def __init__(self, session_id=101, fail_on=()):
        self.session_id = session_id
        self.fail_on = set(fail_on)
        self.sessions: list[dict] = []
        self.items: list[tuple[int, dict]] = []

    def create_session(self, summary):
        if "session" in self.fail_on:
            self.fail_on.discard("session")
            raise ConnectionError("backend down")
        self.sessions.append(summary)
        return self.session_id

    def create_item(self, session_id, item):
        if item["lap_number"] in self.fail_on:
            self.fail_on.discard(item["lap_number"])
            raise ConnectionError("backend down")
        self.items.append((session_id, item))


def register_user(client, email, username, password="secret123"):
    """Register through the API; return ``(auth headers, user dict)``."""
    resp = client.post("/api/auth/register", json={
        "email": email, "username": username, "password": password,
    })
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


class FakeResponse:
    """Just enough of ``requests.Response`` for the client code."""

    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeHttp:
    """``requests.Session`` stand-in: records calls, replays responses.

    Each queued response is either a :class:`FakeResponse` or an
    exception to raise.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls: list[dict] = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)


class FlaskHttp:
    """Routes ``requests``-style calls into a Flask test client."""

    def __init__(self, client):
        self.client = client

    def request(self, method, url, headers=None, json=None, params=None, timeout=None):
        resp = self.client.open(
            urlsplit(url).path,
            method=method,
            headers=headers,
            json=json,
            query_string=params,
        )
        return FakeResponse(resp.status_code, resp.get_json(silent=True))
