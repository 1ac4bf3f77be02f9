"""HTTP client for the PracticeTrack backend."""

from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from ..settings import ClientSettings


logger = logging.getLogger(__name__)


class ApiError(Exception):
    """The backend answered with an error, or could not be reached.

    ``status`` is the HTTP status code, ``None`` for transport failures.
    """

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message


class PracticeApi:
    """Thin wrapper over ``requests`` that speaks the backend's JSON."""

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._http = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: ClientSettings, **kwargs) -> "PracticeApi":
        return cls(
            settings.api_url,
            settings.token,
            timeout=settings.request_timeout,
            **kwargs,
        )

    # ── auth ──────────────────────────────────────────────────────────

    def register(self, email: str, username: str, password: str) -> dict:
        data = self._request(
            "POST", "/api/auth/register",
            json={"email": email, "username": username, "password": password},
            auth=False,
        )
        return data["user"]

    def login(self, email: str, password: str) -> str:
        """Exchange credentials for a bearer token and keep it."""
        data = self._request(
            "POST", "/api/auth/login",
            json={"email": email, "password": password},
            auth=False,
        )
        self.token = data["token"]
        return self.token

    # ── preferences ───────────────────────────────────────────────────

    def get_settings(self) -> dict:
        return self._request("GET", "/api/users/settings")["settings"]

    def update_settings(self, **changes) -> dict:
        return self._request("PUT", "/api/users/settings", json=changes)["settings"]

    # ── sessions & items ──────────────────────────────────────────────

    def create_session(self, payload: dict) -> dict:
        return self._request("POST", "/api/sessions", json=payload)["session"]

    def list_sessions(self) -> list[dict]:
        return self._request("GET", "/api/sessions")["sessions"]

    def get_session(self, session_id: int) -> dict:
        return self._request("GET", f"/api/sessions/{session_id}")["session"]

    def update_session(self, session_id: int, payload: dict) -> dict:
        return self._request("PUT", f"/api/sessions/{session_id}", json=payload)["session"]

    def delete_session(self, session_id: int) -> None:
        self._request("DELETE", f"/api/sessions/{session_id}")

    def create_item(self, session_id: int, payload: dict) -> dict:
        return self._request(
            "POST", f"/api/sessions/{session_id}/items", json=payload
        )["item"]

    def list_items(self, session_id: int) -> list[dict]:
        return self._request("GET", f"/api/sessions/{session_id}/items")["items"]

    # ── stats ─────────────────────────────────────────────────────────

    def total_time(self, timeframe: str = "all") -> dict:
        return self._request(
            "GET", "/api/stats/total-time", params={"timeframe": timeframe}
        )["stats"]

    def streak(self) -> dict:
        return self._request("GET", "/api/stats/streak")["streak"]

    def consistency(self, days: int = 30) -> dict:
        return self._request(
            "GET", "/api/stats/consistency", params={"days": days}
        )["consistency"]

    def top_items(self, limit: int = 10) -> list[dict]:
        return self._request(
            "GET", "/api/stats/top-items", params={"limit": limit}
        )["items"]

    def tempo_progression(self, item_name: str) -> dict:
        return self._request(
            "GET", f"/api/stats/tempo-progression/{quote(item_name, safe='')}"
        )

    def session_trends(self, weeks: int = 12) -> list[dict]:
        return self._request(
            "GET", "/api/stats/session-trends", params={"weeks": weeks}
        )["trends"]

    def instruments(self) -> dict:
        return self._request("GET", "/api/stats/instruments")

    # ── plumbing ──────────────────────────────────────────────────────

    def _request(self, method: str, path: str, *, auth: bool = True, **kwargs) -> dict:
        headers = {"Accept": "application/json"}
        if auth and self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(None, f"Could not reach the server: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = data.get("error") if isinstance(data, dict) else None
            raise ApiError(response.status_code, message or f"HTTP {response.status_code}")
        return data
