"""Configuration for both halves of PracticeTrack.

Server
------
:class:`ServerConfig` is read from the environment (a ``.env`` file in
the working directory is loaded first)::

    SECRET_KEY          required, at least 32 characters
    DATABASE_URL        default: sqlite file in the app home
    TOKEN_MAX_AGE       bearer token lifetime in seconds (default 7 days)
    SHEET_ANALYZER_URL  vision service endpoint (optional)
    SHEET_ANALYZER_KEY  vision service credential (optional)
    LOG_LEVEL           default INFO

Client
------
:class:`ClientSettings` are stored at::

    $PRACTICETRACK_HOME/settings.json   (default ~/.practicetrack)

Usage::

    settings = load_settings()
    settings.default_goal_minutes = 45
    save_settings(settings)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path

from dotenv import find_dotenv, load_dotenv


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
MIN_SECRET_LENGTH = 32
DEFAULT_TOKEN_MAX_AGE = 7 * 24 * 3600


def app_home() -> Path:
    """Directory holding the client settings, timer snapshot and default DB."""
    override = os.getenv("PRACTICETRACK_HOME")
    if override:
        return Path(override)
    return Path.home() / ".practicetrack"


def settings_path() -> Path:
    return app_home() / "settings.json"


def configure_logging(level: int | str = logging.INFO) -> None:
    """Logging simple and consistent across the server and the client."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ═══════════════════════════════════════════════════════════════════════════
#  SERVER
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class ServerConfig:
    """Everything the HTTP API needs to boot."""

    secret_key: str = ""
    database_url: str = ""
    token_max_age: int = DEFAULT_TOKEN_MAX_AGE
    sheet_analyzer_url: str | None = None
    sheet_analyzer_key: str | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        load_dotenv(find_dotenv(usecwd=True))
        default_db = f"sqlite:///{app_home() / 'practicetrack.db'}"
        return cls(
            secret_key=os.getenv("SECRET_KEY", ""),
            database_url=os.getenv("DATABASE_URL", default_db),
            token_max_age=int(os.getenv("TOKEN_MAX_AGE", DEFAULT_TOKEN_MAX_AGE)),
            sheet_analyzer_url=os.getenv("SHEET_ANALYZER_URL") or None,
            sheet_analyzer_key=os.getenv("SHEET_ANALYZER_KEY") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    def as_flask_config(self) -> dict:
        return {
            "SECRET_KEY": self.secret_key,
            "DATABASE_URL": self.database_url,
            "TOKEN_MAX_AGE": self.token_max_age,
            "SHEET_ANALYZER_URL": self.sheet_analyzer_url,
            "SHEET_ANALYZER_KEY": self.sheet_analyzer_key,
            "LOG_LEVEL": self.log_level,
        }


def require_secret_key(secret: str | None) -> str:
    """Refuse to start without a solid signing key."""
    if not secret or len(secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            "SECRET_KEY is missing or shorter than "
            f"{MIN_SECRET_LENGTH} characters. Add one to .env, e.g.\n"
            "  SECRET_KEY=$(python -c 'import secrets; print(secrets.token_hex(32))')"
        )
    return secret


# ═══════════════════════════════════════════════════════════════════════════
#  CLIENT
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class ClientSettings:
    """All user-configurable preferences of the practice client."""

    # ── backend ───────────────────────────────────────────────────────
    api_url: str = "http://localhost:5000"
    token: str | None = None
    request_timeout: float = 10.0          # seconds

    # ── timer defaults ────────────────────────────────────────────────
    default_goal_minutes: int = 30
    default_instrument: str | None = None


def load_settings() -> ClientSettings:
    """Load settings from disk, falling back to defaults."""
    path = settings_path()
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                # Only use keys that exist in the dataclass
                valid_keys = {f.name for f in fields(ClientSettings)}
                filtered = {k: v for k, v in data.items() if k in valid_keys}
                return ClientSettings(**filtered)
            logger.warning("Ignoring settings file %s: not a JSON object", path)
    except (OSError, ValueError, TypeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
    return ClientSettings()


def save_settings(settings: ClientSettings) -> None:
    """Write settings to disk as JSON."""
    path = settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(asdict(settings), indent=2) + "\n",
        encoding="utf-8",
    )
