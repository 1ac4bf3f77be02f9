"""HTTP API: Flask app factory, error rendering and blueprint wiring."""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from ..database import configure_engine, init_db
from ..errors import PracticeTrackError
from ..settings import ServerConfig, configure_logging, require_secret_key
from ..sheets import HttpSheetAnalyzer
from .auth import auth_bp, login_manager
from .schemas import describe_errors
from .sessions import sessions_bp
from .sheets import sheets_bp
from .stats import stats_bp
from .users import users_bp


logger = logging.getLogger(__name__)

MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # base64 sheet photos


def create_app(test_config: dict | None = None) -> Flask:
    """Build the API.  *test_config* overrides anything read from the env.

    A ``SHEET_ANALYZER`` entry, if given, is used as the vision service
    instead of building an :class:`HttpSheetAnalyzer` from the URL.
    """
    app = Flask(__name__)
    app.config.from_mapping(
        ServerConfig.from_env().as_flask_config(),
        MAX_CONTENT_LENGTH=MAX_CONTENT_LENGTH,
    )
    if test_config:
        app.config.update(test_config)
    app.json.sort_keys = False

    require_secret_key(app.config["SECRET_KEY"])
    _configure_logging(app)

    configure_engine(app.config["DATABASE_URL"])
    init_db()

    login_manager.init_app(app)
    app.extensions["sheet_analyzer"] = _build_sheet_analyzer(app)

    for blueprint in (auth_bp, users_bp, sessions_bp, stats_bp, sheets_bp):
        app.register_blueprint(blueprint)
    _register_error_handlers(app)

    @app.get("/healthz")
    def _healthz():
        return {"status": "ok"}, 200

    return app


def _configure_logging(app: Flask) -> None:
    level = "DEBUG" if app.debug else app.config.get("LOG_LEVEL") or "INFO"
    configure_logging(level)
    app.logger.setLevel(logging.getLogger().level)


def _build_sheet_analyzer(app: Flask):
    if app.config.get("SHEET_ANALYZER") is not None:
        return app.config["SHEET_ANALYZER"]
    url = app.config.get("SHEET_ANALYZER_URL")
    if not url:
        logger.info("SHEET_ANALYZER_URL not set; sheet analysis disabled")
        return None
    return HttpSheetAnalyzer(url, app.config.get("SHEET_ANALYZER_KEY"))


def _register_error_handlers(app: Flask) -> None:
    def _error(message: str, status: int):
        return jsonify(success=False, error=message), status

    @app.errorhandler(PracticeTrackError)
    def _practice_error(err: PracticeTrackError):
        return _error(err.message, err.status_code)

    @app.errorhandler(PydanticValidationError)
    def _pydantic_error(err: PydanticValidationError):
        return _error(describe_errors(err), 400)

    @app.errorhandler(IntegrityError)
    def _integrity_error(err: IntegrityError):
        logger.warning("Integrity violation: %s", err.orig)
        return _error("Request conflicts with existing data", 409)

    @app.errorhandler(SQLAlchemyError)
    def _database_error(err: SQLAlchemyError):
        logger.exception("Database error", exc_info=err)
        return _error("Server error", 500)

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        return _error(err.description or err.name, err.code or 500)
