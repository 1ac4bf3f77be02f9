"""Bearer-token authentication and the register / login routes.

Tokens are itsdangerous-signed ``{"uid": <user id>}`` payloads, checked by
a Flask-Login ``request_loader`` on every request.  No cookie session is
used.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import LoginManager, UserMixin, current_user
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from ..database import User, get_session
from ..errors import AuthenticationError, ConflictError
from .schemas import LoginRequest, RegisterRequest, parse


logger = logging.getLogger(__name__)

TOKEN_SALT = "practicetrack-auth"

login_manager = LoginManager()
auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


class AuthUser(UserMixin):
    """What ``current_user`` holds for an authenticated request."""

    def __init__(self, user_id: int) -> None:
        self.id = user_id


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"uid": user_id})


def verify_token(token: str) -> int | None:
    """User id carried by *token*, or None when it is forged or expired."""
    try:
        data = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired:
        logger.info("Rejected expired token")
        return None
    except BadSignature:
        logger.info("Rejected token with bad signature")
        return None
    user_id = data.get("uid") if isinstance(data, dict) else None
    return user_id if isinstance(user_id, int) else None


@login_manager.request_loader
def _load_user_from_request(req):
    scheme, _, token = req.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    user_id = verify_token(token.strip())
    if user_id is None:
        return None
    with get_session() as db:
        if db.get(User, user_id) is None:
            return None
    return AuthUser(user_id)


@login_manager.unauthorized_handler
def _unauthorized():
    raise AuthenticationError("Not authorized, no valid token")


def current_user_id() -> int:
    return int(current_user.id)


# ═══════════════════════════════════════════════════════════════════════════
#  ROUTES
# ═══════════════════════════════════════════════════════════════════════════


@auth_bp.post("/register")
def register():
    body = parse(RegisterRequest, request.get_json(silent=True))
    email = body.email.lower()
    with get_session() as db:
        if db.query(User).filter(User.email == email).first() is not None:
            raise ConflictError("User with this email already exists")
        if db.query(User).filter(User.username == body.username).first() is not None:
            raise ConflictError("Username is already taken")
        user = User(
            email=email,
            username=body.username,
            password_hash=generate_password_hash(body.password),
        )
        db.add(user)
        db.flush()
        data = user.to_dict()

    logger.info("Registered user %s", data["id"])
    return jsonify(
        success=True,
        message="User registered successfully",
        user=data,
        token=issue_token(data["id"]),
    ), 201


@auth_bp.post("/login")
def login():
    body = parse(LoginRequest, request.get_json(silent=True))
    with get_session() as db:
        user = db.query(User).filter(User.email == body.email.lower()).first()
        if user is None or not check_password_hash(user.password_hash, body.password):
            logger.info("Failed login attempt")
            raise AuthenticationError("Invalid email or password")
        data = user.to_dict()

    return jsonify(
        success=True,
        message="Login successful",
        user=data,
        token=issue_token(data["id"]),
    )
