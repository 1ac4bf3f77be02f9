"""Profile and preferences of the authenticated user."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..database import User, UserSettings, get_session
from ..database.models import DEFAULT_PRACTICE_GOAL_MINUTES
from ..errors import ConflictError, NotFoundError
from .auth import current_user_id
from .schemas import ProfileUpdate, SettingsUpdate, parse


logger = logging.getLogger(__name__)

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/profile")
@login_required
def get_profile():
    with get_session() as db:
        user = db.get(User, current_user_id())
        if user is None:
            raise NotFoundError("User not found")
        return jsonify(success=True, user=user.to_dict())


@users_bp.put("/profile")
@login_required
def update_profile():
    body = parse(ProfileUpdate, request.get_json(silent=True))
    user_id = current_user_id()
    with get_session() as db:
        user = db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")

        if body.email is not None:
            email = body.email.lower()
            taken = db.query(User).filter(User.email == email, User.id != user_id).first()
            if taken is not None:
                raise ConflictError("User with this email already exists")
            user.email = email
        if body.username is not None:
            taken = (
                db.query(User)
                .filter(User.username == body.username, User.id != user_id)
                .first()
            )
            if taken is not None:
                raise ConflictError("Username is already taken")
            user.username = body.username

        db.flush()
        data = user.to_dict()

    logger.info("Updated profile of user %s", user_id)
    return jsonify(success=True, message="Profile updated successfully", user=data)


@users_bp.get("/settings")
@login_required
def get_settings():
    user_id = current_user_id()
    with get_session() as db:
        settings = db.get(UserSettings, user_id)
        data = settings.to_dict() if settings else UserSettings.defaults(user_id)
    return jsonify(success=True, settings=data)


@users_bp.put("/settings")
@login_required
def update_settings():
    body = parse(SettingsUpdate, request.get_json(silent=True))
    changes = body.model_dump(exclude_none=True)
    user_id = current_user_id()
    with get_session() as db:
        settings = db.get(UserSettings, user_id)
        if settings is None:
            settings = UserSettings(
                user_id=user_id,
                notifications_enabled=True,
                practice_goal_minutes=DEFAULT_PRACTICE_GOAL_MINUTES,
            )
            db.add(settings)
        for name, value in changes.items():
            setattr(settings, name, value)
        db.flush()
        data = settings.to_dict()

    logger.info("Updated settings of user %s: %s", user_id, sorted(changes))
    return jsonify(success=True, message="Settings updated successfully", settings=data)
