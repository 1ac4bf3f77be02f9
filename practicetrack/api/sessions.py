"""Practice sessions and their items (laps)."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_login import login_required
from sqlalchemy import func

from ..database import PracticeSession, SessionItem, get_session
from ..database.models import OPEN_STATUSES
from ..errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from .auth import current_user_id
from .schemas import ItemCreate, ItemUpdate, SessionCreate, SessionUpdate, parse


logger = logging.getLogger(__name__)

sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


# ── helpers ───────────────────────────────────────────────────────────────


def _parse_id(raw: str, label: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"Invalid {label} ID") from None
    if value < 1:
        raise ValidationError(f"Invalid {label} ID")
    return value


def _owned_session(db, raw_id: str, user_id: int) -> PracticeSession:
    """Load a session, 404 when missing and 403 when someone else's."""
    session = db.get(PracticeSession, _parse_id(raw_id, "session"))
    if session is None:
        raise NotFoundError("Practice session not found")
    if session.user_id != user_id:
        raise ForbiddenError("Not authorized to access this session")
    return session


def _session_item(db, session: PracticeSession, raw_id: str) -> SessionItem:
    item = db.get(SessionItem, _parse_id(raw_id, "item"))
    if item is None:
        raise NotFoundError("Session item not found")
    if item.session_id != session.id:
        raise ValidationError("Item does not belong to this session")
    return item


def _ensure_no_open_session(db, user_id: int, exclude_id: int | None = None) -> None:
    query = db.query(PracticeSession.id).filter(
        PracticeSession.user_id == user_id,
        PracticeSession.status.in_(OPEN_STATUSES),
    )
    if exclude_id is not None:
        query = query.filter(PracticeSession.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Another practice session is already in progress")


# ═══════════════════════════════════════════════════════════════════════════
#  SESSIONS
# ═══════════════════════════════════════════════════════════════════════════


@sessions_bp.post("")
@login_required
def create_session():
    body = parse(SessionCreate, request.get_json(silent=True))
    user_id = current_user_id()
    with get_session() as db:
        if body.status in OPEN_STATUSES:
            _ensure_no_open_session(db, user_id)
        session = PracticeSession(user_id=user_id, **body.model_dump())
        db.add(session)
        db.flush()
        data = session.to_dict()

    logger.info("Created practice session %s for user %s", data["id"], user_id)
    return jsonify(
        success=True,
        message="Practice session created successfully",
        session=data,
    ), 201


@sessions_bp.get("")
@login_required
def list_sessions():
    with get_session() as db:
        sessions = (
            db.query(PracticeSession)
            .filter(PracticeSession.user_id == current_user_id())
            .order_by(
                PracticeSession.practice_date.desc(),
                PracticeSession.created_at.desc(),
                PracticeSession.id.desc(),
            )
            .all()
        )
        data = [s.to_dict() for s in sessions]
    return jsonify(success=True, count=len(data), sessions=data)


@sessions_bp.get("/active")
@login_required
def active_session():
    with get_session() as db:
        session = (
            db.query(PracticeSession)
            .filter(
                PracticeSession.user_id == current_user_id(),
                PracticeSession.status.in_(OPEN_STATUSES),
            )
            .first()
        )
        data = session.to_dict(with_items=True) if session is not None else None
    return jsonify(success=True, session=data)


@sessions_bp.get("/<session_id>")
@login_required
def get_practice_session(session_id):
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        data = session.to_dict(with_items=True)
    return jsonify(success=True, session=data)


@sessions_bp.put("/<session_id>")
@login_required
def update_session(session_id):
    body = parse(SessionUpdate, request.get_json(silent=True))
    changes = body.model_dump(exclude_unset=True)
    user_id = current_user_id()
    with get_session() as db:
        session = _owned_session(db, session_id, user_id)
        if changes.get("status") in OPEN_STATUSES and session.status not in OPEN_STATUSES:
            _ensure_no_open_session(db, user_id, exclude_id=session.id)
        for name, value in changes.items():
            setattr(session, name, value)
        db.flush()
        data = session.to_dict()

    logger.debug("Updated session %s: %s", data["id"], sorted(changes))
    return jsonify(
        success=True,
        message="Practice session updated successfully",
        session=data,
    )


@sessions_bp.delete("/<session_id>")
@login_required
def delete_session(session_id):
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        deleted_id = session.id
        db.delete(session)

    logger.info("Deleted practice session %s", deleted_id)
    return jsonify(success=True, message="Practice session deleted successfully")


# ═══════════════════════════════════════════════════════════════════════════
#  ITEMS
# ═══════════════════════════════════════════════════════════════════════════


@sessions_bp.post("/<session_id>/items")
@login_required
def create_item(session_id):
    body = parse(ItemCreate, request.get_json(silent=True))
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        item = SessionItem(session_id=session.id, **body.model_dump())
        db.add(item)
        db.flush()
        data = item.to_dict()

    logger.debug("Added item %s (lap %s) to session %s",
                 data["id"], data["lap_number"], data["session_id"])
    return jsonify(
        success=True,
        message="Session item added successfully",
        item=data,
    ), 201


@sessions_bp.get("/<session_id>/items")
@login_required
def list_items(session_id):
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        data = [item.to_dict() for item in session.items]
    return jsonify(success=True, count=len(data), items=data)


@sessions_bp.get("/<session_id>/items/next-lap")
@login_required
def next_lap_number(session_id):
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        highest = (
            db.query(func.max(SessionItem.lap_number))
            .filter(SessionItem.session_id == session.id)
            .scalar()
        )
    return jsonify(success=True, next_lap_number=(highest or 0) + 1)


@sessions_bp.put("/<session_id>/items/<item_id>")
@login_required
def update_item(session_id, item_id):
    body = parse(ItemUpdate, request.get_json(silent=True))
    changes = body.model_dump(exclude_unset=True)
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        item = _session_item(db, session, item_id)
        for name, value in changes.items():
            setattr(item, name, value)
        db.flush()
        data = item.to_dict()

    return jsonify(
        success=True,
        message="Session item updated successfully",
        item=data,
    )


@sessions_bp.delete("/<session_id>/items/<item_id>")
@login_required
def delete_item(session_id, item_id):
    with get_session() as db:
        session = _owned_session(db, session_id, current_user_id())
        db.delete(_session_item(db, session, item_id))
    return jsonify(success=True, message="Session item deleted successfully")
