"""Sheet-music analyses: submit a photo, keep the structured answer."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from ..database import SheetAnalysis, get_session
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..sheets import analyze_image
from .auth import current_user_id
from .schemas import AnalyzeSheetRequest, parse


logger = logging.getLogger(__name__)

sheets_bp = Blueprint("sheets", __name__, url_prefix="/api/sheets")


def _owned_analysis(db, raw_id: str, user_id: int) -> SheetAnalysis:
    try:
        analysis_id = int(raw_id)
    except ValueError:
        raise ValidationError("Invalid analysis ID") from None
    analysis = db.get(SheetAnalysis, analysis_id)
    if analysis is None:
        raise NotFoundError("Sheet analysis not found")
    if analysis.user_id != user_id:
        raise ForbiddenError("Not authorized to access this analysis")
    return analysis


@sheets_bp.post("/analyze")
@login_required
def analyze():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict) or not payload.get("image"):
        raise ValidationError("Image is required")
    body = parse(AnalyzeSheetRequest, payload)

    result = analyze_image(current_app.extensions.get("sheet_analyzer"), body.image)
    user_id = current_user_id()
    with get_session() as db:
        analysis = SheetAnalysis(user_id=user_id, image_url=body.image_url, **result)
        db.add(analysis)
        db.flush()
        data = analysis.to_dict()

    logger.info("Stored sheet analysis %s for user %s", data["id"], user_id)
    return jsonify(success=True, analysis=data), 201


@sheets_bp.get("")
@login_required
def list_analyses():
    with get_session() as db:
        rows = (
            db.query(SheetAnalysis)
            .filter(SheetAnalysis.user_id == current_user_id())
            .order_by(SheetAnalysis.created_at.desc(), SheetAnalysis.id.desc())
            .all()
        )
        data = [row.to_dict() for row in rows]
    return jsonify(success=True, count=len(data), analyses=data)


@sheets_bp.get("/<analysis_id>")
@login_required
def get_analysis(analysis_id):
    with get_session() as db:
        data = _owned_analysis(db, analysis_id, current_user_id()).to_dict()
    return jsonify(success=True, analysis=data)


@sheets_bp.delete("/<analysis_id>")
@login_required
def delete_analysis(analysis_id):
    with get_session() as db:
        db.delete(_owned_analysis(db, analysis_id, current_user_id()))
    return jsonify(success=True, message="Sheet analysis deleted successfully")
