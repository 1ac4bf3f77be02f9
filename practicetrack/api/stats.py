"""Read-only statistics over the caller's sessions."""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ..database import get_session
from ..stats import aggregation, presentation
from .auth import current_user_id
from .schemas import ConsistencyQuery, TopItemsQuery, TotalTimeQuery, TrendsQuery, parse


stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.get("/total-time")
@login_required
def total_time():
    query = parse(TotalTimeQuery, request.args.to_dict())
    start, end = aggregation.timeframe_bounds(query.timeframe)
    with get_session() as db:
        result = aggregation.total_practice_time(db, current_user_id(), start, end)
    return jsonify(success=True, stats=presentation.total_time_payload(result))


@stats_bp.get("/streak")
@login_required
def streak():
    with get_session() as db:
        current = aggregation.practice_streak(db, current_user_id())
    return jsonify(success=True, streak=presentation.streak_payload(current))


@stats_bp.get("/consistency")
@login_required
def consistency():
    query = parse(ConsistencyQuery, request.args.to_dict())
    with get_session() as db:
        result = aggregation.consistency_score(db, current_user_id(), query.days)
    return jsonify(success=True, consistency=presentation.consistency_payload(result))


@stats_bp.get("/top-items")
@login_required
def top_items():
    query = parse(TopItemsQuery, request.args.to_dict())
    with get_session() as db:
        items = aggregation.top_items(db, current_user_id(), query.limit)
    return jsonify(success=True, items=presentation.top_items_payload(items))


@stats_bp.get("/tempo-progression/<path:item_name>")
@login_required
def tempo_progression(item_name):
    with get_session() as db:
        result = aggregation.tempo_progression(db, current_user_id(), item_name)
    return jsonify(success=True, **presentation.tempo_progression_payload(result))


@stats_bp.get("/session-trends")
@login_required
def session_trends():
    query = parse(TrendsQuery, request.args.to_dict())
    with get_session() as db:
        trends = aggregation.session_trends(db, current_user_id(), query.weeks)
    return jsonify(success=True, trends=presentation.session_trends_payload(trends))


@stats_bp.get("/instruments")
@login_required
def instruments():
    with get_session() as db:
        result = aggregation.instrument_breakdown(db, current_user_id())
    return jsonify(success=True, **presentation.instrument_breakdown_payload(result))
