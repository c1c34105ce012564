"""Citizen feedback and sentiment analysis endpoints."""
from flask import Blueprint, jsonify, request

from services import feedback as feedback_service
from utils.decorators import administrator_required, portal_view
from utils.pagination import pagination_meta, parse_page
from utils.security import request_payload

feedback_bp = Blueprint("feedback", __name__, url_prefix="/feedback")


@feedback_bp.route("/", methods=["GET"])
@portal_view
def list_feedback(ctx, principal):
    pagination = feedback_service.page_feedback(
        ctx,
        principal,
        page=parse_page(request.args.get("page")),
        per_page=ctx.setting("FEEDBACK_PER_PAGE", 10),
        complaint_id=request.args.get("complaint_id") or None,
    )
    return jsonify({"feedback": [f.to_dict() for f in pagination.items], "pagination": pagination_meta(pagination)})


@feedback_bp.route("/", methods=["POST"])
@portal_view
def submit_feedback(ctx, principal):
    payload = request_payload()
    feedback = feedback_service.submit_feedback(
        ctx,
        principal,
        payload.get("complaint_id"),
        payload.get("rating"),
        payload.get("comments"),
        payload.get("suggestions"),
    )
    return jsonify(feedback.to_dict()), 201


@feedback_bp.route("/summary", methods=["GET"])
@portal_view
@administrator_required
def summary(ctx, principal):
    return jsonify(feedback_service.feedback_summary(ctx, principal))


@feedback_bp.route("/analyze", methods=["POST"])
@portal_view
def analyze(ctx, principal):
    result = feedback_service.analyze_text(ctx, principal, request_payload().get("feedback_text"))
    return jsonify({"message": "Analysis complete.", "analysis": result.to_dict()})
