"""Complaint intake, tracking, and administrator triage endpoints."""
from flask import Blueprint, jsonify, request

from services import complaints as complaint_service
from utils.decorators import portal_view
from utils.pagination import pagination_meta, parse_page
from utils.security import request_payload

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


@complaints_bp.route("/", methods=["GET"])
@portal_view
def list_complaints(ctx, principal):
    pagination = complaint_service.page_complaints(
        ctx,
        principal,
        page=parse_page(request.args.get("page")),
        per_page=ctx.setting("COMPLAINTS_PER_PAGE", 10),
        query=request.args.get("query"),
        status=request.args.get("status") or None,
        sort=request.args.get("sort") or None,
    )
    return jsonify({"complaints": [c.to_dict() for c in pagination.items], "pagination": pagination_meta(pagination)})


@complaints_bp.route("/", methods=["POST"])
@portal_view
def create_complaint(ctx, principal):
    complaint = complaint_service.create_complaint(ctx, principal, request_payload())
    return jsonify(complaint.to_dict()), 201


@complaints_bp.route("/track", methods=["GET"])
@portal_view
def track_complaints(ctx, principal):
    complaints = complaint_service.track_complaints(
        ctx, principal, request.args.get("email"), request.args.get("name") or None
    )
    return jsonify({"email": request.args.get("email"), "complaints": [c.to_dict() for c in complaints]})


@complaints_bp.route("/<string:complaint_id>", methods=["GET"])
@portal_view
def view_complaint(ctx, principal, complaint_id):
    complaint = complaint_service.get_complaint(ctx, principal, complaint_id)
    return jsonify(complaint.to_dict())


@complaints_bp.route("/<string:complaint_id>/status", methods=["POST"])
@portal_view
def update_status(ctx, principal, complaint_id):
    payload = request_payload()
    complaint = complaint_service.transition_complaint(
        ctx, principal, complaint_id, payload.get("status"), expected_revision=payload.get("revision")
    )
    return jsonify(complaint.to_dict())


@complaints_bp.route("/<string:complaint_id>", methods=["DELETE"])
@portal_view
def delete_complaint(ctx, principal, complaint_id):
    complaint_service.delete_complaint(ctx, principal, complaint_id)
    return "", 204

