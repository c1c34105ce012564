"""Blueprint registration, service banner, and dashboard."""
from flask import Blueprint, current_app, jsonify

from services import complaints as complaint_service
from services import feedback as feedback_service
from services.identity import ADMINISTRATOR, resolve_role
from utils.decorators import portal_view
from .auth import auth_bp
from .complaints import complaints_bp
from .feedback import feedback_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def index():
    return jsonify({"service": current_app.name, "status": "ok"})


@main_bp.route("/dashboard")
@portal_view
def dashboard(ctx, principal):
    role = resolve_role(ctx, principal)
    recent = complaint_service.page_complaints(ctx, principal, page=1, per_page=ctx.setting("COMPLAINTS_PER_PAGE", 10))
    context = {
        "role": role,
        "stats": complaint_service.complaint_stats(ctx, principal),
        "recent_complaints": [c.to_dict() for c in recent.items],
    }
    if role == ADMINISTRATOR:
        context["feedback"] = feedback_service.feedback_summary(ctx, principal)
    return jsonify(context)


__all__ = ["main_bp", "auth_bp", "complaints_bp", "feedback_bp"]
