"""Post-resolution feedback with synchronous sentiment annotation."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from models import SENTIMENT_LABELS, Feedback
from services.complaints import deny, load_complaint, paginate_query
from services.context import PortalContext, Principal
from services.errors import (
    PersistenceDenied,
    SentimentAnalysisFailed,
    StorageUnavailable,
    ValidationError,
)
from services.forms import FeedbackForm, SentimentForm, validated
from services.identity import ADMINISTRATOR, require_principal, resolve_role
from services.policy import can_read
from utils.sentiment import SentimentResult, parse_classification


def _check_rating_type(rating: Any) -> None:
    # bool is an int subclass, floats would be truncated by the form coercion and
    # containers make IntegerField raise TypeError. None is left to DataRequired.
    if rating is None:
        return
    if (
        isinstance(rating, bool)
        or not isinstance(rating, (int, float, str))
        or (isinstance(rating, float) and not rating.is_integer())
    ):
        raise ValidationError({"rating": ["Rating must be a whole number between 1 and 5."]})


def classify_text(ctx: PortalContext, text: str) -> SentimentResult:
    """Run the external classifier once; any failure becomes SentimentAnalysisFailed."""
    try:
        outcome = ctx.classifier.classify(text)
        if isinstance(outcome, SentimentResult):
            outcome = outcome.to_dict()
        result = parse_classification(outcome)
    except Exception as exc:
        ctx.logger.warning("Sentiment analysis failed", extra={"error": str(exc)}, exc_info=True)
        raise SentimentAnalysisFailed() from exc
    return result


def submit_feedback(
    ctx: PortalContext,
    principal: Optional[Principal],
    complaint_id: Any,
    rating: Any,
    comments: Any,
    suggestions: Any = None,
) -> Feedback:
    principal = require_principal(principal)
    _check_rating_type(rating)
    data = validated(FeedbackForm, {"rating": rating, "comments": comments, "suggestions": suggestions})

    complaint = load_complaint(ctx, complaint_id)
    if not can_read(resolve_role(ctx, principal), principal, complaint):
        deny(ctx, principal, "submit_feedback", complaint.id)
    if ctx.setting("FEEDBACK_REQUIRE_RESOLVED", True) and complaint.status != "Resolved":
        raise ValidationError({"complaint_id": ["Feedback can only be submitted for resolved complaints."]})

    analysis = classify_text(ctx, data["comments"])

    feedback = Feedback(
        complaint_id=complaint.id,
        complaint_title=complaint.title,
        citizen_id=principal.uid,
        contact_name=complaint.contact_name,
        contact_email=complaint.contact_email,
        rating=data["rating"],
        comments=data["comments"],
        suggestions=data.get("suggestions") or None,
        sentiment=analysis.sentiment,
        sentiment_confidence=analysis.confidence,
        sentiment_reason=analysis.reason or None,
    )
    ctx.session.add(feedback)
    try:
        ctx.session.commit()
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception(
            "Analyzed feedback rejected on save",
            extra={"complaint_id": complaint.id, "sentiment": analysis.sentiment},
        )
        raise PersistenceDenied(
            "Your feedback was analyzed but could not be saved. Please retry saving it."
        ) from exc

    ctx.logger.info(
        "Feedback recorded",
        extra={
            "feedback_id": feedback.id,
            "complaint_id": complaint.id,
            "rating": feedback.rating,
            "sentiment": feedback.sentiment,
        },
    )
    return feedback


def feedback_query(ctx: PortalContext, principal: Optional[Principal], complaint_id: Optional[str] = None):
    """Newest-first feedback visible to ``principal``: everything for administrators, own entries otherwise."""
    principal = require_principal(principal)
    query = ctx.session.query(Feedback)
    if resolve_role(ctx, principal) != ADMINISTRATOR:
        query = query.filter(Feedback.citizen_id == principal.uid)
    if complaint_id:
        query = query.filter(Feedback.complaint_id == str(complaint_id))
    return query.order_by(Feedback.created_at.desc(), Feedback.id.desc())


def list_feedback(ctx: PortalContext, principal: Optional[Principal], complaint_id: Optional[str] = None) -> List[Feedback]:
    query = feedback_query(ctx, principal, complaint_id)
    try:
        return query.all()
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Feedback listing failed")
        raise StorageUnavailable() from exc


def page_feedback(
    ctx: PortalContext,
    principal: Optional[Principal],
    page: int = 1,
    per_page: int = 10,
    complaint_id: Optional[str] = None,
):
    return paginate_query(ctx, feedback_query(ctx, principal, complaint_id), page, per_page)


def feedback_summary(ctx: PortalContext, principal: Optional[Principal]) -> Dict[str, Any]:
    principal = require_principal(principal)
    if resolve_role(ctx, principal) != ADMINISTRATOR:
        deny(ctx, principal, "feedback_summary")

    try:
        rows = ctx.session.query(Feedback.sentiment, func.count(Feedback.id)).group_by(Feedback.sentiment).all()
        average = ctx.session.query(func.avg(Feedback.rating)).scalar()
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Feedback summary failed")
        raise StorageUnavailable() from exc

    by_sentiment = {label: 0 for label in SENTIMENT_LABELS}
    unlabeled = 0
    for label, count in rows:
        if label in by_sentiment:
            by_sentiment[label] = count
        else:
            unlabeled += count
    total = sum(by_sentiment.values()) + unlabeled
    return {
        "total": total,
        "by_sentiment": by_sentiment,
        "unlabeled": unlabeled,
        "average_rating": round(float(average), 2) if average is not None else None,
    }


def analyze_text(ctx: PortalContext, principal: Optional[Principal], text: Any) -> SentimentResult:
    """Classify free text without persisting anything."""
    require_principal(principal)
    data = validated(SentimentForm, {"feedback_text": text})
    return classify_text(ctx, data["feedback_text"])
