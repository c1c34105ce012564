"""Complaint lifecycle: create, read, transition, delete, and scoped listings."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import COMPLAINT_STATUSES, Complaint
from services.context import PortalContext, Principal
from services.errors import (
    NotFound,
    PermissionDenied,
    PersistenceDenied,
    StaleRevision,
    StorageUnavailable,
    ValidationError,
)
from services.forms import ComplaintForm, StatusForm, TrackForm, validated
from services.identity import require_principal, resolve_role
from services.policy import (
    SCOPE_ALL,
    can_delete,
    can_read,
    can_transition,
    listing_scope,
    search_clause,
)

SORT_OPTIONS: tuple[str, ...] = ("newest", "oldest", "priority")
PRIORITY_RANK = {"High": 0, "Medium": 1, "Low": 2}
MAX_PER_PAGE = 50


def deny(ctx: PortalContext, principal: Principal, action: str, record_id: Optional[str] = None, message: Optional[str] = None):
    ctx.logger.warning(
        "Permission denied",
        extra={"principal": principal.uid, "action": action, "record_id": record_id},
    )
    raise PermissionDenied(message)


def commit(ctx: PortalContext, action: str, record_id: Optional[str] = None) -> None:
    try:
        ctx.session.commit()
    except StaleDataError as exc:
        ctx.session.rollback()
        ctx.logger.warning("Concurrent update rejected", extra={"action": action, "record_id": record_id})
        raise StaleRevision() from exc
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Storage rejected write", extra={"action": action, "record_id": record_id})
        raise PersistenceDenied() from exc


def load_complaint(ctx: PortalContext, complaint_id: Any) -> Complaint:
    try:
        complaint = ctx.session.get(Complaint, str(complaint_id or ""))
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Complaint lookup failed", extra={"complaint_id": complaint_id})
        raise StorageUnavailable() from exc
    if complaint is None:
        raise NotFound(f"Complaint {complaint_id} was not found.")
    return complaint


def scoped_query(ctx: PortalContext, principal: Principal, role: str, *columns):
    query = ctx.session.query(*columns) if columns else ctx.session.query(Complaint)
    if listing_scope(role) != SCOPE_ALL:
        query = query.filter(Complaint.citizen_id == principal.uid)
    return query


def _ordering(sort: str):
    if sort == "oldest":
        return (Complaint.created_at.asc(), Complaint.id.asc())
    if sort == "priority":
        return (case(PRIORITY_RANK, value=Complaint.priority, else_=len(PRIORITY_RANK)), Complaint.created_at.desc())
    return (Complaint.created_at.desc(), Complaint.id.desc())


def _fetch(ctx: PortalContext, query) -> List[Complaint]:
    try:
        return query.all()
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Complaint listing failed")
        raise StorageUnavailable() from exc


def create_complaint(ctx: PortalContext, principal: Optional[Principal], fields: Mapping[str, Any]) -> Complaint:
    principal = require_principal(principal)
    data = validated(ComplaintForm, fields)

    complaint = Complaint(
        citizen_id=principal.uid,
        title=data["title"],
        category=data["category"],
        description=data["description"],
        location=data["location"],
        contact_name=data["name"],
        contact_email=data["email"],
        contact_phone=data["phone"],
        priority=data["priority"],
        status="Pending",
        image_url=data.get("image_url") or None,
    )
    ctx.session.add(complaint)
    commit(ctx, "create_complaint")
    ctx.logger.info(
        "Complaint created",
        extra={"complaint_id": complaint.id, "citizen_id": principal.uid, "category": complaint.category},
    )
    return complaint


def get_complaint(ctx: PortalContext, principal: Optional[Principal], complaint_id: Any) -> Complaint:
    principal = require_principal(principal)
    complaint = load_complaint(ctx, complaint_id)
    if not can_read(resolve_role(ctx, principal), principal, complaint):
        deny(ctx, principal, "read_complaint", complaint.id)
    return complaint


def transition_complaint(
    ctx: PortalContext,
    principal: Optional[Principal],
    complaint_id: Any,
    new_status: Any,
    expected_revision: Any = None,
) -> Complaint:
    """Move a complaint to ``new_status``; any status may follow any other."""
    principal = require_principal(principal)
    status = validated(StatusForm, {"status": new_status})["status"]
    if expected_revision is not None and expected_revision != "":
        try:
            expected_revision = int(expected_revision)
        except (TypeError, ValueError):
            raise ValidationError({"revision": ["Revision must be an integer."]})
    else:
        expected_revision = None

    if not can_transition(resolve_role(ctx, principal)):
        deny(ctx, principal, "transition_complaint", str(complaint_id), "Only administrators can change a complaint's status.")

    complaint = load_complaint(ctx, complaint_id)
    if expected_revision is not None and expected_revision != complaint.revision:
        raise StaleRevision()

    previous = complaint.status
    complaint.status = status
    commit(ctx, "transition_complaint", complaint.id)
    ctx.logger.info(
        "Complaint status changed",
        extra={"complaint_id": complaint.id, "from": previous, "to": status, "by": principal.uid},
    )
    return complaint


def delete_complaint(ctx: PortalContext, principal: Optional[Principal], complaint_id: Any) -> None:
    principal = require_principal(principal)
    complaint = load_complaint(ctx, complaint_id)
    if not can_delete(resolve_role(ctx, principal), principal, complaint):
        deny(ctx, principal, "delete_complaint", complaint.id, "Only pending complaints can be withdrawn by their owner.")

    record_id = complaint.id
    ctx.session.delete(complaint)
    commit(ctx, "delete_complaint", record_id)
    ctx.logger.info("Complaint deleted", extra={"complaint_id": record_id, "by": principal.uid})


def complaint_query(
    ctx: PortalContext,
    principal: Optional[Principal],
    query: Optional[str] = None,
    status: Optional[str] = None,
    sort: Optional[str] = None,
):
    """Build the ordered query of complaints ``principal`` may see.

    Status and free-text filters are applied on top of the ownership scope, so a
    search never reaches rows outside it.
    """
    principal = require_principal(principal)
    sort = sort or "newest"
    errors: Dict[str, List[str]] = {}
    if status and status not in COMPLAINT_STATUSES:
        errors["status"] = ["Unknown complaint status."]
    if sort not in SORT_OPTIONS:
        errors["sort"] = [f"Sort must be one of: {', '.join(SORT_OPTIONS)}."]
    if errors:
        raise ValidationError(errors)

    q = scoped_query(ctx, principal, resolve_role(ctx, principal))
    if status:
        q = q.filter(Complaint.status == status)
    clause = search_clause(query)
    if clause is not None:
        q = q.filter(clause)
    return q.order_by(*_ordering(sort))


def list_complaints(
    ctx: PortalContext,
    principal: Optional[Principal],
    query: Optional[str] = None,
    status: Optional[str] = None,
    sort: Optional[str] = None,
) -> List[Complaint]:
    return _fetch(ctx, complaint_query(ctx, principal, query=query, status=status, sort=sort))


def paginate_query(ctx: PortalContext, query, page: int, per_page: int):
    """Flask-SQLAlchemy pagination; pages past the end come back empty."""
    try:
        return query.paginate(page=page, per_page=per_page, max_per_page=MAX_PER_PAGE, error_out=False)
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Paginated listing failed")
        raise StorageUnavailable() from exc


def page_complaints(
    ctx: PortalContext,
    principal: Optional[Principal],
    page: int = 1,
    per_page: int = 10,
    query: Optional[str] = None,
    status: Optional[str] = None,
    sort: Optional[str] = None,
):
    return paginate_query(ctx, complaint_query(ctx, principal, query=query, status=status, sort=sort), page, per_page)


def track_complaints(
    ctx: PortalContext,
    principal: Optional[Principal],
    email: Any,
    name: Any = None,
) -> List[Complaint]:
    principal = require_principal(principal)
    data = validated(TrackForm, {"email": email, "name": name})

    role = resolve_role(ctx, principal)
    q = scoped_query(ctx, principal, role).filter(func.lower(Complaint.contact_email) == data["email"].lower())
    if data.get("name"):
        q = q.filter(func.lower(Complaint.contact_name) == data["name"].lower())
    return _fetch(ctx, q.order_by(*_ordering("newest")))


def complaint_stats(ctx: PortalContext, principal: Optional[Principal]) -> Dict[str, Any]:
    principal = require_principal(principal)
    role = resolve_role(ctx, principal)
    q = scoped_query(ctx, principal, role, Complaint.status, func.count(Complaint.id)).group_by(Complaint.status)
    try:
        rows = q.all()
    except SQLAlchemyError as exc:
        ctx.session.rollback()
        ctx.logger.exception("Complaint statistics failed")
        raise StorageUnavailable() from exc

    by_status = {status: 0 for status in COMPLAINT_STATUSES}
    for status, count in rows:
        by_status[status] = count
    return {"scope": listing_scope(role), "total": sum(by_status.values()), "by_status": by_status}
