"""Visibility and authorization rules for complaints and feedback."""
from typing import Optional

from sqlalchemy import or_

from models import Complaint
from services.context import Principal
from services.identity import ADMINISTRATOR

SCOPE_ALL = "all"
SCOPE_OWN = "own"


def is_owner(principal: Principal, record) -> bool:
    return bool(principal and record is not None and record.citizen_id == principal.uid)


def listing_scope(role: str) -> str:
    return SCOPE_ALL if role == ADMINISTRATOR else SCOPE_OWN


def can_read(role: str, principal: Principal, complaint: Complaint) -> bool:
    return role == ADMINISTRATOR or is_owner(principal, complaint)


def can_transition(role: str) -> bool:
    return role == ADMINISTRATOR


def can_delete(role: str, principal: Principal, complaint: Complaint) -> bool:
    if role == ADMINISTRATOR:
        return True
    return is_owner(principal, complaint) and complaint.status == "Pending"


SEARCH_COLUMNS = (
    Complaint.title,
    Complaint.description,
    Complaint.id,
    Complaint.category,
    Complaint.contact_name,
)


def search_clause(query: Optional[str]):
    """Case-insensitive substring match over the searchable complaint fields.

    Returns ``None`` for a blank query. ``%`` and ``_`` in the query match literally.
    """
    needle = (query or "").strip()
    if not needle:
        return None
    pattern = "%" + needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
    return or_(*(column.ilike(pattern, escape="\\") for column in SEARCH_COLUMNS))
