"""Classify principals as citizens or administrators.

A principal is an administrator only when an ``AdminRegistration`` row exists
for its id and the session is not a guest session. Lookup failures resolve to
``citizen``: an unreachable registry never grants administrator rights.
"""
from __future__ import annotations

from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from models import AdminRegistration, User
from services.context import PortalContext, Principal
from services.errors import AuthenticationRequired, NotFound, PersistenceDenied

CITIZEN = "citizen"
ADMINISTRATOR = "administrator"


def require_principal(principal: Optional[Principal]) -> Principal:
    if principal is None or not principal.uid:
        raise AuthenticationRequired()
    return principal


def resolve_role(ctx: PortalContext, principal: Optional[Principal]) -> str:
    principal = require_principal(principal)
    if principal.is_anonymous:
        return CITIZEN

    cached = ctx.role_cache.get(principal.uid)
    if cached:
        return cached

    try:
        registered = ctx.session.get(AdminRegistration, principal.uid) is not None
    except SQLAlchemyError:
        ctx.logger.warning(
            "Administrator registry lookup failed; treating principal as citizen",
            extra={"principal": principal.uid},
            exc_info=True,
        )
        ctx.session.rollback()
        return CITIZEN

    role = ADMINISTRATOR if registered else CITIZEN
    ctx.role_cache[principal.uid] = role
    return role


def is_administrator(ctx: PortalContext, principal: Optional[Principal]) -> bool:
    return resolve_role(ctx, principal) == ADMINISTRATOR


def _user_by_email(ctx: PortalContext, email: str) -> User:
    user = ctx.session.query(User).filter_by(email=(email or "").strip().lower()).first()
    if not user:
        raise NotFound(f"No account is registered for {email}.")
    return user


def grant_administrator(ctx: PortalContext, email: str) -> User:
    user = _user_by_email(ctx, email)
    if ctx.session.get(AdminRegistration, user.id) is None:
        ctx.session.add(AdminRegistration(user_id=user.id))
        try:
            ctx.session.commit()
        except SQLAlchemyError as exc:
            ctx.session.rollback()
            raise PersistenceDenied("Administrator registration could not be saved.") from exc
    ctx.role_cache.pop(user.id, None)
    ctx.logger.info("Administrator registration granted", extra={"user_id": user.id})
    return user


def revoke_administrator(ctx: PortalContext, email: str) -> User:
    user = _user_by_email(ctx, email)
    registration = ctx.session.get(AdminRegistration, user.id)
    if registration is not None:
        ctx.session.delete(registration)
        try:
            ctx.session.commit()
        except SQLAlchemyError as exc:
            ctx.session.rollback()
            raise PersistenceDenied("Administrator registration could not be removed.") from exc
    ctx.role_cache.pop(user.id, None)
    ctx.logger.info("Administrator registration revoked", extra={"user_id": user.id})
    return user
