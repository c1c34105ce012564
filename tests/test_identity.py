import logging

import pytest
from sqlalchemy.exc import OperationalError

from models import AdminRegistration
from services.context import PortalContext, Principal
from services.errors import AuthenticationRequired, NotFound
from services.identity import (
    ADMINISTRATOR,
    CITIZEN,
    grant_administrator,
    is_administrator,
    require_principal,
    resolve_role,
    revoke_administrator,
)
from tests.conftest import make_user


class UnreachableRegistry:
    def __init__(self):
        self.rolled_back = False

    def get(self, *args, **kwargs):
        raise OperationalError("SELECT admin_registrations", {}, Exception("registry unreachable"))

    def rollback(self):
        self.rolled_back = True


def test_registered_principal_is_administrator(ctx, admin):
    assert resolve_role(ctx, admin) == ADMINISTRATOR
    assert is_administrator(ctx, admin)


def test_unregistered_principal_is_citizen(ctx, citizen):
    assert resolve_role(ctx, citizen) == CITIZEN
    assert not is_administrator(ctx, citizen)


def test_anonymous_session_never_resolves_to_administrator(ctx, admin):
    guest = Principal(uid=admin.uid, is_anonymous=True)
    assert resolve_role(ctx, guest) == CITIZEN


def test_missing_principal_requires_authentication(ctx):
    with pytest.raises(AuthenticationRequired):
        resolve_role(ctx, None)
    with pytest.raises(AuthenticationRequired):
        require_principal(Principal(uid=""))


def test_registry_failure_fails_closed():
    session = UnreachableRegistry()
    ctx = PortalContext(session=session, classifier=None, logger=logging.getLogger("portal-test"), config={})

    assert resolve_role(ctx, Principal(uid="someone")) == CITIZEN
    assert session.rolled_back
    assert ctx.role_cache == {}


def test_role_is_cached_only_for_the_context(app, ctx, admin):
    assert resolve_role(ctx, admin) == ADMINISTRATOR
    ctx.session.query(AdminRegistration).filter_by(user_id=admin.uid).delete()
    ctx.session.commit()

    assert resolve_role(ctx, admin) == ADMINISTRATOR

    fresh = PortalContext(session=ctx.session, classifier=None, logger=app.logger, config=app.config)
    assert resolve_role(fresh, admin) == CITIZEN


def test_grant_and_revoke_administrator(ctx, citizen):
    grant_administrator(ctx, "A@Example.com ")
    assert resolve_role(ctx, citizen) == ADMINISTRATOR

    revoke_administrator(ctx, "a@example.com")
    assert resolve_role(ctx, citizen) == CITIZEN
    assert ctx.session.get(AdminRegistration, citizen.uid) is None


def test_grant_is_idempotent(ctx, admin):
    grant_administrator(ctx, "admin@example.com")
    assert ctx.session.query(AdminRegistration).count() == 1


def test_grant_unknown_account(ctx):
    with pytest.raises(NotFound):
        grant_administrator(ctx, "nobody@example.com")


def test_principal_from_guest_user(ctx):
    guest = make_user(None, "Guest", is_guest=True)
    principal = Principal.from_user(guest)
    assert principal.is_anonymous
    assert principal.uid == guest.id
    assert Principal.from_user(None) is None
