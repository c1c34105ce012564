"""View decorators that hand the request's context and principal to API handlers."""
from functools import wraps

from services.context import current_context, current_principal
from services.errors import PermissionDenied
from services.identity import is_administrator, require_principal


def portal_view(view_func):
    """Call ``view_func(ctx, principal, *args, **kwargs)`` for the current request."""

    @wraps(view_func)
    def wrapped(*args, **kwargs):
        return view_func(current_context(), current_principal(), *args, **kwargs)

    return wrapped


def administrator_required(view_func):
    @wraps(view_func)
    def wrapped(ctx, principal, *args, **kwargs):
        principal = require_principal(principal)
        if is_administrator(ctx, principal):
            return view_func(ctx, principal, *args, **kwargs)

        ctx.logger.warning(
            "Unauthorized administrator access attempt",
            extra={"principal": principal.uid, "view": view_func.__name__},
        )
        raise PermissionDenied()

    return wrapped
