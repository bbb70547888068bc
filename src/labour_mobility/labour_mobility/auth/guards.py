from __future__ import annotations

from functools import wraps

from flask import g, request

from ..core.enums import Role
from ..core.exceptions import AuthorizationError
from .context import CallerContext
from .service import CallerAuthenticator


def make_role_guard(authenticator: CallerAuthenticator):
    """Build a ``roles_required(*roles)`` decorator bound to an authenticator.

    The decorated view finds the caller on ``flask.g.caller``. With no roles
    given any authenticated caller is accepted.
    """

    def roles_required(*roles: Role):
        def decorator(view):
            @wraps(view)
            def wrapper(*args, **kwargs):
                caller = authenticator.authenticate(request.headers.get("Authorization"))
                if roles and not caller.has_role(*roles):
                    raise AuthorizationError("Insufficient permissions")
                g.caller = caller
                return view(*args, **kwargs)

            return wrapper

        return decorator

    return roles_required


def current_caller() -> CallerContext:
    return g.caller
