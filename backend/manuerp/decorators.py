# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g, current_app

from .errors import UnauthorizedError, AccountDeactivatedError
from .permissions import (
    authorize,
    ADMIN_ONLY,
    MANAGER_OR_ADMIN,
    MANUFACTURING_ACCESS,
    INVENTORY_ACCESS,
)
from .services import session_service


def require_auth(f):
    """
    Require a valid session credential for an active user.

    Sets g.principal (session_service.Principal: id, email, role, name).

    SECURITY: Resolution re-reads the user on every call, so deactivation
    and deletion take effect on the very next request. Errors propagate as
    ApiError subclasses and are rendered by the app error handler:
    - 401: missing, invalid or expired token; user no longer exists
    - 403: account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.principal = None
        try:
            g.principal = session_service.resolve_principal(request.headers.get("Authorization"))
        except AccountDeactivatedError:
            current_app.logger.info("Rejected request from deactivated account on %s", request.path)
            raise

        return f(*args, **kwargs)

    return decorated_function


def require_roles(*allowed_roles: str):
    """
    Require the authenticated principal's role to be one of allowed_roles.

    Must be stacked below @require_auth.
    """
    allowed = frozenset(allowed_roles)

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            principal = getattr(g, "principal", None)
            if principal is None:
                raise UnauthorizedError()

            authorize(principal, allowed)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


require_admin = require_roles(*ADMIN_ONLY)
require_manager_or_admin = require_roles(*MANAGER_OR_ADMIN)
require_manufacturing_access = require_roles(*MANUFACTURING_ACCESS)
require_inventory_access = require_roles(*INVENTORY_ACCESS)
