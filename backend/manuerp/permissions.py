# Overview: Role gate; role presets and the pure membership check behind them.

"""
Role-based access control.

Every gate is list membership of principal.role in an allowed set. The
presets below are named instances of that one check, not separate rules.

Roles:
- admin:     everything, including user and material administration
- manager:   management of manufacturing and inventory operations
- operator:  shop-floor manufacturing operations
- inventory: stock and material handling
"""

from __future__ import annotations

from typing import Iterable

from .errors import ForbiddenError


ADMIN_ONLY = frozenset({"admin"})
MANAGER_OR_ADMIN = frozenset({"admin", "manager"})
MANAGEMENT = MANAGER_OR_ADMIN
MANUFACTURING_ACCESS = frozenset({"admin", "manager", "operator"})
INVENTORY_ACCESS = frozenset({"admin", "manager", "inventory"})


def is_authorized(principal, allowed_roles: Iterable[str]) -> bool:
    return principal is not None and principal.role in frozenset(allowed_roles)


def authorize(principal, allowed_roles: Iterable[str]) -> None:
    """
    Pass silently if principal.role is in allowed_roles, else raise ForbiddenError.

    No side effects; the same inputs always give the same outcome.
    """
    allowed = frozenset(allowed_roles)
    if is_authorized(principal, allowed):
        return

    role = principal.role if principal is not None else None
    raise ForbiddenError(
        f"Access denied. Required role: {' or '.join(sorted(allowed))}. Your role: {role}"
    )
