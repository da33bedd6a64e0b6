# Overview: Service-layer operations for user administration.

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, ValidationError, ConflictError
from ..models import User, Material, StockLedgerEntry, ROLES
from ..models.auth import initials_for
from ..validation import EMAIL_RE
from . import auth_service
from .stock_ledger_service import movements_recorded_by


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


def create_user(*, name, email, password, role, department=None, employee_id=None) -> User:
    """Admin-created accounts skip email verification."""
    if not all([name, email, password, role]):
        raise ValidationError("Name, email, password, and role are required.")

    return auth_service.create_user(
        name=name,
        email=email,
        password=password,
        role=role,
        department=department,
        employee_id=employee_id,
        is_verified=True,
    )


def update_user(
    user_id: int,
    *,
    actor_id: int,
    name: str | None = None,
    email: str | None = None,
    role: str | None = None,
    is_active: bool | None = None,
) -> User:
    """
    Update account fields.

    Deactivation takes effect on the user's next request: session resolution
    re-reads is_active every time.
    """
    auth_service.require_strings(name=name, email=email, role=role)
    user = get_user(user_id)

    if user.id == actor_id and is_active is False:
        raise ValidationError("You cannot deactivate your own account.")

    if role and role not in ROLES:
        raise ValidationError("Invalid role specified.")

    if email:
        email = auth_service.normalize_email(email)
        if not EMAIL_RE.match(email):
            raise ValidationError("Invalid email format.")
        existing = auth_service.find_user_by_email(email)
        if existing is not None and existing.id != user.id:
            raise ValidationError("Email already registered.")
        user.email = email

    if name:
        user.name = name.strip()
        user.avatar = initials_for(user.name)
    if role:
        user.role = role
    if is_active is not None:
        user.is_active = is_active

    db.session.commit()

    if is_active is False:
        current_app.logger.warning("User %s deactivated by user %s", user.id, actor_id)
    return user


def delete_user(user_id: int, *, actor_id: int) -> None:
    """
    Hard delete.

    Users who recorded stock movements are refused: the ledger must keep a
    real author. Deactivate them instead.
    """
    if user_id == actor_id:
        raise ValidationError("You cannot delete your own account.")

    user = get_user(user_id)

    if movements_recorded_by(user.id):
        raise ConflictError("User has recorded stock movements; deactivate the account instead.")

    db.session.delete(user)
    db.session.commit()
    current_app.logger.warning("User %s deleted by user %s", user_id, actor_id)


def system_stats() -> dict:
    by_role = dict(
        db.session.query(User.role, func.count(User.id)).group_by(User.role).all()
    )
    total = db.session.query(User).count()
    active = db.session.query(User).filter(User.is_active.is_(True)).count()

    return {
        "users": {
            "total": total,
            "active": active,
            "inactive": total - active,
            "byRole": by_role,
        },
        "inventory": {
            "materials": db.session.query(Material).count(),
            "movements": db.session.query(StockLedgerEntry).count(),
        },
    }
