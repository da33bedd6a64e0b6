from __future__ import annotations

from ..extensions import db
from manuerp.time_utils import to_utc_z


ROLES = ("admin", "manager", "operator", "inventory")


def initials_for(name: str | None) -> str:
    """Avatar initials: first letter of up to two name parts, uppercased."""
    if not name:
        return "U"
    return "".join(part[0] for part in name.split() if part).upper()[:2] or "U"


class User(db.Model):
    """
    User accounts for authentication and attribution.

    WHY is_active is separate from deletion: deactivating an account must
    lock it out immediately (every request re-reads this row), while the
    user's stock movements keep pointing at a real record.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "role IN ('admin', 'manager', 'operator', 'inventory')",
            name="ck_users_role",
        ),
        db.Index("ix_users_role", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(32), nullable=False, default="operator")

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)

    avatar = db.Column(db.String(4), nullable=True)
    department = db.Column(db.String(120), nullable=True)
    employee_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "avatar": self.avatar,
            "department": self.department,
            "employeeId": self.employee_id,
            "isActive": self.is_active,
            "isVerified": self.is_verified,
            "lastLogin": to_utc_z(self.last_login_at) if self.last_login_at else None,
            "createdAt": to_utc_z(self.created_at),
        }

    def to_ref(self) -> dict:
        """Short form embedded in stock movements."""
        return {"id": self.id, "name": self.name, "email": self.email}
