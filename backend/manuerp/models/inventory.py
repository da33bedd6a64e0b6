from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from manuerp.time_utils import to_utc_z


MATERIAL_CATEGORIES = ("raw-material", "component")
MATERIAL_UNITS = ("pcs", "kg", "liters")
MOVEMENT_TYPES = ("in", "out", "adjustment", "transfer")

# Fixed-point storage for quantities (kg/liters are fractional) and money
QUANTITY = db.Numeric(14, 3)
MONEY = db.Numeric(12, 2)


def decimal_to_json(value: Decimal | None) -> float | None:
    if value is None:
        return None
    return float(value)


class Material(db.Model):
    """
    Material master data with a cached stock balance.

    stock_quantity is a denormalized cache of the stock ledger. It is written
    only by stock_ledger_service, in the same transaction as the ledger entry
    that produced it.

    version_id is SQLAlchemy's optimistic concurrency counter: an UPDATE that
    was computed from a stale read matches zero rows and raises
    StaleDataError instead of silently overwriting a concurrent movement.
    """
    __tablename__ = "materials"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_materials_stock_non_negative"),
        db.CheckConstraint("unit_cost >= 0", name="ck_materials_unit_cost_non_negative"),
        db.Index("ix_materials_category", "category"),
        db.Index("ix_materials_stock_quantity", "stock_quantity"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    unit = db.Column(db.String(16), nullable=False)

    stock_quantity = db.Column(QUANTITY, nullable=False, default=Decimal("0"))
    unit_cost = db.Column(MONEY, nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Material id={self.id} code={self.code!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "stockQuantity": decimal_to_json(self.stock_quantity),
            "unitCost": decimal_to_json(self.unit_cost),
            "versionId": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_ref(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code, "unit": self.unit}


class StockLedgerEntry(db.Model):
    """
    One recorded stock movement.

    quantity is always a positive magnitude; the direction comes from
    movement_type. balance_after is the material's balance immediately after
    this movement was applied.
    """
    __tablename__ = "stock_ledger_entries"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_ledger_quantity_positive"),
        db.CheckConstraint("balance_after >= 0", name="ck_stock_ledger_balance_non_negative"),
        db.CheckConstraint(
            "movement_type IN ('in', 'out', 'adjustment', 'transfer')",
            name="ck_stock_ledger_movement_type",
        ),
        db.Index("ix_stock_ledger_material_created", "material_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    material_id = db.Column(db.Integer, db.ForeignKey("materials.id"), nullable=False, index=True)
    movement_type = db.Column(db.String(16), nullable=False, index=True)

    quantity = db.Column(QUANTITY, nullable=False)
    balance_after = db.Column(QUANTITY, nullable=False)

    reason = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(120), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    material = db.relationship("Material", backref=db.backref("ledger_entries", lazy=True))
    created_by = db.relationship("User")

    def __repr__(self) -> str:
        return (
            f"<StockLedgerEntry id={self.id} material_id={self.material_id} "
            f"{self.movement_type} {self.quantity} -> {self.balance_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "material": self.material.to_ref() if self.material else self.material_id,
            "movementType": self.movement_type,
            "quantity": decimal_to_json(self.quantity),
            "balanceAfter": decimal_to_json(self.balance_after),
            "reason": self.reason,
            "reference": self.reference or "",
            "notes": self.notes or "",
            "createdBy": self.created_by.to_ref() if self.created_by else self.created_by_id,
            "createdAt": to_utc_z(self.created_at),
        }
