# Overview: Service-layer operations for materials; encapsulates business logic and database work.

"""
Material master data.

Balances are NOT edited here. stock_quantity only changes through
stock_ledger_service so that the ledger and the cached balance agree.
An opening balance given at creation is itself recorded as a ledger entry.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..errors import NotFoundError, ValidationError, ConflictError
from ..models import Material, StockLedgerEntry
from .concurrency import run_with_retry
from .stock_ledger_service import append_entry


OPENING_BALANCE_REASON = "Opening balance"


def get_material(material_id: int) -> Material:
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFoundError("Material not found.")
    return material


def list_materials(*, category: str | None = None, page: int = 1, limit: int = 50) -> tuple[list[Material], int]:
    q = db.session.query(Material)
    if category:
        q = q.filter(Material.category == category)

    total = q.count()
    rows = q.order_by(Material.code.asc()).offset((page - 1) * limit).limit(limit).all()
    return rows, total


def _ensure_code_available(code: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Material).filter(Material.code == code)
    if exclude_id is not None:
        q = q.filter(Material.id != exclude_id)
    if q.first() is not None:
        raise ValidationError("Material code already exists.")


def create_material(patch: dict, *, actor_id: int) -> Material:
    """
    Create a material from a validated patch (column keys).

    A positive stock_quantity becomes an 'adjustment' ledger entry with
    reason 'Opening balance', committed together with the material.
    """
    opening = patch.pop("stock_quantity", None) or Decimal("0")

    _ensure_code_available(patch["code"])

    material = Material(stock_quantity=Decimal("0"), **patch)
    db.session.add(material)
    db.session.flush()

    if opening > 0:
        append_entry(
            material,
            movement_type="adjustment",
            quantity=opening,
            reason=OPENING_BALANCE_REASON,
            actor_id=actor_id,
        )

    db.session.commit()
    current_app.logger.info("Material %s (%s) created by user %s", material.id, material.code, actor_id)
    return material


def update_material(material_id: int, patch: dict) -> Material:
    """
    Apply a validated master-data patch.

    The write bumps the material's version, so a concurrent stock movement
    can make it stale; it is then re-run from a fresh read.
    """
    if "stock_quantity" in patch:
        raise ValidationError("stockQuantity can only be changed through stock movements.")

    def _op():
        material = get_material(material_id)

        if "code" in patch and patch["code"] != material.code:
            _ensure_code_available(patch["code"], exclude_id=material.id)

        for key, value in patch.items():
            setattr(material, key, value)

        db.session.commit()
        return material

    return run_with_retry(_op)


def delete_material(material_id: int) -> None:
    """
    Hard delete. Refused while ledger entries reference the material, since
    deleting it would orphan its stock history.
    """
    def _op():
        material = get_material(material_id)

        has_history = (
            db.session.query(StockLedgerEntry.id)
            .filter(StockLedgerEntry.material_id == material.id)
            .first()
            is not None
        )
        if has_history:
            raise ConflictError("Material has stock movements and cannot be deleted.")

        db.session.delete(material)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Material %s deleted", material_id)
