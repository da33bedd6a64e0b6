# Overview: Service-layer operations for the stock ledger; the only writer of material balances.

"""
Stock Ledger Invariants (authoritative)

Balance model:
- Material.stock_quantity is a cached balance; StockLedgerEntry rows are the history.
- At any quiescent point, stock_quantity equals the newest entry's balance_after
  for that material (or 0 when there are no entries).
- A balance may never go negative. A movement that would make it negative is
  rejected: no entry is written and the balance is untouched.

Movement direction:
- quantity is always a positive magnitude.
- The sign applied to the balance comes from MOVEMENT_SIGNS, one multiplier
  per movement type. 'adjustment' and 'transfer' are additive today; they
  carry no direction of their own.

Atomicity and concurrency:
- The ledger insert and the cache update are committed in ONE transaction.
- The material row is read with SELECT ... FOR UPDATE (where supported) and
  guarded by Material.version_id. A writer that computed from a stale
  balance fails with StaleDataError; run_with_retry then re-runs the whole
  read-compute-write from a fresh read. Business rejections are never retried.

Reversal (delete):
- Applies the inverse delta to the CURRENT balance, rejects it if that would
  go negative, then deletes the entry.
- Entries recorded after the reversed one keep their original balance_after
  values; they are NOT recomputed. The fold of the remaining entries still
  equals the cached balance, but the newest balance_after no longer does once
  an older entry has been reversed. reconcile_material() reports both numbers.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func

from ..extensions import db
from ..errors import (
    NotFoundError,
    ValidationError,
    InvalidMovementTypeError,
    InvalidQuantityError,
    InsufficientStockError,
)
from ..models import Material, StockLedgerEntry, MOVEMENT_TYPES
from ..validation import coerce_decimal, MAX_QUANTITY, QUANTITY_QUANTUM
from .concurrency import lock_for_update, run_with_retry


MOVEMENT_SIGNS = {
    "in": 1,
    "out": -1,
    "adjustment": 1,
    "transfer": 1,
}

ZERO = Decimal("0")
QUANTUM = QUANTITY_QUANTUM


def _check_movement_type(movement_type: str) -> None:
    if movement_type not in MOVEMENT_SIGNS:
        raise InvalidMovementTypeError()


def _check_quantity(quantity) -> Decimal:
    try:
        qty = coerce_decimal("quantity", quantity, quantum=None)
    except ValidationError:
        raise InvalidQuantityError()
    if qty <= 0:
        raise InvalidQuantityError()
    # Anything finer than the column scale would be rounded on write
    if qty != qty.quantize(QUANTUM):
        raise InvalidQuantityError("Quantity supports at most 3 decimal places.")
    return qty


def _check_balance(new_balance: Decimal) -> None:
    if new_balance < 0:
        raise InsufficientStockError()
    if new_balance > MAX_QUANTITY:
        raise ValidationError("Resulting stock balance exceeds the maximum of %s." % MAX_QUANTITY)


def signed_delta(movement_type: str, quantity) -> Decimal:
    """Signed change a movement applies to the balance."""
    _check_movement_type(movement_type)
    return MOVEMENT_SIGNS[movement_type] * Decimal(quantity)


def _locked_material(material_id: int) -> Material:
    material = lock_for_update(db.session.query(Material).filter_by(id=material_id)).first()
    if material is None:
        raise NotFoundError("Material not found.")
    return material


def append_entry(
    material: Material,
    *,
    movement_type: str,
    quantity: Decimal,
    reason: str,
    actor_id: int,
    reference: str | None = None,
    notes: str | None = None,
) -> StockLedgerEntry:
    """
    Core movement logic without locking, retry, or commit.

    Caller holds the material row and commits. Raises before touching
    anything if the quantity does not fit the column or the balance would
    go negative or past MAX_QUANTITY.
    """
    quantity = _check_quantity(quantity)
    current = material.stock_quantity or ZERO
    new_balance = current + signed_delta(movement_type, quantity)
    _check_balance(new_balance)

    entry = StockLedgerEntry(
        material_id=material.id,
        movement_type=movement_type,
        quantity=quantity,
        balance_after=new_balance,
        reason=reason,
        reference=reference or None,
        notes=notes or None,
        created_by_id=actor_id,
    )
    db.session.add(entry)

    material.stock_quantity = new_balance
    db.session.flush()
    return entry


def record_movement(
    *,
    material_id: int,
    movement_type: str,
    quantity,
    reason: str,
    actor_id: int,
    reference: str | None = None,
    notes: str | None = None,
) -> StockLedgerEntry:
    """
    Record one stock movement and update the material's cached balance.

    Raises:
        InvalidMovementTypeError: movement_type not in MOVEMENT_TYPES
        InvalidQuantityError: quantity not strictly positive
        ValidationError: reason missing
        NotFoundError: material does not exist
        InsufficientStockError: balance would go negative
        ValidationError: balance would exceed MAX_QUANTITY
    """
    _check_movement_type(movement_type)
    qty = _check_quantity(quantity)
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Reason is required.")

    def _op():
        material = _locked_material(material_id)
        try:
            entry = append_entry(
                material,
                movement_type=movement_type,
                quantity=qty,
                reason=reason,
                actor_id=actor_id,
                reference=reference,
                notes=notes,
            )
        except (InsufficientStockError, ValidationError) as e:
            db.session.rollback()
            current_app.logger.info(
                "Rejected %s %s for material %s: %s",
                movement_type, qty, material_id, e.message,
            )
            raise

        db.session.commit()
        return entry

    entry = run_with_retry(_op)
    current_app.logger.info(
        "Stock movement %s recorded: material=%s %s %s balance_after=%s by user %s",
        entry.id, material_id, movement_type, qty, entry.balance_after, actor_id,
    )
    return entry


def reverse_movement(entry_id: int) -> Material:
    """
    Delete a ledger entry by applying its inverse delta to the current balance.

    Later entries' balance_after snapshots are left as they are.

    Raises:
        NotFoundError: entry does not exist
        InsufficientStockError: reversal would make the balance negative
        ValidationError: reversal would push the balance past MAX_QUANTITY
    """
    def _op():
        entry = db.session.get(StockLedgerEntry, entry_id)
        if entry is None:
            raise NotFoundError("Stock movement not found.")

        material = _locked_material(entry.material_id)
        new_balance = (material.stock_quantity or ZERO) - signed_delta(entry.movement_type, entry.quantity)

        if new_balance < 0 or new_balance > MAX_QUANTITY:
            db.session.rollback()
            current_app.logger.info(
                "Rejected reversal of stock movement %s: balance would become %s",
                entry_id, new_balance,
            )
            if new_balance < 0:
                raise InsufficientStockError("Cannot delete movement - would result in negative stock.")
            raise ValidationError("Cannot delete movement - stock balance would exceed the maximum.")

        db.session.delete(entry)
        material.stock_quantity = new_balance
        db.session.commit()
        return material

    material = run_with_retry(_op)
    current_app.logger.warning(
        "Stock movement %s reversed; material %s balance now %s",
        entry_id, material.id, material.stock_quantity,
    )
    return material


def list_movements(
    *,
    material_id: int | None = None,
    movement_type: str | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[StockLedgerEntry], int]:
    """Newest first. Returns (page_items, total_count)."""
    q = db.session.query(StockLedgerEntry)
    if material_id is not None:
        q = q.filter(StockLedgerEntry.material_id == material_id)
    if movement_type:
        q = q.filter(StockLedgerEntry.movement_type == movement_type)

    total = q.count()
    rows = (
        q.order_by(StockLedgerEntry.created_at.desc(), StockLedgerEntry.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return rows, total


def summarize_movements(*, recent_limit: int = 10) -> dict:
    """Totals and counts per movement type, plus the most recent entries."""
    rows = (
        db.session.query(
            StockLedgerEntry.movement_type,
            func.coalesce(func.sum(StockLedgerEntry.quantity), 0).label("total_quantity"),
            func.count(StockLedgerEntry.id).label("count"),
        )
        .group_by(StockLedgerEntry.movement_type)
        .all()
    )
    by_type = {row.movement_type: row for row in rows}

    summary = []
    for movement_type in MOVEMENT_TYPES:
        row = by_type.get(movement_type)
        if row is None:
            continue
        summary.append({
            "movementType": movement_type,
            "totalQuantity": float(row.total_quantity or 0),
            "count": int(row.count),
        })

    recent, _ = list_movements(page=1, limit=recent_limit)
    return {"summary": summary, "recentMovements": recent}


def ledger_balance(material_id: int) -> Decimal:
    """Fold of signed deltas over every remaining entry for the material."""
    signs = case(
        *[(StockLedgerEntry.movement_type == t, s) for t, s in MOVEMENT_SIGNS.items()],
        else_=0,
    )
    total = (
        db.session.query(func.coalesce(func.sum(StockLedgerEntry.quantity * signs), 0))
        .filter(StockLedgerEntry.material_id == material_id)
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(QUANTUM)


def latest_entry(material_id: int) -> StockLedgerEntry | None:
    return (
        db.session.query(StockLedgerEntry)
        .filter(StockLedgerEntry.material_id == material_id)
        .order_by(StockLedgerEntry.created_at.desc(), StockLedgerEntry.id.desc())
        .first()
    )


def reconcile_material(material_id: int) -> dict:
    """
    Compare the cached balance with the ledger.

    - cached:          Material.stock_quantity
    - latest_snapshot: newest entry's balance_after (0 with no entries)
    - ledger_total:    fold of signed deltas over remaining entries

    cached == ledger_total holds as long as every change went through the
    ledger. cached == latest_snapshot holds until an entry older than the
    newest one is reversed; after that the newest snapshot is stale.
    """
    material = db.session.get(Material, material_id)
    if material is None:
        raise NotFoundError("Material not found.")

    cached = material.stock_quantity or ZERO
    newest = latest_entry(material_id)
    latest_snapshot = newest.balance_after if newest is not None else ZERO
    ledger_total = ledger_balance(material_id)

    return {
        "material": material.to_ref(),
        "cached": cached,
        "latest_snapshot": latest_snapshot,
        "ledger_total": ledger_total,
        "snapshot_consistent": cached == latest_snapshot,
        "ledger_consistent": cached == ledger_total,
    }


def movements_recorded_by(user_id: int) -> int:
    return db.session.query(StockLedgerEntry).filter_by(created_by_id=user_id).count()
