# Overview: Flask API routes for stock movements; parses input and returns JSON responses.

"""
Stock ledger routes.

SECURITY:
- Listing and recording movements require authentication
- Per-material history, summary, and deletion require the admin role

Error mapping (rendered by the app error handler):
- 400: missing fields, invalid movement type, non-positive quantity,
       insufficient stock (including reversals that would go negative)
- 404: unknown material or movement
"""

from flask import Blueprint, jsonify, g, request

from ..models import StockLedgerEntry, MOVEMENT_TYPES
from ..models.inventory import decimal_to_json
from ..services import stock_ledger_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_stock_movement
from ..errors import ValidationError
from ..decorators import require_auth, require_admin
from .common import json_body, pagination_args, pagination_body


stock_ledger_bp = Blueprint("stock_ledger", __name__, url_prefix="/api/stock-ledger")

STOCK_MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"material", "movementType", "quantity", "reason", "reference", "notes"},
    required_on_create={"material", "movementType", "quantity", "reason"},
    aliases={"material": "material_id", "movementType": "movement_type"},
    required_message="Material, movement type, quantity, and reason are required.",
)


def _movement_type_filter() -> str | None:
    movement_type = request.args.get("movementType")
    if movement_type and movement_type not in MOVEMENT_TYPES:
        raise ValidationError("Invalid movement type. Must be: in, out, adjustment, or transfer.")
    return movement_type or None


@stock_ledger_bp.get("")
@require_auth
def list_movements_route():
    page, limit = pagination_args(default_limit=50)
    rows, total = stock_ledger_service.list_movements(
        material_id=request.args.get("material", type=int),
        movement_type=_movement_type_filter(),
        page=page,
        limit=limit,
    )
    return jsonify({
        "success": True,
        "movements": [r.to_dict() for r in rows],
        "pagination": pagination_body(page, limit, total),
    }), 200


@stock_ledger_bp.post("")
@require_auth
def record_movement_route():
    """
    Record a stock movement.

    Body: {material, movementType, quantity, reason, reference?, notes?}
    'out' subtracts quantity; 'in', 'adjustment' and 'transfer' add it.
    """
    patch = validate_payload(
        model=StockLedgerEntry,
        payload=json_body(),
        policy=STOCK_MOVEMENT_POLICY,
        partial=False,
    )
    enforce_rules_stock_movement(patch)

    entry = stock_ledger_service.record_movement(
        material_id=patch["material_id"],
        movement_type=patch["movement_type"],
        quantity=patch["quantity"],
        reason=patch["reason"],
        reference=patch.get("reference"),
        notes=patch.get("notes"),
        actor_id=g.principal.id,
    )

    return jsonify({
        "success": True,
        "message": "Stock movement recorded successfully",
        "movement": entry.to_dict(),
    }), 201


@stock_ledger_bp.get("/material/<int:material_id>")
@require_auth
@require_admin
def material_movements_route(material_id: int):
    page, limit = pagination_args(default_limit=20)
    rows, total = stock_ledger_service.list_movements(
        material_id=material_id,
        page=page,
        limit=limit,
    )
    return jsonify({
        "success": True,
        "movements": [r.to_dict() for r in rows],
        "pagination": pagination_body(page, limit, total),
    }), 200


@stock_ledger_bp.get("/summary")
@require_auth
@require_admin
def summary_route():
    result = stock_ledger_service.summarize_movements(recent_limit=10)
    return jsonify({
        "success": True,
        "summary": result["summary"],
        "recentMovements": [r.to_dict() for r in result["recentMovements"]],
    }), 200


@stock_ledger_bp.delete("/<int:entry_id>")
@require_auth
@require_admin
def delete_movement_route(entry_id: int):
    """
    Delete a movement by reversing its effect on the current balance.

    Use with caution: later movements keep their recorded balanceAfter.
    """
    material = stock_ledger_service.reverse_movement(entry_id)
    return jsonify({
        "success": True,
        "message": "Stock movement deleted and stock quantity adjusted",
        "material": material.to_ref(),
        "stockQuantity": decimal_to_json(material.stock_quantity),
    }), 200
