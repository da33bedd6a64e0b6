# Overview: Flask API routes for materials; parses input and returns JSON responses.

"""
Material management routes.

SECURITY:
- Listing requires authentication only
- Create / read one / update / delete require the admin role
- Balance reconciliation requires inventory access (admin, manager, inventory)

stockQuantity is accepted on create only (recorded as an opening-balance
ledger entry). Afterwards it changes exclusively through /api/stock-ledger.
"""

from flask import Blueprint, jsonify, g, request

from ..models import Material
from ..models.inventory import decimal_to_json
from ..services import material_service, stock_ledger_service
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_material
from ..decorators import require_auth, require_admin, require_inventory_access
from .common import json_body, pagination_args, pagination_body


materials_bp = Blueprint("materials", __name__, url_prefix="/api/materials")

MATERIAL_ALIASES = {"stockQuantity": "stock_quantity", "unitCost": "unit_cost"}

MATERIAL_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "category", "unit", "stockQuantity", "unitCost"},
    required_on_create={"code", "name", "category", "unit", "unitCost"},
    aliases=MATERIAL_ALIASES,
    required_message="Code, name, category, unit, and unit cost are required.",
)

MATERIAL_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "category", "unit", "stockQuantity", "unitCost"},
    aliases=MATERIAL_ALIASES,
)


@materials_bp.get("")
@require_auth
def list_materials_route():
    page, limit = pagination_args()
    rows, total = material_service.list_materials(
        category=request.args.get("category"),
        page=page,
        limit=limit,
    )
    return jsonify({
        "success": True,
        "materials": [m.to_dict() for m in rows],
        "pagination": pagination_body(page, limit, total),
    }), 200


@materials_bp.post("")
@require_auth
@require_admin
def create_material_route():
    patch = validate_payload(
        model=Material,
        payload=json_body(),
        policy=MATERIAL_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_material(patch)

    material = material_service.create_material(patch, actor_id=g.principal.id)
    return jsonify({
        "success": True,
        "message": "Material created successfully",
        "material": material.to_dict(),
    }), 201


@materials_bp.get("/<int:material_id>")
@require_auth
@require_admin
def get_material_route(material_id: int):
    material = material_service.get_material(material_id)
    return jsonify({"success": True, "material": material.to_dict()}), 200


@materials_bp.put("/<int:material_id>")
@require_auth
@require_admin
def update_material_route(material_id: int):
    patch = validate_payload(
        model=Material,
        payload=json_body(),
        policy=MATERIAL_UPDATE_POLICY,
        partial=True,
    )
    enforce_rules_material(patch)

    material = material_service.update_material(material_id, patch)
    return jsonify({
        "success": True,
        "message": "Material updated successfully",
        "material": material.to_dict(),
    }), 200


@materials_bp.delete("/<int:material_id>")
@require_auth
@require_admin
def delete_material_route(material_id: int):
    material_service.delete_material(material_id)
    return jsonify({"success": True, "message": "Material deleted successfully"}), 200


@materials_bp.get("/<int:material_id>/balance")
@require_auth
@require_inventory_access
def material_balance_route(material_id: int):
    """
    Cached balance next to what the ledger says.

    snapshotConsistent turns false once an entry older than the newest one
    has been reversed. ledgerConsistent false means the cache drifted from
    its history.
    """
    report = stock_ledger_service.reconcile_material(material_id)
    return jsonify({
        "success": True,
        "material": report["material"],
        "stockQuantity": decimal_to_json(report["cached"]),
        "latestBalanceAfter": decimal_to_json(report["latest_snapshot"]),
        "ledgerTotal": decimal_to_json(report["ledger_total"]),
        "snapshotConsistent": report["snapshot_consistent"],
        "ledgerConsistent": report["ledger_consistent"],
    }), 200
