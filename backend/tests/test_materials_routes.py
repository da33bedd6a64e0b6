"""
Material API tests.

stockQuantity is accepted on create (as an opening-balance ledger entry)
and never through update; deletion is refused once history exists.
"""

import pytest
from sqlalchemy import text

from manuerp.extensions import db
from manuerp.models import Material, StockLedgerEntry
from manuerp.services import material_service
from manuerp.validation import MAX_UNIT_COST


NEW_MATERIAL = {
    "code": "AL-6061",
    "name": "Aluminium bar 6061",
    "category": "raw-material",
    "unit": "kg",
    "unitCost": 4.75,
}


class TestCreate:

    def test_create_without_stock(self, client, admin_headers):
        resp = client.post("/api/materials", json=NEW_MATERIAL, headers=admin_headers)

        assert resp.status_code == 201
        material = resp.get_json()["material"]
        assert material["code"] == "AL-6061"
        assert material["stockQuantity"] == 0.0
        assert material["unitCost"] == 4.75
        assert db.session.query(StockLedgerEntry).count() == 0

    def test_opening_stock_goes_through_ledger(self, client, admin_headers, admin_user):
        resp = client.post("/api/materials", json={**NEW_MATERIAL, "stockQuantity": 80}, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.get_json()["material"]["stockQuantity"] == 80.0

        entry = db.session.query(StockLedgerEntry).one()
        assert entry.movement_type == "adjustment"
        assert entry.reason == "Opening balance"
        assert entry.created_by_id == admin_user.id

    def test_missing_fields(self, client, admin_headers):
        resp = client.post("/api/materials", json={"code": "X-1"}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Code, name, category, unit, and unit cost are required."

    @pytest.mark.parametrize("field,value", [
        ("category", "consumable"),
        ("unit", "boxes"),
        ("unitCost", -1),
        ("stockQuantity", -5),
        ("stockQuantity", "1.0001"),
        ("unitCost", 1.234),
        ("unitCost", 99999999999),
        ("unitCost", "10000000000"),
    ])
    def test_invalid_values(self, client, admin_headers, field, value):
        resp = client.post("/api/materials", json={**NEW_MATERIAL, field: value}, headers=admin_headers)
        assert resp.status_code == 400

    def test_largest_unit_cost_fits_money_column(self, client, admin_headers):
        resp = client.post("/api/materials", json={**NEW_MATERIAL, "unitCost": str(MAX_UNIT_COST)}, headers=admin_headers)

        assert resp.status_code == 201
        assert resp.get_json()["material"]["unitCost"] == 9999999999.99

    def test_unit_cost_scale_message(self, client, admin_headers):
        resp = client.post("/api/materials", json={**NEW_MATERIAL, "unitCost": "4.755"}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "unitCost supports at most 2 decimal places"
        assert db.session.query(Material).count() == 0

    def test_duplicate_code(self, client, admin_headers, make_material):
        make_material("AL-6061")

        resp = client.post("/api/materials", json=NEW_MATERIAL, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "Material code already exists."

    def test_manager_forbidden(self, client, manager_headers):
        resp = client.post("/api/materials", json=NEW_MATERIAL, headers=manager_headers)
        assert resp.status_code == 403


class TestReadAndList:

    def test_list_is_open_to_any_role(self, client, make_material, operator_headers):
        make_material("B-2", category="component", unit="pcs")
        make_material("A-1")

        resp = client.get("/api/materials", headers=operator_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert [m["code"] for m in body["materials"]] == ["A-1", "B-2"]
        assert body["pagination"]["total"] == 2

    def test_list_by_category(self, client, make_material, operator_headers):
        make_material("B-2", category="component", unit="pcs")
        make_material("A-1")

        resp = client.get("/api/materials?category=component", headers=operator_headers)

        assert [m["code"] for m in resp.get_json()["materials"]] == ["B-2"]

    def test_get_one(self, client, material, admin_headers):
        resp = client.get(f"/api/materials/{material.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["material"]["name"] == "Steel sheet"

    def test_get_unknown(self, client, admin_headers):
        resp = client.get("/api/materials/31337", headers=admin_headers)
        assert resp.status_code == 404


class TestUpdate:

    def test_update_master_data(self, client, material, admin_headers):
        resp = client.put(
            f"/api/materials/{material.id}",
            json={"name": "Steel sheet 2mm", "unitCost": "13.10"},
            headers=admin_headers,
        )

        assert resp.status_code == 200
        body = resp.get_json()["material"]
        assert body["name"] == "Steel sheet 2mm"
        assert body["unitCost"] == 13.1

    def test_stock_quantity_cannot_be_edited(self, client, make_material, admin_headers):
        m = make_material("M-100", stock=100)

        resp = client.put(f"/api/materials/{m.id}", json={"stockQuantity": 500}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["message"] == "stockQuantity can only be changed through stock movements."
        db.session.expire_all()
        assert db.session.get(Material, m.id).stock_quantity == 100

    def test_edit_racing_a_stock_movement_is_retried(self, client, material, admin_headers, monkeypatch):
        original = material_service.get_material
        reads = []

        def racing_read(material_id):
            row = original(material_id)
            reads.append(row.version_id)
            if len(reads) == 1:
                db.session.execute(
                    text("UPDATE materials SET version_id = version_id + 1 WHERE id = :id"),
                    {"id": material_id},
                )
            return row

        monkeypatch.setattr(material_service, "get_material", racing_read)

        resp = client.put(f"/api/materials/{material.id}", json={"name": "Steel plate"}, headers=admin_headers)

        assert resp.status_code == 200
        assert len(reads) == 2
        assert resp.get_json()["material"]["name"] == "Steel plate"

    def test_edit_that_keeps_losing_is_a_conflict(self, client, material, admin_headers, monkeypatch):
        original = material_service.get_material

        def always_racing_read(material_id):
            row = original(material_id)
            db.session.execute(
                text("UPDATE materials SET version_id = version_id + 1 WHERE id = :id"),
                {"id": material_id},
            )
            return row

        monkeypatch.setattr(material_service, "get_material", always_racing_read)

        resp = client.put(f"/api/materials/{material.id}", json={"name": "Steel plate"}, headers=admin_headers)

        assert resp.status_code == 409
        assert resp.get_json()["error"] == "Conflict"


class TestDelete:

    def test_delete_unused_material(self, client, material, admin_headers):
        resp = client.delete(f"/api/materials/{material.id}", headers=admin_headers)

        assert resp.status_code == 200
        assert db.session.get(Material, material.id) is None

    def test_delete_with_history_conflicts(self, client, make_material, admin_headers):
        m = make_material("M-100", stock=100)

        resp = client.delete(f"/api/materials/{m.id}", headers=admin_headers)

        assert resp.status_code == 409
        assert db.session.get(Material, m.id) is not None


class TestBalance:

    def test_balance_visible_to_inventory_role(self, client, make_material, inventory_headers):
        m = make_material("M-100", stock=100)

        resp = client.get(f"/api/materials/{m.id}/balance", headers=inventory_headers)

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["stockQuantity"] == 100.0
        assert body["latestBalanceAfter"] == 100.0
        assert body["ledgerTotal"] == 100.0
        assert body["snapshotConsistent"] is True
        assert body["ledgerConsistent"] is True

    def test_balance_forbidden_for_operator(self, client, material, operator_headers):
        resp = client.get(f"/api/materials/{material.id}/balance", headers=operator_headers)
        assert resp.status_code == 403
