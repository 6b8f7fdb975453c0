"""
Product API tests.

Verifies:
- Opening stock is recorded as an IN movement
- stock_quantity is not writable after creation
- Duplicate barcodes are rejected with 409
- Soft delete hides products from default listings
"""

import pytest

from smartpos.models import Product, StockMovement


def _create(client, headers, **overrides):
    payload = {"name": "Coca Cola 500ml", "selling_price_cents": 12000, "cost_price_cents": 8000}
    payload.update(overrides)
    return client.post("/api/products", json=payload, headers=headers)


class TestCreateProduct:
    def test_opening_stock_recorded_as_movement(self, client, manager_headers, manager_user, db_session):
        resp = _create(client, manager_headers, stock_quantity=150, barcode="8888001001")

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["stock_quantity"] == 150

        movement = db_session.query(StockMovement).filter_by(product_id=data["id"]).one()
        assert movement.type == "IN"
        assert movement.quantity == 150
        assert movement.balance_after == 150
        assert movement.reason == "Initial stock"
        assert movement.user_id == manager_user.id

    def test_zero_opening_stock_writes_no_movement(self, client, manager_headers, db_session):
        resp = _create(client, manager_headers)

        assert resp.status_code == 201
        assert resp.get_json()["data"]["stock_quantity"] == 0
        assert db_session.query(StockMovement).count() == 0

    def test_reorder_level_defaults_to_shop_threshold(self, client, admin_headers):
        client.put("/api/settings", json={"low_stock_threshold": 7}, headers=admin_headers)

        resp = _create(client, admin_headers)

        assert resp.get_json()["data"]["reorder_level"] == 7

    def test_category_must_exist(self, client, manager_headers):
        resp = _create(client, manager_headers, category_id=9999)

        assert resp.status_code == 400

    def test_duplicate_barcode_is_conflict(self, client, manager_headers, make_product):
        make_product(barcode="8888001001")

        resp = _create(client, manager_headers, barcode="8888001001")

        assert resp.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"selling_price_cents": 100},
        {"name": "Gum"},
        {"name": "Gum", "selling_price_cents": -1},
        {"name": "Gum", "selling_price_cents": 1000000000},
        {"name": "Gum", "selling_price_cents": "12.50"},
        {"name": "Gum", "selling_price_cents": 100, "stock_quantity": -5},
        {"name": "Gum", "selling_price_cents": 100, "is_active": False},
    ])
    def test_invalid_payload_rejected(self, client, manager_headers, payload):
        resp = client.post("/api/products", json=payload, headers=manager_headers)

        assert resp.status_code == 400
        assert resp.get_json()["success"] is False

    def test_cashier_cannot_create(self, client, cashier_headers):
        assert _create(client, cashier_headers).status_code == 403


class TestUpdateProduct:
    def test_partial_update(self, client, manager_headers, make_product):
        product = make_product(selling_price_cents=12000)

        resp = client.put(f"/api/products/{product.id}", json={"selling_price_cents": 13000}, headers=manager_headers)

        assert resp.status_code == 200
        assert resp.get_json()["data"]["selling_price_cents"] == 13000
        assert resp.get_json()["data"]["name"] == product.name

    def test_stock_quantity_not_writable(self, client, manager_headers, db_session, make_product):
        product = make_product(stock_quantity=10)

        resp = client.put(f"/api/products/{product.id}", json={"stock_quantity": 999}, headers=manager_headers)

        assert resp.status_code == 400
        assert "Field not allowed" in resp.get_json()["error"]
        assert db_session.get(Product, product.id).stock_quantity == 10

    def test_barcode_collision_on_update(self, client, manager_headers, make_product):
        make_product(barcode="AAA")
        other = make_product(barcode="BBB")

        resp = client.put(f"/api/products/{other.id}", json={"barcode": "AAA"}, headers=manager_headers)

        assert resp.status_code == 409


class TestReadAndDelete:
    def test_soft_delete_hides_from_listing(self, client, manager_headers, cashier_headers, db_session, make_product):
        keep = make_product(name="Keep")
        gone = make_product(name="Gone")

        resp = client.delete(f"/api/products/{gone.id}", headers=manager_headers)
        assert resp.status_code == 200
        assert db_session.get(Product, gone.id).is_active is False

        listing = client.get("/api/products", headers=cashier_headers).get_json()
        assert [p["id"] for p in listing["data"]] == [keep.id]
        assert listing["count"] == 1

        assert client.get(f"/api/products/{gone.id}", headers=cashier_headers).status_code == 404

    def test_include_inactive_only_for_managers(self, client, manager_headers, cashier_headers, db_session, make_product):
        make_product(name="Keep")
        gone = make_product(name="Gone")
        gone.is_active = False
        db_session.commit()

        as_manager = client.get("/api/products?include_inactive=true", headers=manager_headers).get_json()
        as_cashier = client.get("/api/products?include_inactive=true", headers=cashier_headers).get_json()

        assert as_manager["count"] == 2
        assert as_cashier["count"] == 1

    def test_filter_by_category(self, client, cashier_headers, make_category, make_product):
        drinks = make_category("Beverages")
        cola = make_product(name="Cola", category=drinks)
        make_product(name="Chips")

        resp = client.get(f"/api/products?category_id={drinks.id}", headers=cashier_headers)

        assert [p["id"] for p in resp.get_json()["data"]] == [cola.id]

    def test_search_by_name_or_barcode(self, client, cashier_headers, make_product):
        cola = make_product(name="Coca Cola 500ml", barcode="8888001001")
        make_product(name="Sprite 500ml", barcode="8888001002")

        by_name = client.get("/api/products/search?q=coca", headers=cashier_headers).get_json()
        by_barcode = client.get("/api/products/search?q=8888001001", headers=cashier_headers).get_json()
        empty = client.get("/api/products/search?q=", headers=cashier_headers).get_json()

        assert [p["id"] for p in by_name["data"]] == [cola.id]
        assert [p["id"] for p in by_barcode["data"]] == [cola.id]
        assert empty["data"] == []

    def test_bad_category_filter_rejected(self, client, cashier_headers):
        resp = client.get("/api/products?category_id=abc", headers=cashier_headers)

        assert resp.status_code == 400
