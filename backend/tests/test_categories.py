"""
Category API tests: uniqueness, guarded soft delete and role checks.
"""

from smartpos.models import Category


def test_create_and_list_with_product_counts(client, admin_headers, make_category, make_product):
    resp = client.post("/api/categories", json={"name": "Snacks", "description": "Quick bites"}, headers=admin_headers)
    assert resp.status_code == 201
    snacks_id = resp.get_json()["data"]["id"]

    drinks = make_category("Beverages")
    make_product(category=drinks)
    make_product(category=drinks)

    resp = client.get("/api/categories", headers=admin_headers)
    assert resp.status_code == 200
    rows = resp.get_json()["data"]
    assert [r["name"] for r in rows] == ["Beverages", "Snacks"]
    assert rows[0]["product_count"] == 2
    assert next(r for r in rows if r["id"] == snacks_id)["product_count"] == 0


def test_duplicate_name_is_conflict(client, admin_headers, make_category):
    make_category("Dairy")

    resp = client.post("/api/categories", json={"name": "dairy"}, headers=admin_headers)

    assert resp.status_code == 409
    body = resp.get_json()
    assert body["success"] is False
    assert "already exists" in body["error"]


def test_rename_onto_existing_name_is_conflict(client, admin_headers, make_category):
    make_category("Dairy")
    bakery = make_category("Bakery")

    resp = client.put(f"/api/categories/{bakery.id}", json={"name": "Dairy"}, headers=admin_headers)

    assert resp.status_code == 409


def test_missing_name_rejected(client, admin_headers):
    resp = client.post("/api/categories", json={"description": "no name"}, headers=admin_headers)

    assert resp.status_code == 400


def test_get_category_with_products(client, cashier_headers, db_session, make_category, make_product):
    snacks = make_category("Snacks")
    chips = make_product(name="Chips", category=snacks)
    retired = make_product(name="Retired", category=snacks)
    retired.is_active = False
    db_session.commit()

    resp = client.get(f"/api/categories/{snacks.id}", headers=cashier_headers)

    data = resp.get_json()["data"]
    assert resp.status_code == 200
    assert [p["id"] for p in data["products"]] == [chips.id]


def test_delete_with_active_products_is_conflict(client, admin_headers, db_session, make_category, make_product):
    snacks = make_category("Snacks")
    make_product(category=snacks)

    resp = client.delete(f"/api/categories/{snacks.id}", headers=admin_headers)

    assert resp.status_code == 409
    assert resp.get_json()["details"]["product_count"] == 1
    assert db_session.get(Category, snacks.id).is_active is True


def test_delete_is_soft(client, admin_headers, db_session, make_category):
    empty = make_category("Seasonal")

    resp = client.delete(f"/api/categories/{empty.id}", headers=admin_headers)

    assert resp.status_code == 200
    assert db_session.get(Category, empty.id).is_active is False
    assert client.get(f"/api/categories/{empty.id}", headers=admin_headers).status_code == 404
    assert client.get("/api/categories", headers=admin_headers).get_json()["data"] == []


def test_deleted_name_still_reserved(client, admin_headers, make_category):
    old = make_category("Seasonal")
    client.delete(f"/api/categories/{old.id}", headers=admin_headers)

    resp = client.post("/api/categories", json={"name": "Seasonal"}, headers=admin_headers)

    assert resp.status_code == 409


def test_manager_cannot_delete(client, manager_headers, make_category):
    category = make_category("Seasonal")

    resp = client.delete(f"/api/categories/{category.id}", headers=manager_headers)

    assert resp.status_code == 403
    assert resp.get_json()["details"]["required_capability"] == "DELETE_CATEGORIES"


def test_manager_can_create(client, manager_headers):
    resp = client.post("/api/categories", json={"name": "Frozen"}, headers=manager_headers)

    assert resp.status_code == 201


def test_cashier_cannot_create(client, cashier_headers):
    resp = client.post("/api/categories", json={"name": "Frozen"}, headers=cashier_headers)

    assert resp.status_code == 403


def test_unknown_category_not_found(client, admin_headers):
    resp = client.put("/api/categories/9999", json={"name": "Ghost"}, headers=admin_headers)

    assert resp.status_code == 404
