"""
Stock movement and inventory status tests.

Every stock change must leave exactly one ledger row behind, and an OUT
that would take stock below zero must change nothing.
"""

import pytest

from smartpos.errors import InsufficientStockError, NotFoundError, ValidationError
from smartpos.models import Product, StockMovement
from smartpos.services import inventory_service
from smartpos.services.inventory_service import classify_stock


class TestRecordMovement:
    def test_stock_in_increments_and_logs(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=10)

        product, movement = inventory_service.record_movement(
            product.id, "IN", 5, user_id=manager_user.id, reason="Delivery", reference="PO-17",
        )

        assert product.stock_quantity == 15
        assert movement.type == "IN"
        assert movement.quantity == 5
        assert movement.balance_after == 15
        assert movement.reason == "Delivery"
        assert movement.reference == "PO-17"

    def test_stock_out_stores_negative_quantity(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=10)

        product, movement = inventory_service.record_movement(product.id, "out", 4, user_id=manager_user.id)

        assert product.stock_quantity == 6
        assert movement.type == "OUT"
        assert movement.quantity == -4
        assert movement.balance_after == 6

    def test_default_reason(self, db_session, manager_user, make_product):
        product = make_product()

        _, movement = inventory_service.record_movement(product.id, "IN", 1, user_id=manager_user.id)

        assert movement.reason == "Manual Stock IN"

    def test_out_beyond_stock_changes_nothing(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=3)

        with pytest.raises(InsufficientStockError) as excinfo:
            inventory_service.record_movement(product.id, "OUT", 5, user_id=manager_user.id)

        assert excinfo.value.details["on_hand"] == 3
        assert db_session.get(Product, product.id).stock_quantity == 3
        assert db_session.query(StockMovement).count() == 0

    def test_out_to_exactly_zero_allowed(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=3)

        product, _ = inventory_service.record_movement(product.id, "OUT", 3, user_id=manager_user.id)

        assert product.stock_quantity == 0

    @pytest.mark.parametrize("movement_type", ["SALE", "ADJUST", "", None])
    def test_invalid_type_rejected(self, db_session, manager_user, make_product, movement_type):
        product = make_product()

        with pytest.raises(ValidationError):
            inventory_service.record_movement(product.id, movement_type, 1, user_id=manager_user.id)

    @pytest.mark.parametrize("quantity", [0, -3, 2.5, "4", True])
    def test_invalid_quantity_rejected(self, db_session, manager_user, make_product, quantity):
        product = make_product(stock_quantity=10)

        with pytest.raises(ValidationError):
            inventory_service.record_movement(product.id, "IN", quantity, user_id=manager_user.id)

        assert db_session.get(Product, product.id).stock_quantity == 10

    def test_unknown_product_not_found(self, db_session, manager_user):
        with pytest.raises(NotFoundError):
            inventory_service.record_movement(4242, "IN", 1, user_id=manager_user.id)

    def test_inactive_product_not_found(self, db_session, manager_user, make_product):
        product = make_product()
        product.is_active = False
        db_session.commit()

        with pytest.raises(NotFoundError):
            inventory_service.record_movement(product.id, "IN", 1, user_id=manager_user.id)


class TestConditionalDecrement:
    """decrement_stock is the last line of defence against overselling."""

    def test_decrements_and_returns_balance(self, db_session, make_product):
        product = make_product(stock_quantity=5)

        balance = inventory_service.decrement_stock(db_session, product.id, 5)
        db_session.commit()

        assert balance == 0
        assert db_session.get(Product, product.id).stock_quantity == 0

    def test_short_stock_raises_and_leaves_row(self, db_session, make_product):
        product = make_product(stock_quantity=2)

        with pytest.raises(InsufficientStockError) as excinfo:
            inventory_service.decrement_stock(db_session, product.id, 3)

        assert excinfo.value.details == {"product_id": product.id, "requested_quantity": 3, "on_hand": 2}
        db_session.rollback()
        assert db_session.get(Product, product.id).stock_quantity == 2

    def test_unknown_product_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.decrement_stock(db_session, 4242, 1)

    def test_inactive_product_not_found(self, db_session, make_product):
        product = make_product(stock_quantity=10)
        product.is_active = False
        db_session.commit()

        with pytest.raises(NotFoundError):
            inventory_service.decrement_stock(db_session, product.id, 1)

        db_session.rollback()
        assert db_session.get(Product, product.id).stock_quantity == 10


class TestClassifyStock:
    @pytest.mark.parametrize("quantity,reorder,expected", [
        (0, 10, "out"),
        (1, 10, "low"),
        (10, 10, "low"),
        (11, 10, "ok"),
        (0, 0, "out"),
        (1, 0, "ok"),
    ])
    def test_status(self, quantity, reorder, expected):
        assert classify_stock(quantity, reorder) == expected


class TestInventorySummary:
    def test_counts_value_and_order(self, db_session, make_product):
        empty = make_product(name="Yogurt", stock_quantity=0, reorder_level=5, selling_price_cents=700)
        low = make_product(name="Biscuits", stock_quantity=4, reorder_level=5, selling_price_cents=1600)
        ok = make_product(name="Cola", stock_quantity=20, reorder_level=5, selling_price_cents=1200)
        hidden = make_product(name="Retired", stock_quantity=99)
        hidden.is_active = False
        db_session.commit()

        summary = inventory_service.inventory_summary()

        assert summary["total_products"] == 3
        assert summary["out_of_stock"] == 1
        assert summary["low_stock"] == 1
        assert summary["ok"] == 1
        assert summary["total_value_cents"] == 4 * 1600 + 20 * 1200
        assert [row["id"] for row in summary["products"]] == [empty.id, low.id, ok.id]
        assert [row["status"] for row in summary["products"]] == ["out", "low", "ok"]

    def test_empty_catalog(self, db_session):
        summary = inventory_service.inventory_summary()

        assert summary["total_products"] == 0
        assert summary["total_value_cents"] == 0
        assert summary["products"] == []


class TestMovementHistory:
    def test_newest_first_with_limit(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=0)
        for qty in (1, 2, 3):
            inventory_service.record_movement(product.id, "IN", qty, user_id=manager_user.id)

        history = inventory_service.movement_history(product.id, limit=2).to_list()

        assert [row["quantity"] for row in history] == [3, 2]
        assert history[0]["user"]["username"] == "manager"

    def test_is_lazy_and_reiterable(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=0)
        history = inventory_service.movement_history(product.id)

        assert list(history) == []

        inventory_service.record_movement(product.id, "IN", 5, user_id=manager_user.id)

        first = [m.id for m in history]
        second = [m.id for m in history]
        assert len(first) == 1
        assert first == second

    def test_inactive_product_history_still_visible(self, db_session, manager_user, make_product):
        product = make_product(stock_quantity=0)
        inventory_service.record_movement(product.id, "IN", 5, user_id=manager_user.id)
        product.is_active = False
        db_session.commit()

        assert len(inventory_service.movement_history(product.id).to_list()) == 1

    def test_unknown_product_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.movement_history(4242)

    @pytest.mark.parametrize("limit", [0, -1, "5"])
    def test_bad_limit_rejected(self, db_session, make_product, limit):
        product = make_product()

        with pytest.raises(ValidationError):
            inventory_service.movement_history(product.id, limit=limit)

    def test_limit_capped(self, db_session, make_product):
        product = make_product()

        history = inventory_service.movement_history(product.id, limit=10_000)

        assert history.limit == inventory_service.MAX_HISTORY_LIMIT
