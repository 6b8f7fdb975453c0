"""
Dashboard read path tests: local-day windows, trend buckets, best sellers.
"""

from datetime import datetime

import pytest

from smartpos.errors import ValidationError
from smartpos.services import dashboard_service, sales_service
from smartpos.services.sales_service import parse_cart


NOW = datetime(2024, 3, 10, 15, 0)


@pytest.fixture
def sell(db_session):
    def _sell(user, product, quantity, *, at):
        cart = parse_cart({"items": [{
            "product_id": product.id,
            "quantity": quantity,
            "unit_price_cents": product.selling_price_cents,
        }]})
        sale = sales_service.create_sale(cart, user_id=user.id).sale
        sale.created_at = at
        db_session.commit()
        return sale
    return _sell


class TestWindows:
    def test_today_window_utc(self, app):
        start, end = dashboard_service.today_window(NOW)

        assert start == datetime(2024, 3, 10)
        assert end == datetime(2024, 3, 11)

    def test_today_window_follows_shop_timezone(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "SHOP_TIMEZONE", "Asia/Colombo")

        # 20:00 UTC is already 01:30 the next day in Colombo
        start, end = dashboard_service.today_window(datetime(2024, 3, 10, 20, 0))

        assert start == datetime(2024, 3, 10, 18, 30)
        assert end == datetime(2024, 3, 11, 18, 30)

    def test_period_starts(self, app):
        assert dashboard_service.period_start("today", NOW) == datetime(2024, 3, 10)
        assert dashboard_service.period_start("week", NOW) == datetime(2024, 3, 3, 15, 0)
        assert dashboard_service.period_start("month", NOW) == datetime(2024, 2, 10, 15, 0)
        assert dashboard_service.period_start("all", NOW) is None

    def test_month_clamps_to_short_month(self, app):
        assert dashboard_service.period_start("month", datetime(2024, 3, 31)) == datetime(2024, 2, 29)

    def test_bad_period_rejected(self, app):
        with pytest.raises(ValidationError):
            dashboard_service.period_start("fortnight", NOW)


class TestStats:
    def test_today_and_inventory(self, db_session, cashier_user, make_product, sell):
        product = make_product(selling_price_cents=1000, cost_price_cents=700, stock_quantity=20, reorder_level=5)
        make_product(stock_quantity=0)
        make_product(stock_quantity=3, reorder_level=5)
        sell(cashier_user, product, 2, at=datetime(2024, 3, 10, 9))
        sell(cashier_user, product, 1, at=datetime(2024, 3, 9, 23))

        stats = dashboard_service.stats(NOW)

        assert stats["today"] == {
            "sales_cents": 2000,
            "profit_cents": 600,
            "items_sold": 2,
            "transactions": 1,
        }
        assert stats["inventory"] == {"total_products": 3, "low_stock": 1, "out_of_stock": 1}
        assert stats["overall"]["total_sales"] == 2

    def test_empty_store(self, db_session):
        stats = dashboard_service.stats(NOW)

        assert stats["today"]["sales_cents"] == 0
        assert stats["inventory"]["total_products"] == 0
        assert stats["overall"]["total_sales"] == 0


class TestRecentSales:
    def test_newest_first_with_items(self, db_session, cashier_user, make_product, sell):
        product = make_product()
        older = sell(cashier_user, product, 1, at=datetime(2024, 3, 9, 10))
        newer = sell(cashier_user, product, 1, at=datetime(2024, 3, 10, 10))

        rows = dashboard_service.recent_sales(limit=5)

        assert [r["id"] for r in rows] == [newer.id, older.id]
        assert rows[0]["items"][0]["product_id"] == product.id
        assert rows[0]["cashier"]["username"] == "cashier"

    @pytest.mark.parametrize("limit", [0, -1, "3"])
    def test_bad_limit(self, db_session, limit):
        with pytest.raises(ValidationError):
            dashboard_service.recent_sales(limit=limit)


class TestTopProducts:
    def test_ranked_by_quantity(self, db_session, cashier_user, make_product, sell):
        gum = make_product(name="Gum", selling_price_cents=100)
        rice = make_product(name="Rice", selling_price_cents=135000)
        sell(cashier_user, gum, 4, at=datetime(2024, 3, 10, 9))
        sell(cashier_user, gum, 3, at=datetime(2024, 3, 10, 10))
        sell(cashier_user, rice, 1, at=datetime(2024, 3, 10, 11))

        rows = dashboard_service.top_products(limit=10, period="all", now=NOW)

        assert [r["product_id"] for r in rows] == [gum.id, rice.id]
        assert rows[0]["total_quantity"] == 7
        assert rows[0]["total_revenue_cents"] == 700

    def test_period_filters_old_sales(self, db_session, cashier_user, make_product, sell):
        old = make_product(name="Old")
        fresh = make_product(name="Fresh")
        sell(cashier_user, old, 9, at=datetime(2024, 1, 1, 12))
        sell(cashier_user, fresh, 1, at=datetime(2024, 3, 9, 12))

        rows = dashboard_service.top_products(period="week", now=NOW)

        assert [r["product_id"] for r in rows] == [fresh.id]

    def test_today_excludes_yesterday(self, db_session, cashier_user, make_product, sell):
        product = make_product()
        sell(cashier_user, product, 1, at=datetime(2024, 3, 9, 23, 59))

        assert dashboard_service.top_products(period="today", now=NOW) == []

    def test_limit(self, db_session, cashier_user, make_product, sell):
        for qty in (1, 2, 3):
            sell(cashier_user, make_product(), qty, at=datetime(2024, 3, 10, 9))

        rows = dashboard_service.top_products(limit=2, now=NOW)

        assert [r["total_quantity"] for r in rows] == [3, 2]


class TestSalesTrend:
    def test_days_oldest_first_with_empty_days(self, db_session, cashier_user, make_product, sell):
        product = make_product(selling_price_cents=1000)
        sell(cashier_user, product, 1, at=datetime(2024, 3, 8, 10))
        sell(cashier_user, product, 2, at=datetime(2024, 3, 10, 10))
        sell(cashier_user, product, 1, at=datetime(2024, 3, 10, 11))
        sell(cashier_user, product, 5, at=datetime(2024, 3, 1, 11))

        trend = dashboard_service.sales_trend(days=3, now=NOW)

        assert trend == [
            {"date": "2024-03-08", "total_cents": 1000, "count": 1, "average_cents": 1000},
            {"date": "2024-03-09", "total_cents": 0, "count": 0, "average_cents": 0},
            {"date": "2024-03-10", "total_cents": 3000, "count": 2, "average_cents": 1500},
        ]

    def test_bad_days(self, db_session):
        with pytest.raises(ValidationError):
            dashboard_service.sales_trend(days=0, now=NOW)
