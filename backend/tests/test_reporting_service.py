"""
Report aggregation tests.

Sales are created through the sale path and then pinned to fixed
timestamps so date-range boundaries can be checked exactly.
"""

from datetime import date, datetime

import pytest

from smartpos.errors import ValidationError
from smartpos.services import reporting_service, sales_service
from smartpos.services.reporting_service import parse_date_range, safe_average, safe_percentage
from smartpos.services.sales_service import parse_cart


@pytest.fixture
def sell(db_session):
    def _sell(user, lines, *, at, payment_method="cash", cash_amount_cents=None):
        cart = parse_cart({
            "items": [
                {"product_id": p.id, "quantity": q, "unit_price_cents": p.selling_price_cents}
                for p, q in lines
            ],
            "payment_method": payment_method,
            "cash_amount_cents": cash_amount_cents,
        })
        sale = sales_service.create_sale(cart, user_id=user.id).sale
        sale.created_at = at
        db_session.commit()
        return sale
    return _sell


class TestParseDateRange:
    def test_inclusive_window_in_utc(self, app):
        r = parse_date_range("2024-03-10", "2024-03-12", "UTC")

        assert r.start == datetime(2024, 3, 10)
        assert r.end == datetime(2024, 3, 13)
        assert r.to_dict() == {"start_date": "2024-03-10", "end_date": "2024-03-12"}

    def test_window_follows_shop_timezone(self, app):
        r = parse_date_range("2024-03-10", "2024-03-10", "Asia/Colombo")

        assert r.start == datetime(2024, 3, 9, 18, 30)
        assert r.end == datetime(2024, 3, 10, 18, 30)

    def test_single_day(self, app):
        r = parse_date_range("2024-03-10", "2024-03-10")

        assert r.start_date == r.end_date == date(2024, 3, 10)

    @pytest.mark.parametrize("start,end", [
        (None, "2024-03-10"),
        ("2024-03-10", None),
        ("", ""),
        (" ", "2024-01-01"),
        ("2024-01-01", "   "),
    ])
    def test_missing_dates_rejected(self, app, start, end):
        with pytest.raises(ValidationError, match="required"):
            parse_date_range(start, end)

    @pytest.mark.parametrize("start,end", [
        ("10/03/2024", "2024-03-10"),
        ("2024-03-10", "2024-13-01"),
        ("yesterday", "today"),
    ])
    def test_malformed_dates_rejected(self, app, start, end):
        with pytest.raises(ValidationError):
            parse_date_range(start, end)

    def test_start_after_end_rejected(self, app):
        with pytest.raises(ValidationError):
            parse_date_range("2024-03-12", "2024-03-10")


class TestHelpers:
    def test_safe_percentage(self):
        assert safe_percentage(1, 3) == 33.33
        assert safe_percentage(5, 0) == 0.0

    def test_safe_average(self):
        assert safe_average(10, 4) == 3
        assert safe_average(10, 0) == 0


class TestSalesSummary:
    def test_totals_and_profit(self, db_session, cashier_user, make_product, sell):
        cola = make_product(selling_price_cents=12000, cost_price_cents=8000)
        chips = make_product(selling_price_cents=8000, cost_price_cents=5000)
        sell(cashier_user, [(cola, 2), (chips, 1)], at=datetime(2024, 3, 10, 9))
        sell(cashier_user, [(chips, 3)], at=datetime(2024, 3, 11, 15))

        report = reporting_service.sales_summary(parse_date_range("2024-03-10", "2024-03-11"))

        summary = report["summary"]
        assert summary["total_sales_cents"] == 32000 + 24000
        assert summary["total_transactions"] == 2
        assert summary["total_items_sold"] == 6
        assert summary["total_profit_cents"] == (32000 - 21000) + (24000 - 15000)
        assert summary["average_transaction_cents"] == 28000
        assert len(report["sales"]) == 2
        assert report["sales"][0]["created_at"] == "2024-03-11T15:00:00Z"

    def test_end_date_is_inclusive(self, db_session, cashier_user, make_product, sell):
        product = make_product(selling_price_cents=1000)
        inside = sell(cashier_user, [(product, 1)], at=datetime(2024, 3, 10, 23, 59, 59))
        sell(cashier_user, [(product, 1)], at=datetime(2024, 3, 11, 0, 0, 0))
        sell(cashier_user, [(product, 1)], at=datetime(2024, 3, 9, 23, 59, 59))

        report = reporting_service.sales_summary(parse_date_range("2024-03-10", "2024-03-10"))

        assert [s["id"] for s in report["sales"]] == [inside.id]

    def test_empty_range(self, db_session):
        report = reporting_service.sales_summary(parse_date_range("2024-03-10", "2024-03-10"))

        assert report["summary"]["total_sales_cents"] == 0
        assert report["summary"]["average_transaction_cents"] == 0
        assert report["sales"] == []


class TestGroupedReports:
    def test_sales_by_product_sorted_by_revenue(self, db_session, cashier_user, make_product, make_category, sell):
        drinks = make_category("Beverages")
        cheap = make_product(name="Gum", selling_price_cents=100, cost_price_cents=50)
        pricey = make_product(name="Juice", selling_price_cents=25000, cost_price_cents=18000, category=drinks)
        sell(cashier_user, [(cheap, 5), (pricey, 1)], at=datetime(2024, 3, 10, 12))

        rows = reporting_service.sales_by_product(parse_date_range("2024-03-10", "2024-03-10"))

        assert [r["product_id"] for r in rows] == [pricey.id, cheap.id]
        assert rows[0]["category"] == "Beverages"
        assert rows[0]["profit_cents"] == 7000
        assert rows[1]["category"] == "Uncategorized"
        assert rows[1]["quantity_sold"] == 5

    def test_sales_by_cashier(self, db_session, cashier_user, manager_user, make_product, sell):
        product = make_product(selling_price_cents=1000, cost_price_cents=600)
        sell(cashier_user, [(product, 1)], at=datetime(2024, 3, 10, 10))
        sell(manager_user, [(product, 2)], at=datetime(2024, 3, 10, 11))
        sell(manager_user, [(product, 1)], at=datetime(2024, 3, 10, 12))

        rows = reporting_service.sales_by_cashier(parse_date_range("2024-03-10", "2024-03-10"))

        assert [r["username"] for r in rows] == ["manager", "cashier"]
        assert rows[0]["transaction_count"] == 2
        assert rows[0]["total_sales_cents"] == 3000
        assert rows[0]["total_profit_cents"] == 1200
        assert rows[0]["role"] == "MANAGER"

    def test_payment_methods_nets_out_change(self, db_session, cashier_user, make_product, sell):
        product = make_product(selling_price_cents=1000)
        sell(cashier_user, [(product, 1)], at=datetime(2024, 3, 10, 10), cash_amount_cents=5000)
        sell(cashier_user, [(product, 3)], at=datetime(2024, 3, 10, 11), payment_method="card")

        report = reporting_service.payment_methods(parse_date_range("2024-03-10", "2024-03-10"))

        assert report["total_cents"] == 4000
        assert [r["payment_method"] for r in report["breakdown"]] == ["card", "cash"]
        assert report["breakdown"][0]["total_amount_cents"] == 3000
        assert report["breakdown"][0]["percentage"] == 75.0
        assert report["breakdown"][1]["total_amount_cents"] == 1000
        assert report["breakdown"][1]["percentage"] == 25.0

    def test_payment_methods_empty(self, db_session):
        report = reporting_service.payment_methods(parse_date_range("2024-03-10", "2024-03-10"))

        assert report == {"breakdown": [], "total_cents": 0}

    def test_profit_analysis(self, db_session, cashier_user, make_product, make_category, sell):
        snacks = make_category("Snacks")
        chips = make_product(selling_price_cents=1000, cost_price_cents=600, category=snacks)
        loose = make_product(selling_price_cents=500, cost_price_cents=500)
        sell(cashier_user, [(chips, 2), (loose, 2)], at=datetime(2024, 3, 10, 10))

        report = reporting_service.profit_analysis(parse_date_range("2024-03-10", "2024-03-10"))

        assert report["summary"] == {
            "total_revenue_cents": 3000,
            "total_cost_cents": 2200,
            "total_profit_cents": 800,
            "profit_margin": 26.67,
        }
        categories = report["category_breakdown"]
        assert [c["category"] for c in categories] == ["Snacks", "Uncategorized"]
        assert categories[0]["margin"] == 40.0
        assert categories[1]["margin"] == 0.0

    def test_profit_uses_current_cost(self, db_session, cashier_user, make_product, sell):
        product = make_product(selling_price_cents=1000, cost_price_cents=600)
        sell(cashier_user, [(product, 1)], at=datetime(2024, 3, 10, 10))
        product.cost_price_cents = 900
        db_session.commit()

        report = reporting_service.profit_analysis(parse_date_range("2024-03-10", "2024-03-10"))

        assert report["summary"]["total_profit_cents"] == 100
