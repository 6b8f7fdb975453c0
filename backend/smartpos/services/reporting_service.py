# Overview: Read-only aggregation over sales, items and payments for a shop-local date range.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from flask import current_app
from sqlalchemy.orm import joinedload, selectinload

from ..errors import ValidationError
from ..models import Product, Sale, SaleItem
from ..time_utils import inclusive_date_range, parse_iso_date, shop_zone
from .concurrency import resolve_session


UNCATEGORIZED = "Uncategorized"


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: date
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()}


def parse_date_range(start: str | None, end: str | None, tz_name: str | None = None) -> DateRange:
    """
    Inclusive [start 00:00, end 23:59:59.999999] in shop-local time.

    The returned start/end pair is a half-open UTC-naive window.
    """
    if not start or not end:
        raise ValidationError("start_date and end_date are required")
    try:
        start_date = parse_iso_date(start)
        end_date = parse_iso_date(end)
    except ValueError:
        raise ValidationError("Dates must be formatted YYYY-MM-DD")
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")

    if tz_name is None:
        tz_name = current_app.config.get("SHOP_TIMEZONE")
    start_dt, end_dt = inclusive_date_range(start_date, end_date, shop_zone(tz_name))
    return DateRange(start_date=start_date, end_date=end_date, start=start_dt, end=end_dt)


def safe_percentage(part, whole) -> float:
    """part / whole x 100 rounded to 2 places; 0 when whole is 0."""
    if not whole:
        return 0.0
    return round(part * 100.0 / whole, 2)


def safe_average(total: int, count: int) -> int:
    """Integer mean rounded half-up; 0 when count is 0."""
    if not count:
        return 0
    return (total + count // 2) // count


def item_cost_cents(item: SaleItem) -> int:
    cost = item.product.cost_price_cents if item.product else 0
    return (cost or 0) * item.quantity


def item_profit_cents(item: SaleItem) -> int:
    return item.total_cents - item_cost_cents(item)


def load_sales(start: datetime, end: datetime, session=None) -> list[Sale]:
    """Sales in [start, end) with items, products, categories, cashier and payments loaded."""
    session = resolve_session(session)
    return session.query(Sale).options(
        joinedload(Sale.user),
        selectinload(Sale.items).joinedload(SaleItem.product).joinedload(Product.category),
        selectinload(Sale.payments),
    ).filter(
        Sale.created_at >= start,
        Sale.created_at < end,
    ).order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def summarize_sales(sales: list[Sale]) -> dict:
    total_sales = 0
    total_profit = 0
    items_sold = 0
    for sale in sales:
        total_sales += sale.total_cents
        for item in sale.items:
            items_sold += item.quantity
            total_profit += item_profit_cents(item)

    return {
        "total_sales_cents": total_sales,
        "total_transactions": len(sales),
        "total_profit_cents": total_profit,
        "total_items_sold": items_sold,
        "average_transaction_cents": safe_average(total_sales, len(sales)),
    }


def sales_summary(date_range: DateRange, session=None) -> dict:
    sales = load_sales(date_range.start, date_range.end, session)
    return {
        "range": date_range.to_dict(),
        "summary": summarize_sales(sales),
        "sales": [sale.to_dict(include_items=True) for sale in sales],
    }


def product_rows(sales: list[Sale]) -> list[dict]:
    rows: dict[int, dict] = {}
    for sale in sales:
        for item in sale.items:
            product = item.product
            row = rows.get(item.product_id)
            if row is None:
                row = rows[item.product_id] = {
                    "product_id": item.product_id,
                    "product_name": product.name if product else None,
                    "barcode": product.barcode if product else None,
                    "category": product.category.name if product and product.category else UNCATEGORIZED,
                    "cost_price_cents": product.cost_price_cents if product else 0,
                    "quantity_sold": 0,
                    "revenue_cents": 0,
                    "profit_cents": 0,
                }
            row["quantity_sold"] += item.quantity
            row["revenue_cents"] += item.total_cents
            row["profit_cents"] += item_profit_cents(item)
    return list(rows.values())


def sales_by_product(date_range: DateRange, session=None) -> list[dict]:
    sales = load_sales(date_range.start, date_range.end, session)
    rows = product_rows(sales)
    rows.sort(key=lambda r: (-r["revenue_cents"], r["product_id"]))
    return rows


def sales_by_cashier(date_range: DateRange, session=None) -> list[dict]:
    sales = load_sales(date_range.start, date_range.end, session)
    rows: dict[int, dict] = {}
    for sale in sales:
        row = rows.get(sale.user_id)
        if row is None:
            user = sale.user
            row = rows[sale.user_id] = {
                "user_id": sale.user_id,
                "full_name": user.full_name if user else None,
                "username": user.username if user else None,
                "role": user.role.value if user and user.role else None,
                "transaction_count": 0,
                "total_sales_cents": 0,
                "total_profit_cents": 0,
            }
        row["transaction_count"] += 1
        row["total_sales_cents"] += sale.total_cents
        row["total_profit_cents"] += sum(item_profit_cents(item) for item in sale.items)

    result = list(rows.values())
    result.sort(key=lambda r: (-r["total_sales_cents"], r["user_id"]))
    return result


def payment_methods(date_range: DateRange, session=None) -> dict:
    """
    Grouped by payment method, amount desc.

    Amounts are what the sale was worth (amount tendered minus change), so
    cash overpayment does not inflate the breakdown.
    """
    sales = load_sales(date_range.start, date_range.end, session)
    groups: dict[str, dict] = {}
    grand_total = 0
    for sale in sales:
        for payment in sale.payments:
            amount = payment.amount_cents - (payment.change_cents or 0)
            row = groups.setdefault(payment.payment_method, {
                "payment_method": payment.payment_method,
                "count": 0,
                "total_amount_cents": 0,
            })
            row["count"] += 1
            row["total_amount_cents"] += amount
            grand_total += amount

    breakdown = sorted(groups.values(), key=lambda r: (-r["total_amount_cents"], r["payment_method"]))
    for row in breakdown:
        row["percentage"] = safe_percentage(row["total_amount_cents"], grand_total)
    return {"breakdown": breakdown, "total_cents": grand_total}


def profit_analysis(date_range: DateRange, session=None) -> dict:
    sales = load_sales(date_range.start, date_range.end, session)
    categories: dict[str, dict] = {}
    revenue = 0
    cost = 0
    for sale in sales:
        for item in sale.items:
            product = item.product
            name = product.category.name if product and product.category else UNCATEGORIZED
            row = categories.setdefault(name, {
                "category": name,
                "revenue_cents": 0,
                "cost_cents": 0,
                "profit_cents": 0,
            })
            item_cost = item_cost_cents(item)
            row["revenue_cents"] += item.total_cents
            row["cost_cents"] += item_cost
            row["profit_cents"] += item.total_cents - item_cost
            revenue += item.total_cents
            cost += item_cost

    breakdown = sorted(categories.values(), key=lambda r: (-r["profit_cents"], r["category"]))
    for row in breakdown:
        row["margin"] = safe_percentage(row["profit_cents"], row["revenue_cents"])

    return {
        "summary": {
            "total_revenue_cents": revenue,
            "total_cost_cents": cost,
            "total_profit_cents": revenue - cost,
            "profit_margin": safe_percentage(revenue - cost, revenue),
        },
        "category_breakdown": breakdown,
    }
