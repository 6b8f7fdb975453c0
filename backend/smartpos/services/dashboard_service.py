# Overview: Dashboard read paths; narrow windows over the reporting aggregations.

from __future__ import annotations

import calendar
from datetime import datetime, timedelta

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.orm import joinedload, selectinload

from ..errors import ValidationError
from ..models import Product, Sale, SaleItem, active_scope
from ..time_utils import local_day_window, local_today, shop_zone, utcnow
from .concurrency import resolve_session
from .inventory_service import STATUS_LOW, STATUS_OUT, classify_stock
from .reporting_service import UNCATEGORIZED, item_profit_cents, load_sales, safe_average


PERIODS = ("today", "week", "month", "all")
MAX_LIMIT = 100
MAX_TREND_DAYS = 366


def _zone():
    return shop_zone(current_app.config.get("SHOP_TIMEZONE"))


def _positive_int(name: str, value, maximum: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return min(value, maximum)


def today_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Local midnight to next local midnight, as UTC-naive instants."""
    tz = _zone()
    return local_day_window(local_today(tz, now), tz)


def _one_month_before(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def period_start(period: str, now: datetime | None = None) -> datetime | None:
    now = now or utcnow()
    if period == "today":
        return today_window(now)[0]
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return _one_month_before(now)
    if period == "all":
        return None
    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


def stats(now: datetime | None = None, session=None) -> dict:
    session = resolve_session(session)
    start, end = today_window(now)
    todays = load_sales(start, end, session)

    today_total = sum(sale.total_cents for sale in todays)
    items_sold = sum(item.quantity for sale in todays for item in sale.items)
    profit = sum(item_profit_cents(item) for sale in todays for item in sale.items)

    products = active_scope(
        session.query(Product.stock_quantity, Product.reorder_level),
        Product,
        include_inactive=False,
    ).all()
    statuses = [classify_stock(qty, reorder) for qty, reorder in products]

    return {
        "today": {
            "sales_cents": today_total,
            "profit_cents": profit,
            "items_sold": items_sold,
            "transactions": len(todays),
        },
        "inventory": {
            "total_products": len(products),
            "low_stock": statuses.count(STATUS_LOW),
            "out_of_stock": statuses.count(STATUS_OUT),
        },
        "overall": {
            "total_sales": session.query(sa.func.count(Sale.id)).scalar() or 0,
        },
    }


def recent_sales(limit: int = 10, session=None) -> list[dict]:
    limit = _positive_int("limit", limit, MAX_LIMIT)
    session = resolve_session(session)
    sales = session.query(Sale).options(
        joinedload(Sale.user),
        selectinload(Sale.items).joinedload(SaleItem.product),
        selectinload(Sale.payments),
    ).order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
    return [sale.to_dict(include_items=True) for sale in sales]


def top_products(limit: int = 10, period: str = "all", now: datetime | None = None, session=None) -> list[dict]:
    """Best sellers by quantity within the period."""
    limit = _positive_int("limit", limit, MAX_LIMIT)
    start = period_start(period, now)
    session = resolve_session(session)

    query = session.query(SaleItem).options(
        joinedload(SaleItem.product).joinedload(Product.category),
    ).join(Sale, SaleItem.sale_id == Sale.id)
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if period == "today":
        query = query.filter(Sale.created_at < today_window(now)[1])

    rows: dict[int, dict] = {}
    for item in query.all():
        product = item.product
        row = rows.setdefault(item.product_id, {
            "product_id": item.product_id,
            "product_name": product.name if product else None,
            "barcode": product.barcode if product else None,
            "selling_price_cents": product.selling_price_cents if product else None,
            "category": product.category.name if product and product.category else UNCATEGORIZED,
            "total_quantity": 0,
            "total_revenue_cents": 0,
        })
        row["total_quantity"] += item.quantity
        row["total_revenue_cents"] += item.total_cents

    ranked = sorted(rows.values(), key=lambda r: (-r["total_quantity"], r["product_id"]))
    return ranked[:limit]


def sales_trend(days: int = 7, now: datetime | None = None, session=None) -> list[dict]:
    """One row per shop-local day, oldest first, ending today."""
    days = _positive_int("days", days, MAX_TREND_DAYS)
    session = resolve_session(session)
    tz = _zone()
    today = local_today(tz, now)

    first_day = today - timedelta(days=days - 1)
    range_start, _ = local_day_window(first_day, tz)
    _, range_end = local_day_window(today, tz)

    created = session.query(Sale.created_at, Sale.total_cents).filter(
        Sale.created_at >= range_start,
        Sale.created_at < range_end,
    ).all()

    result = []
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        start, end = local_day_window(day, tz)
        totals = [total for created_at, total in created if start <= created_at < end]
        total = sum(totals)
        result.append({
            "date": day.isoformat(),
            "total_cents": total,
            "count": len(totals),
            "average_cents": safe_average(total, len(totals)),
        })
    return result
