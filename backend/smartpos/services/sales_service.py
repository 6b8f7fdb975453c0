"""
Sales Service - cart in, durable sale record out

WHY: A sale is one atomic unit. The Sale row, its SaleItems (price
snapshots), one Payment, the stock decrement for every line and one SALE
StockMovement per line are written in a single transaction. Any failure
rolls everything back; no partial sale or partial stock decrement is ever
observable.

MONEY: all amounts are integer cents, rates are basis points (500 = 5%).
Percentage math rounds half-up to the nearest cent.

OVERSELL GUARD: stock is decremented with a relative conditional UPDATE
(stock_quantity = stock_quantity - q WHERE stock_quantity >= q). Two
concurrent sales can never both consume the last unit; the loser sees zero
affected rows and the whole sale rolls back.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import sqlalchemy as sa
from flask import current_app
from sqlalchemy.orm import joinedload

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Payment, Product, Sale, SaleItem, StockMovement
from ..models.inventory import MOVEMENT_SALE
from ..models.sales import DISCOUNT_FIXED, DISCOUNT_PERCENTAGE
from ..time_utils import local_day_window, local_today, shop_zone, utcnow
from .concurrency import resolve_session, run_with_retry, unit_of_work
from .inventory_service import decrement_stock
from .settings_service import get_settings, tax_config


PAYMENT_CASH = "cash"
PAYMENT_METHODS = ("cash", "card", "mobile")

PRICE_POLICY_VERIFY = "verify"
PRICE_POLICY_TRUST = "trust"

BPS_DENOMINATOR = 10_000
MAX_LIST_LIMIT = 500


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    unit_price_cents: int | None = None
    discount_cents: int = 0

    @property
    def gross_cents(self) -> int:
        return (self.unit_price_cents or 0) * self.quantity

    @property
    def total_cents(self) -> int:
        return self.gross_cents - self.discount_cents


@dataclass(frozen=True)
class Discount:
    """Cart-level discount; value is basis points for percentage, cents for fixed."""
    type: str
    value: int


@dataclass(frozen=True)
class Cart:
    lines: list[CartLine]
    discount: Discount | None = None
    payment_method: str = PAYMENT_CASH
    cash_amount_cents: int | None = None
    subtotal_cents: int | None = None
    total_cents: int | None = None


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    discount_cents: int
    tax_rate_bps: int
    tax_cents: int
    total_cents: int


@dataclass
class SaleResult:
    sale: Sale
    sale_info: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"sale": self.sale.to_dict(include_items=True), "sale_info": self.sale_info}


def apply_bps(amount_cents: int, bps: int) -> int:
    """amount x bps / 10000, rounded half-up to whole cents."""
    return (amount_cents * bps + BPS_DENOMINATOR // 2) // BPS_DENOMINATOR


def percent_to_bps(value) -> int:
    """
    Convert a request percentage (10 or 12.5) to basis points.

    Fractions of a basis point round half-up; 0 to 100 inclusive.
    """
    if value is None:
        raise ValidationError("discount.value is required")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("discount.value must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError("discount.value must be a number")
    if value < 0:
        raise ValidationError("discount.value must be >= 0")
    if value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%")
    bps = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(bps)


def _int_field(raw: dict, key: str, *, required: bool = True, minimum: int | None = None):
    value = raw.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if minimum is not None and value < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    return value


def parse_cart(payload: dict) -> Cart:
    """
    Turn a request body into a Cart.

    Body shape:
        {
          "items": [{"product_id", "quantity", "unit_price_cents", "discount_cents"?}],
          "discount"?: {"type": "percentage"|"fixed", "value"},
          "payment_method"?: "cash"|"card"|"mobile",
          "cash_amount_cents"?, "subtotal_cents"?, "total_cents"?
        }

    Percentage discount values are percents (10 means 10%) and are stored as
    basis points; fixed values are cents.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("Cart is empty")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object")
        try:
            line = CartLine(
                product_id=_int_field(raw, "product_id"),
                quantity=_int_field(raw, "quantity", minimum=1),
                unit_price_cents=_int_field(raw, "unit_price_cents", required=False, minimum=0),
                discount_cents=_int_field(raw, "discount_cents", required=False, minimum=0) or 0,
            )
        except ValidationError as exc:
            raise ValidationError(f"items[{index}]: {exc.message}")
        lines.append(line)

    discount = None
    raw_discount = payload.get("discount")
    if raw_discount is not None:
        if not isinstance(raw_discount, dict):
            raise ValidationError("discount must be an object")
        discount_type = raw_discount.get("type")
        if discount_type == DISCOUNT_PERCENTAGE:
            discount = Discount(type=discount_type, value=percent_to_bps(raw_discount.get("value")))
        elif discount_type == DISCOUNT_FIXED:
            discount = Discount(type=discount_type, value=_int_field(raw_discount, "value", minimum=0))
        else:
            raise ValidationError("discount.type must be 'percentage' or 'fixed'")

    payment_method = (payload.get("payment_method") or PAYMENT_CASH)
    if not isinstance(payment_method, str) or payment_method.strip().lower() not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    return Cart(
        lines=lines,
        discount=discount,
        payment_method=payment_method.strip().lower(),
        cash_amount_cents=_int_field(payload, "cash_amount_cents", required=False, minimum=0),
        subtotal_cents=_int_field(payload, "subtotal_cents", required=False),
        total_cents=_int_field(payload, "total_cents", required=False),
    )


def compute_sale_totals(lines, discount: Discount | None, tax_rate_bps: int) -> SaleTotals:
    """
    Pure totals computation.

    subtotal = sum(unit_price x quantity - item discount)
    discount = subtotal x bps / 10000 (percentage) or the fixed cents value
    tax      = (subtotal - discount) x tax_rate_bps / 10000
    total    = subtotal - discount + tax, must be > 0
    """
    if not lines:
        raise ValidationError("Cart is empty")

    subtotal = 0
    for line in lines:
        if line.quantity <= 0:
            raise ValidationError("quantity must be a positive integer")
        if line.unit_price_cents is None or line.unit_price_cents < 0:
            raise ValidationError("unit_price_cents must be >= 0")
        if line.discount_cents < 0 or line.discount_cents > line.gross_cents:
            raise ValidationError(
                "Item discount exceeds line amount",
                details={"product_id": line.product_id},
            )
        subtotal += line.total_cents

    discount_cents = 0
    if discount is not None:
        if discount.value < 0:
            raise ValidationError("discount.value must be >= 0")
        if discount.type == DISCOUNT_PERCENTAGE:
            if discount.value > BPS_DENOMINATOR:
                raise ValidationError("Percentage discount cannot exceed 100%")
            discount_cents = apply_bps(subtotal, discount.value)
        elif discount.type == DISCOUNT_FIXED:
            if discount.value > subtotal:
                raise ValidationError(
                    "Fixed discount exceeds subtotal",
                    details={"subtotal_cents": subtotal, "discount_cents": discount.value},
                )
            discount_cents = discount.value
        else:
            raise ValidationError("discount.type must be 'percentage' or 'fixed'")

    taxable = subtotal - discount_cents
    tax_cents = apply_bps(taxable, tax_rate_bps) if tax_rate_bps else 0
    total = taxable + tax_cents

    if total <= 0:
        raise ValidationError("Sale total must be greater than zero")

    return SaleTotals(
        subtotal_cents=subtotal,
        discount_cents=discount_cents,
        tax_rate_bps=tax_rate_bps,
        tax_cents=tax_cents,
        total_cents=total,
    )


def _load_products(session, lines: list[CartLine]) -> dict[int, Product]:
    product_ids = {line.product_id for line in lines}
    products = session.query(Product).filter(
        Product.id.in_(product_ids),
        Product.is_active.is_(True),
    ).all()
    found = {p.id: p for p in products}
    missing = sorted(product_ids - set(found))
    if missing:
        raise NotFoundError("Product not found", details={"product_ids": missing})
    return found


def _price_lines(lines: list[CartLine], products: dict[int, Product], policy: str) -> list[CartLine]:
    if policy == PRICE_POLICY_TRUST:
        for line in lines:
            if line.unit_price_cents is None:
                raise ValidationError("unit_price_cents is required", details={"product_id": line.product_id})
        return lines

    priced = []
    mismatched = []
    for line in lines:
        current = products[line.product_id].selling_price_cents
        if line.unit_price_cents is not None and line.unit_price_cents != current:
            mismatched.append({
                "product_id": line.product_id,
                "submitted_cents": line.unit_price_cents,
                "current_cents": current,
            })
        priced.append(CartLine(
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=current,
            discount_cents=line.discount_cents,
        ))
    if mismatched:
        raise ValidationError("Submitted price does not match current price", details={"items": mismatched})
    return priced


def _validate_on_hand(lines: list[CartLine], products: dict[int, Product]) -> None:
    product_totals: dict[int, int] = {}
    for line in lines:
        product_totals[line.product_id] = product_totals.get(line.product_id, 0) + line.quantity

    insufficient = []
    for product_id, qty in product_totals.items():
        on_hand = products[product_id].stock_quantity
        if on_hand < qty:
            insufficient.append({
                "product_id": product_id,
                "product_name": products[product_id].name,
                "requested_quantity": qty,
                "on_hand": on_hand,
            })

    if insufficient:
        raise InsufficientStockError("Insufficient stock to complete sale", details={"items": insufficient})


def _payment_reference(method: str, now: datetime) -> str | None:
    if method == PAYMENT_CASH:
        return None
    return f"{method}-{int(now.replace(tzinfo=timezone.utc).timestamp() * 1000)}"


def _resolve_payment(cart: Cart, total_cents: int) -> tuple[int, int]:
    """(amount tendered, change) for the single payment row."""
    if cart.payment_method != PAYMENT_CASH:
        return total_cents, 0
    tendered = cart.cash_amount_cents if cart.cash_amount_cents is not None else total_cents
    if tendered < total_cents:
        raise ValidationError(
            "Cash amount is less than sale total",
            details={"total_cents": total_cents, "cash_amount_cents": tendered},
        )
    return tendered, tendered - total_cents


def _sale_info(totals: SaleTotals, settings, paid_cents: int, change_cents: int, cart: Cart) -> dict:
    return {
        "subtotal_cents": totals.subtotal_cents,
        "discount_type": cart.discount.type if cart.discount else None,
        "discount_value": cart.discount.value if cart.discount else None,
        "discount_cents": totals.discount_cents,
        "tax_enabled": totals.tax_rate_bps > 0,
        "tax_label": settings.tax_label,
        "tax_rate_bps": totals.tax_rate_bps,
        "tax_cents": totals.tax_cents,
        "total_cents": totals.total_cents,
        "paid_cents": paid_cents,
        "change_cents": change_cents,
        "payment_method": cart.payment_method,
        "currency": settings.currency,
        "currency_symbol": settings.currency_symbol,
        "shop_name": settings.shop_name,
        "receipt_header": settings.receipt_header,
        "receipt_footer": settings.receipt_footer,
    }


def create_sale(cart: Cart, *, user_id: int, session=None) -> SaleResult:
    """
    Validate a cart and persist it as one atomic sale.

    Raises ValidationError, NotFoundError or InsufficientStockError before
    anything is written; transient transaction conflicts are retried up to
    SALE_RETRY_ATTEMPTS times.
    """
    db_session = resolve_session(session)
    attempts = current_app.config.get("SALE_RETRY_ATTEMPTS", 2)

    def _op() -> SaleResult:
        return _create_sale_once(cart, user_id=user_id, session=db_session)

    return run_with_retry(_op, attempts=attempts, session=db_session)


def _create_sale_once(cart: Cart, *, user_id: int, session) -> SaleResult:
    if not cart.lines:
        raise ValidationError("Cart is empty")

    settings = get_settings(session)
    tax_rate_bps = tax_config(session).effective_rate_bps
    policy = current_app.config.get("SALE_PRICE_POLICY", PRICE_POLICY_VERIFY)

    products = _load_products(session, cart.lines)
    lines = _price_lines(cart.lines, products, policy)
    totals = compute_sale_totals(lines, cart.discount, tax_rate_bps)

    if policy == PRICE_POLICY_VERIFY:
        mismatch = {}
        if cart.subtotal_cents is not None and cart.subtotal_cents != totals.subtotal_cents:
            mismatch["subtotal_cents"] = totals.subtotal_cents
        if cart.total_cents is not None and cart.total_cents != totals.total_cents:
            mismatch["total_cents"] = totals.total_cents
        if mismatch:
            raise ValidationError("Submitted totals do not match computed totals", details=mismatch)

    _validate_on_hand(lines, products)
    paid_cents, change_cents = _resolve_payment(cart, totals.total_cents)

    now = utcnow()
    with unit_of_work(session):
        sale = Sale(
            user_id=user_id,
            subtotal_cents=totals.subtotal_cents,
            discount_type=cart.discount.type if cart.discount else None,
            discount_value=cart.discount.value if cart.discount else None,
            discount_cents=totals.discount_cents,
            tax_rate_bps=totals.tax_rate_bps,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            created_at=now,
        )
        session.add(sale)
        session.flush()

        for line in lines:
            session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                quantity=line.quantity,
                unit_price_cents=line.unit_price_cents,
                discount_cents=line.discount_cents,
                total_cents=line.total_cents,
            ))

        session.add(Payment(
            sale_id=sale.id,
            amount_cents=paid_cents,
            change_cents=change_cents,
            payment_method=cart.payment_method,
            reference=_payment_reference(cart.payment_method, now),
            created_at=now,
        ))

        for line in lines:
            balance = decrement_stock(session, line.product_id, line.quantity)
            session.add(StockMovement(
                product_id=line.product_id,
                user_id=user_id,
                type=MOVEMENT_SALE,
                quantity=-line.quantity,
                balance_after=balance,
                reason=f"Sale #{sale.id}",
                sale_id=sale.id,
                created_at=now,
            ))

    current_app.logger.info(
        "Sale #%s completed by user %s: %s line(s), total %s cents via %s",
        sale.id, user_id, len(lines), totals.total_cents, cart.payment_method,
    )
    return SaleResult(sale=sale, sale_info=_sale_info(totals, settings, paid_cents, change_cents, cart))


def get_sale(sale_id: int, session=None) -> Sale:
    session = resolve_session(session)
    sale = session.query(Sale).options(
        joinedload(Sale.user),
    ).filter(Sale.id == sale_id).first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def list_sales(
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
    session=None,
) -> list[Sale]:
    """Sales newest first, optionally within [start, end)."""
    session = resolve_session(session)
    if limit is None or limit <= 0:
        raise ValidationError("limit must be a positive integer")
    limit = min(limit, MAX_LIST_LIMIT)

    query = session.query(Sale).options(joinedload(Sale.user))
    if start is not None:
        query = query.filter(Sale.created_at >= start)
    if end is not None:
        query = query.filter(Sale.created_at < end)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def daily_summary(now: datetime | None = None, session=None) -> dict:
    """Today's (shop-local) sales total, transaction count and items sold."""
    session = resolve_session(session)
    tz = shop_zone(current_app.config.get("SHOP_TIMEZONE"))
    day = local_today(tz, now)
    start, end = local_day_window(day, tz)

    total_cents, count = session.query(
        sa.func.coalesce(sa.func.sum(Sale.total_cents), 0),
        sa.func.count(Sale.id),
    ).filter(Sale.created_at >= start, Sale.created_at < end).one()

    items_sold = session.query(
        sa.func.coalesce(sa.func.sum(SaleItem.quantity), 0),
    ).join(Sale, SaleItem.sale_id == Sale.id).filter(
        Sale.created_at >= start, Sale.created_at < end,
    ).scalar()

    return {
        "date": day.isoformat(),
        "total_sales_cents": int(total_cents or 0),
        "total_transactions": int(count or 0),
        "items_sold": int(items_sold or 0),
    }
