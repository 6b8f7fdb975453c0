# Overview: Service-layer operations for inventory; stock movements and derived stock status.

"""
Inventory Invariants (authoritative)

Stock model:
- Product.stock_quantity is a stored counter. It changes ONLY through
  record_movement (manual IN/OUT) and the sale path (SALE).
- Every change appends exactly one StockMovement row in the same transaction.
- StockMovement.quantity is signed: IN positive, OUT and SALE negative.

Business invariants:
- Stock may never go negative. OUT and SALE use a relative conditional
  UPDATE guarded by stock_quantity >= q; a short count is rejected with
  InsufficientStockError, never clamped.
- The movement ledger is append-only (no updates/deletes).

Status:
- out:  stock_quantity <= 0
- low:  0 < stock_quantity <= reorder_level
- ok:   otherwise
"""

from __future__ import annotations

import sqlalchemy as sa
from flask import current_app

from ..errors import InsufficientStockError, NotFoundError, ValidationError
from ..models import Product, StockMovement, active_scope
from ..models.inventory import MOVEMENT_IN, MOVEMENT_OUT
from ..time_utils import utcnow
from .concurrency import lock_for_update, resolve_session, unit_of_work


STATUS_OUT = "out"
STATUS_LOW = "low"
STATUS_OK = "ok"

MANUAL_MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT)
DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 500


def classify_stock(quantity: int, reorder_level: int) -> str:
    if quantity <= 0:
        return STATUS_OUT
    if quantity <= reorder_level:
        return STATUS_LOW
    return STATUS_OK


def _active_product(session, product_id: int) -> Product:
    query = active_scope(
        session.query(Product).filter(Product.id == product_id),
        Product,
        include_inactive=False,
    )
    product = lock_for_update(query).first()
    if not product:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return product


def _current_quantity(session, product_id: int) -> int:
    return session.query(Product.stock_quantity).filter(Product.id == product_id).scalar()


def decrement_stock(session, product_id: int, quantity: int) -> int:
    """
    Relative conditional decrement. Returns the new stock quantity.

    Zero affected rows means the product vanished or was deactivated
    (NotFoundError) or stock fell short concurrently (InsufficientStockError).
    """
    result = session.execute(
        sa.update(Product)
        .where(
            Product.id == product_id,
            Product.is_active.is_(True),
            Product.stock_quantity >= quantity,
        )
        .values(stock_quantity=Product.stock_quantity - quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        exists = session.query(Product.id).filter(
            Product.id == product_id,
            Product.is_active.is_(True),
        ).first()
        if exists is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})
        raise InsufficientStockError(details={
            "product_id": product_id,
            "requested_quantity": quantity,
            "on_hand": _current_quantity(session, product_id),
        })

    return _current_quantity(session, product_id)


def increment_stock(session, product_id: int, quantity: int) -> int:
    result = session.execute(
        sa.update(Product)
        .where(Product.id == product_id, Product.is_active.is_(True))
        .values(stock_quantity=Product.stock_quantity + quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        raise NotFoundError("Product not found", details={"product_id": product_id})
    return _current_quantity(session, product_id)


def _validate_movement(movement_type, quantity) -> str:
    movement_type = (movement_type or "").strip().upper() if isinstance(movement_type, str) else None
    if movement_type not in MANUAL_MOVEMENT_TYPES:
        raise ValidationError("type must be IN or OUT")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer")
    return movement_type


def record_movement(
    product_id: int,
    movement_type: str,
    quantity: int,
    *,
    user_id: int | None,
    reason: str | None = None,
    reference: str | None = None,
    session=None,
) -> tuple[Product, StockMovement]:
    """
    Apply a manual IN/OUT adjustment and append its audit row atomically.

    OUT with quantity > stock raises InsufficientStockError and leaves stock unchanged.
    """
    movement_type = _validate_movement(movement_type, quantity)
    session = resolve_session(session)

    with unit_of_work(session):
        product = _active_product(session, product_id)
        if movement_type == MOVEMENT_OUT and quantity > product.stock_quantity:
            raise InsufficientStockError(details={
                "product_id": product_id,
                "requested_quantity": quantity,
                "on_hand": product.stock_quantity,
            })

        if movement_type == MOVEMENT_IN:
            balance = increment_stock(session, product_id, quantity)
            signed = quantity
        else:
            balance = decrement_stock(session, product_id, quantity)
            signed = -quantity

        movement = StockMovement(
            product_id=product_id,
            user_id=user_id,
            type=movement_type,
            quantity=signed,
            balance_after=balance,
            reason=(reason or "").strip() or f"Manual Stock {movement_type}",
            reference=(reference or "").strip() or None,
            created_at=utcnow(),
        )
        session.add(movement)

    current_app.logger.info(
        "Stock %s of %s for product %s by user %s (balance %s)",
        movement_type, quantity, product_id, user_id, balance,
    )
    return product, movement


def record_initial_stock(session, product: Product, quantity: int, *, user_id: int | None) -> StockMovement | None:
    """
    Opening stock for a freshly created product.

    Runs inside the caller's unit of work; the product row already carries
    the quantity, so only the audit row is written here.
    """
    if not quantity:
        return None
    movement = StockMovement(
        product=product,
        user_id=user_id,
        type=MOVEMENT_IN,
        quantity=quantity,
        balance_after=quantity,
        reason="Initial stock",
        created_at=utcnow(),
    )
    session.add(movement)
    return movement


def inventory_summary(session=None) -> dict:
    """Stock status counts, stock value and per-product rows (lowest stock first)."""
    session = resolve_session(session)
    products = active_scope(session.query(Product), Product, include_inactive=False).order_by(
        Product.stock_quantity.asc(), Product.name.asc()
    ).all()

    counts = {STATUS_OUT: 0, STATUS_LOW: 0, STATUS_OK: 0}
    total_value = 0
    rows = []
    for product in products:
        status = classify_stock(product.stock_quantity, product.reorder_level)
        counts[status] += 1
        value = product.stock_quantity * product.selling_price_cents
        total_value += value
        rows.append({
            "id": product.id,
            "name": product.name,
            "barcode": product.barcode,
            "sku": product.sku,
            "category": product.category.name if product.category else None,
            "stock_quantity": product.stock_quantity,
            "reorder_level": product.reorder_level,
            "selling_price_cents": product.selling_price_cents,
            "stock_value_cents": value,
            "status": status,
        })

    return {
        "total_products": len(products),
        "out_of_stock": counts[STATUS_OUT],
        "low_stock": counts[STATUS_LOW],
        "ok": counts[STATUS_OK],
        "total_value_cents": total_value,
        "products": rows,
    }


class MovementHistory:
    """
    Newest-first movements for one product, capped at `limit`.

    Nothing is loaded until iteration; every iteration runs a fresh query,
    so the sequence can be walked more than once and reflects new rows.
    """

    def __init__(self, session, product_id: int, limit: int):
        self._session = session
        self.product_id = product_id
        self.limit = limit

    def _query(self):
        return self._session.query(StockMovement).filter(
            StockMovement.product_id == self.product_id,
        ).order_by(StockMovement.created_at.desc(), StockMovement.id.desc()).limit(self.limit)

    def __iter__(self):
        return iter(self._query().all())

    def to_list(self) -> list[dict]:
        return [movement.to_dict() for movement in self]


def movement_history(product_id: int, limit: int = DEFAULT_HISTORY_LIMIT, session=None) -> MovementHistory:
    if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
        raise ValidationError("limit must be a positive integer")
    session = resolve_session(session)

    # Soft-deleted products keep their ledger visible
    product = active_scope(
        session.query(Product).filter(Product.id == product_id),
        Product,
        include_inactive=True,
    ).first()
    if not product:
        raise NotFoundError("Product not found")
    return MovementHistory(session, product_id, min(limit, MAX_HISTORY_LIMIT))
