# backend/smartpos/services/products_service.py
"""
Products Service

Products are soft-deleted (is_active=False) and never hard-deleted, so sale
lines and stock movements keep their product reference.

STOCK: stock_quantity is only writable at creation (opening stock, recorded
as an IN movement). After that it changes through inventory movements and
sales only.
"""
from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import Category, Product, Supplier, active_scope
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload
from .concurrency import resolve_session, unit_of_work
from .inventory_service import record_initial_stock
from .settings_service import get_settings


PRODUCT_MUTABLE_FIELDS = {
    "name",
    "sku",
    "barcode",
    "description",
    "cost_price_cents",
    "selling_price_cents",
    "reorder_level",
    "category_id",
    "supplier_id",
}

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
    required_on_create={"name", "selling_price_cents"},
    extra_fields={"stock_quantity": int},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_MUTABLE_FIELDS,
)

MAX_SEARCH_RESULTS = 50


def _check_references(session, patch: dict) -> None:
    category_id = patch.get("category_id")
    if category_id is not None:
        category = active_scope(
            session.query(Category).filter(Category.id == category_id),
            Category,
            include_inactive=False,
        ).first()
        if not category:
            raise ValidationError("Category not found", details={"category_id": category_id})

    supplier_id = patch.get("supplier_id")
    if supplier_id is not None:
        supplier = active_scope(
            session.query(Supplier).filter(Supplier.id == supplier_id),
            Supplier,
            include_inactive=False,
        ).first()
        if not supplier:
            raise ValidationError("Supplier not found", details={"supplier_id": supplier_id})


def _check_identifiers(session, patch: dict, exclude_id: int | None = None) -> None:
    """Friendly conflict before the unique index has to reject it."""
    for key in ("sku", "barcode"):
        value = patch.get(key)
        if value is None:
            continue
        query = session.query(Product.id).filter(getattr(Product, key) == value)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ConflictError(f"A product with this {key} already exists", details={key: value})


def list_products(*, include_inactive: bool, category_id: int | None = None, session=None) -> list[Product]:
    session = resolve_session(session)
    query = active_scope(session.query(Product), Product, include_inactive=include_inactive)
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int, *, include_inactive: bool = False, session=None) -> Product:
    session = resolve_session(session)
    product = active_scope(
        session.query(Product).filter(Product.id == product_id),
        Product,
        include_inactive=include_inactive,
    ).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def search_products(term: str | None, limit: int = MAX_SEARCH_RESULTS, session=None) -> list[Product]:
    """Case-insensitive match on name, barcode or sku; active products only."""
    term = (term or "").strip()
    if not term:
        return []
    session = resolve_session(session)
    pattern = f"%{term.lower()}%"
    query = active_scope(session.query(Product), Product, include_inactive=False).filter(
        sa.or_(
            sa.func.lower(Product.name).like(pattern),
            sa.func.lower(Product.barcode).like(pattern),
            sa.func.lower(Product.sku).like(pattern),
        )
    )
    return query.order_by(Product.name.asc()).limit(min(max(limit, 1), MAX_SEARCH_RESULTS)).all()


def create_product(payload: dict, *, user_id: int | None, session=None) -> Product:
    """
    Create product; opening stock is recorded as an IN movement in the same transaction.

    reorder_level defaults to the shop's low-stock threshold.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
    enforce_rules_product(patch)
    session = resolve_session(session)

    _check_references(session, patch)
    _check_identifiers(session, patch)

    opening_stock = patch.pop("stock_quantity", None) or 0
    if patch.get("reorder_level") is None:
        patch["reorder_level"] = get_settings(session).low_stock_threshold
    if patch.get("cost_price_cents") is None:
        patch["cost_price_cents"] = 0

    try:
        with unit_of_work(session):
            product = Product(stock_quantity=opening_stock, is_active=True, **patch)
            session.add(product)
            session.flush()
            record_initial_stock(session, product, opening_stock, user_id=user_id)
    except IntegrityError:
        raise ConflictError("A product with this sku or barcode already exists")
    return product


def update_product(product_id: int, payload: dict, session=None) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
    enforce_rules_product(patch)
    session = resolve_session(session)

    product = get_product(product_id, session=session)
    _check_references(session, patch)
    _check_identifiers(session, patch, exclude_id=product.id)

    try:
        with unit_of_work(session):
            for key, value in patch.items():
                setattr(product, key, value)
    except IntegrityError:
        raise ConflictError("A product with this sku or barcode already exists")
    return product


def delete_product(product_id: int, session=None) -> Product:
    """Soft delete."""
    session = resolve_session(session)
    product = get_product(product_id, session=session)
    with unit_of_work(session):
        product.is_active = False
    return product
