# Overview: Service-layer operations for categories; unique names and guarded soft delete.

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..models import Category, Product, active_scope
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import resolve_session, unit_of_work


CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


def _active_product_count(session, category_id: int) -> int:
    return active_scope(
        session.query(sa.func.count(Product.id)).filter(Product.category_id == category_id),
        Product,
        include_inactive=False,
    ).scalar() or 0


def _check_unique_name(session, name: str, exclude_id: int | None = None) -> None:
    # Case-insensitive across active and inactive rows; the unique index covers both
    query = session.query(Category.id).filter(sa.func.lower(Category.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    if query.first():
        raise ConflictError("Category with this name already exists", details={"name": name})


def list_categories(session=None) -> list[dict]:
    """Active categories with the number of active products in each."""
    session = resolve_session(session)
    counts = dict(
        active_scope(
            session.query(Product.category_id, sa.func.count(Product.id)),
            Product,
            include_inactive=False,
        ).filter(Product.category_id.isnot(None)).group_by(Product.category_id).all()
    )
    categories = active_scope(session.query(Category), Category, include_inactive=False).order_by(
        Category.name.asc()
    ).all()
    result = []
    for category in categories:
        data = category.to_dict()
        data["product_count"] = counts.get(category.id, 0)
        result.append(data)
    return result


def get_category(category_id: int, session=None) -> Category:
    session = resolve_session(session)
    category = active_scope(
        session.query(Category).filter(Category.id == category_id),
        Category,
        include_inactive=False,
    ).first()
    if not category:
        raise NotFoundError("Category not found")
    return category


def category_with_products(category_id: int, session=None) -> dict:
    session = resolve_session(session)
    category = get_category(category_id, session=session)
    products = active_scope(
        session.query(Product).filter(Product.category_id == category.id),
        Product,
        include_inactive=False,
    ).order_by(Product.name.asc()).all()
    data = category.to_dict()
    data["products"] = [p.to_dict() for p in products]
    data["product_count"] = len(products)
    return data


def create_category(payload: dict, session=None) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    session = resolve_session(session)
    _check_unique_name(session, patch["name"])
    try:
        with unit_of_work(session):
            category = Category(is_active=True, **patch)
            session.add(category)
    except IntegrityError:
        raise ConflictError("Category with this name already exists")
    return category


def update_category(category_id: int, payload: dict, session=None) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    session = resolve_session(session)
    category = get_category(category_id, session=session)
    if "name" in patch:
        _check_unique_name(session, patch["name"], exclude_id=category.id)
    try:
        with unit_of_work(session):
            for key, value in patch.items():
                setattr(category, key, value)
    except IntegrityError:
        raise ConflictError("Category with this name already exists")
    return category


def delete_category(category_id: int, session=None) -> Category:
    """Soft delete; refused while active products still reference the category."""
    session = resolve_session(session)
    category = get_category(category_id, session=session)
    in_use = _active_product_count(session, category.id)
    if in_use:
        raise ConflictError(
            "Cannot delete category with active products",
            details={"product_count": in_use},
        )
    with unit_of_work(session):
        category.is_active = False
    return category
