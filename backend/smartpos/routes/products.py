# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS
- Write operations require MANAGE_PRODUCTS (admin, manager)
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_capability
from ..errors import PosError, error_response, ok
from ..permissions import Capability, has_capability
from ..services import products_service
from . import bool_arg, int_arg, internal_error, json_body


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_capability(Capability.VIEW_PRODUCTS)
def list_products():
    """
    Query params:
    - category_id: int (optional)
    - include_inactive: bool (optional, MANAGE_PRODUCTS only)
    """
    try:
        include_inactive = bool_arg("include_inactive") and has_capability(
            g.session_context.role, Capability.MANAGE_PRODUCTS
        )
        products = products_service.list_products(
            include_inactive=include_inactive,
            category_id=int_arg("category_id"),
        )
        return ok([p.to_dict() for p in products], count=len(products))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list products")
        return internal_error()


@products_bp.get("/search")
@require_auth
@require_capability(Capability.VIEW_PRODUCTS)
def search_products():
    try:
        products = products_service.search_products(request.args.get("q"))
        return ok([p.to_dict() for p in products], count=len(products))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to search products")
        return internal_error()


@products_bp.get("/<int:product_id>")
@require_auth
@require_capability(Capability.VIEW_PRODUCTS)
def get_product(product_id: int):
    try:
        return ok(products_service.get_product(product_id).to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to get product")
        return internal_error()


@products_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_PRODUCTS)
def create_product():
    try:
        product = products_service.create_product(json_body(), user_id=g.current_user.id)
        return ok(product.to_dict(), 201)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return internal_error()


@products_bp.put("/<int:product_id>")
@require_auth
@require_capability(Capability.MANAGE_PRODUCTS)
def update_product(product_id: int):
    try:
        product = products_service.update_product(product_id, json_body())
        return ok(product.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return internal_error()


@products_bp.delete("/<int:product_id>")
@require_auth
@require_capability(Capability.MANAGE_PRODUCTS)
def delete_product(product_id: int):
    try:
        product = products_service.delete_product(product_id)
        return ok(product.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return internal_error()
