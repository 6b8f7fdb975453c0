# Overview: Flask API routes for category operations.

from flask import Blueprint, current_app

from ..decorators import require_auth, require_capability
from ..errors import PosError, error_response, ok
from ..permissions import Capability
from ..services import category_service
from . import internal_error, json_body


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_capability(Capability.VIEW_PRODUCTS)
def list_categories():
    try:
        return ok(category_service.list_categories())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list categories")
        return internal_error()


@categories_bp.get("/<int:category_id>")
@require_auth
@require_capability(Capability.VIEW_PRODUCTS)
def get_category(category_id: int):
    try:
        return ok(category_service.category_with_products(category_id))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to get category")
        return internal_error()


@categories_bp.post("")
@require_auth
@require_capability(Capability.MANAGE_CATEGORIES)
def create_category():
    try:
        category = category_service.create_category(json_body())
        return ok(category.to_dict(), 201)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return internal_error()


@categories_bp.put("/<int:category_id>")
@require_auth
@require_capability(Capability.MANAGE_CATEGORIES)
def update_category(category_id: int):
    try:
        category = category_service.update_category(category_id, json_body())
        return ok(category.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to update category")
        return internal_error()


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_capability(Capability.DELETE_CATEGORIES)
def delete_category(category_id: int):
    try:
        category = category_service.delete_category(category_id)
        return ok(category.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return internal_error()
