# Overview: Flask API routes for inventory operations; stock movements, status and history.

from flask import Blueprint, current_app, g

from ..decorators import require_auth, require_capability
from ..errors import PosError, error_response, ok
from ..permissions import Capability
from ..services import inventory_service
from ..validation import coerce_int
from . import int_arg, internal_error, json_body


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/movements")
@require_auth
@require_capability(Capability.ADJUST_INVENTORY)
def record_movement_route():
    """
    Body: {product_id, type: IN|OUT, quantity, reason?, reference?}
    """
    try:
        data = json_body()
        product, movement = inventory_service.record_movement(
            coerce_int("product_id", data.get("product_id")),
            data.get("type"),
            data.get("quantity"),
            user_id=g.current_user.id,
            reason=data.get("reason"),
            reference=data.get("reference"),
        )
        return ok({"product": product.to_dict(), "movement": movement.to_dict()})
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to record stock movement")
        return internal_error()


@inventory_bp.get("/summary")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def summary_route():
    try:
        return ok(inventory_service.inventory_summary())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build inventory summary")
        return internal_error()


@inventory_bp.get("/history/<int:product_id>")
@require_auth
@require_capability(Capability.VIEW_INVENTORY)
def history_route(product_id: int):
    try:
        history = inventory_service.movement_history(
            product_id,
            limit=int_arg("limit", inventory_service.DEFAULT_HISTORY_LIMIT),
        )
        return ok(history.to_list())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to load stock history")
        return internal_error()
