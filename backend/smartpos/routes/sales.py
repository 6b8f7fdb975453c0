# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""Sales API routes. Sales are immutable: there is no update or delete route."""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth, require_capability
from ..errors import PosError, ValidationError, error_response, ok
from ..permissions import Capability
from ..services import sales_service
from ..services.reporting_service import parse_date_range
from . import int_arg, internal_error, json_body


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_capability(Capability.CREATE_SALE)
def create_sale_route():
    """
    Complete a sale from a cart.

    Available to: admin, manager, cashier
    """
    try:
        cart = sales_service.parse_cart(json_body())
        result = sales_service.create_sale(cart, user_id=g.current_user.id)
        return ok(result.sale.to_dict(include_items=True), 201, sale_info=result.sale_info)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return internal_error()


@sales_bp.get("")
@require_auth
@require_capability(Capability.VIEW_SALES)
def list_sales_route():
    """
    Query params:
    - start_date, end_date: YYYY-MM-DD (optional, both or neither)
    - limit: int (default 100)
    """
    try:
        start_date = request.args.get("start_date")
        end_date = request.args.get("end_date")
        start = end = None
        if start_date or end_date:
            if not (start_date and end_date):
                raise ValidationError("start_date and end_date must be provided together")
            date_range = parse_date_range(start_date, end_date)
            start, end = date_range.start, date_range.end

        sales = sales_service.list_sales(start=start, end=end, limit=int_arg("limit", 100))
        return ok([s.to_dict() for s in sales], count=len(sales))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return internal_error()


@sales_bp.get("/daily-summary")
@require_auth
@require_capability(Capability.VIEW_SALES)
def daily_summary_route():
    try:
        return ok(sales_service.daily_summary())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to build daily summary")
        return internal_error()


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_capability(Capability.VIEW_SALES)
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return ok(sale.to_dict(include_items=True))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to get sale")
        return internal_error()
