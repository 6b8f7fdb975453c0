# Overview: Flask API routes for the dashboard.

from flask import Blueprint, current_app, request

from ..decorators import require_auth, require_capability
from ..errors import PosError, error_response, ok
from ..permissions import Capability
from ..services import dashboard_service
from . import int_arg, internal_error


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_capability(Capability.VIEW_DASHBOARD)
def stats():
    try:
        return ok(dashboard_service.stats())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch dashboard statistics")
        return internal_error()


@dashboard_bp.get("/recent-sales")
@require_auth
@require_capability(Capability.VIEW_DASHBOARD)
def recent_sales():
    try:
        return ok(dashboard_service.recent_sales(limit=int_arg("limit", 10)))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch recent sales")
        return internal_error()


@dashboard_bp.get("/top-products")
@require_auth
@require_capability(Capability.VIEW_DASHBOARD)
def top_products():
    try:
        rows = dashboard_service.top_products(
            limit=int_arg("limit", 10),
            period=(request.args.get("period") or "all").strip().lower(),
        )
        return ok(rows)
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch top products")
        return internal_error()


@dashboard_bp.get("/sales-trend")
@require_auth
@require_capability(Capability.VIEW_DASHBOARD)
def sales_trend():
    try:
        return ok(dashboard_service.sales_trend(days=int_arg("days", 7)))
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to fetch sales trend")
        return internal_error()
