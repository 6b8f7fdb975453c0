# Overview: Flask API routes for reports; date-ranged, read-only aggregations.

from flask import Blueprint, current_app, request

from ..decorators import require_auth, require_capability
from ..errors import PosError, error_response, ok
from ..permissions import Capability
from ..services import reporting_service
from . import internal_error


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

REPORTS = {
    "sales-summary": reporting_service.sales_summary,
    "sales-by-product": reporting_service.sales_by_product,
    "sales-by-cashier": reporting_service.sales_by_cashier,
    "payment-methods": reporting_service.payment_methods,
    "profit-analysis": reporting_service.profit_analysis,
}


@reports_bp.get("/<string:report_name>")
@require_auth
@require_capability(Capability.VIEW_REPORTS)
def run_report(report_name: str):
    """
    Query params:
    - start_date: YYYY-MM-DD (required)
    - end_date: YYYY-MM-DD (required, inclusive)
    """
    report = REPORTS.get(report_name)
    if report is None:
        return {"success": False, "error": "Report not found"}, 404
    try:
        date_range = reporting_service.parse_date_range(
            request.args.get("start_date"),
            request.args.get("end_date"),
        )
        return ok(report(date_range), range=date_range.to_dict())
    except PosError as exc:
        return error_response(exc)
    except Exception:
        current_app.logger.exception("Failed to run report %s", report_name)
        return internal_error()
