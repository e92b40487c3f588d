# Overview: Flask API routes for reporting operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_page_access
from ..services import reporting_service
from techstore.time_utils import parse_iso_date


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/dashboard")
@require_auth
@require_page_access("/admin")
def dashboard_route():
    """
    Headline numbers for the dashboard.

    Query params:
    - date: YYYY-MM-DD (default: today, UTC)
    """
    try:
        day = parse_iso_date(request.args.get("date"))
    except ValueError:
        return jsonify({"error": "date must be YYYY-MM-DD"}), 400
    return jsonify(reporting_service.dashboard_summary(today=day))
