# Overview: Flask API routes for maintenance operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access
from ..services import maintenance_service, session_service
from ..validation import coerce_int, ValidationError


maintenance_bp = Blueprint("maintenance", __name__, url_prefix="/api/maintenance")


@maintenance_bp.post("/cleanup-sold-units")
@require_auth
@require_page_access("/admin/serial-numbers")
def cleanup_sold_units_route():
    """
    Delete sold serial units past the retention window.

    Request body (optional): {"retention_days": 4}
    """
    data = request.get_json(silent=True) or {}

    try:
        retention_days = data.get("retention_days")
        if retention_days is not None:
            retention_days = coerce_int(retention_days, "retention_days")
        deleted = maintenance_service.cleanup_sold_units(retention_days=retention_days)
        return jsonify({"deleted": deleted})
    except (ValidationError, ValueError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to clean up sold units")
        return jsonify({"error": "Internal server error"}), 500


@maintenance_bp.post("/cleanup-sessions")
@require_auth
@require_page_access("/admin/settings")
def cleanup_sessions_route():
    deleted = session_service.cleanup_expired_sessions()
    return jsonify({"deleted": deleted})
