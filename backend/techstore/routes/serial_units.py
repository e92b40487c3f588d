# Overview: Flask API routes for serial unit operations; parses input and returns JSON responses.

"""
Serial Unit Routes

SECURITY: /admin/serial-numbers page access required.

Opening the unit list also runs the sold-unit cleanup; a cleanup failure is
logged and the list is still returned.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..models import SerialUnit
from ..services import maintenance_service, serial_unit_service
from ..services.serial_unit_service import SerialUnitNotFoundError, SerialUnitValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_serial_unit,
    coerce_int,
    ValidationError,
)
from techstore.time_utils import parse_iso_date

SERIAL_UNIT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id", "serial_number", "status", "condition", "location",
        "purchase_date", "purchase_cost", "supplier_id",
        "warranty_start_date", "warranty_end_date",
        "sold_date", "customer_id", "notes",
    },
    required_on_create={"product_id", "serial_number"},
)

serial_units_bp = Blueprint("serial_units", __name__, url_prefix="/api/serial-units")


@serial_units_bp.get("")
@require_auth
@require_page_access("/admin/serial-numbers")
def list_units_route():
    """
    Query params:
    - search: serial number, product name or product SKU
    - status
    """
    maintenance_service.try_cleanup_sold_units()

    units = serial_unit_service.list_units(
        search=request.args.get("search"),
        status=request.args.get("status") or None,
    )
    return jsonify({
        "items": [u.to_dict() for u in units],
        "count": len(units),
        "stats": serial_unit_service.unit_stats(),
    })


@serial_units_bp.get("/<int:unit_id>")
@require_auth
@require_page_access("/admin/serial-numbers")
def get_unit_route(unit_id: int):
    try:
        return jsonify(serial_unit_service.get_unit(unit_id).to_dict())
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@serial_units_bp.get("/<int:unit_id>/history")
@require_auth
@require_page_access("/admin/serial-numbers")
def unit_history_route(unit_id: int):
    try:
        history = serial_unit_service.get_unit_history(unit_id)
        return jsonify({"items": [h.to_dict() for h in history]})
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@serial_units_bp.post("")
@require_auth
@require_page_access("/admin/serial-numbers")
def register_unit_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=SerialUnit, payload=payload, policy=SERIAL_UNIT_POLICY, partial=False)
        enforce_rules_serial_unit(patch)
        unit = serial_unit_service.register_unit(patch=patch, user_id=current_user_id())
        return jsonify(unit.to_dict()), 201
    except (ValidationError, SerialUnitValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to register serial unit")
        return jsonify({"error": "Internal server error"}), 500


@serial_units_bp.post("/quick-add")
@require_auth
@require_page_access("/admin/serial-numbers")
def quick_add_route():
    """
    Register units from a scanned product barcode.

    Request body:
    {
        "barcode": "6001234567890",   // required
        "quantity": 3,                // default 1
        "status": "in_stock",
        "condition": "new",
        "location": "Main Store",
        "purchase_date": "2024-05-01",
        "purchase_cost": 850000,
        "supplier_id": 2
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        purchase_cost = data.get("purchase_cost")
        supplier_id = data.get("supplier_id")
        units = serial_unit_service.quick_add_by_barcode(
            code=data.get("barcode") or data.get("code"),
            quantity=coerce_int(data.get("quantity", 1), "quantity"),
            status=data.get("status") or "in_stock",
            condition=data.get("condition") or "new",
            location=(data.get("location") or "").strip() or None,
            purchase_date=parse_iso_date(data.get("purchase_date")),
            purchase_cost=coerce_int(purchase_cost, "purchase_cost") if purchase_cost not in (None, "") else None,
            supplier_id=coerce_int(supplier_id, "supplier_id") if supplier_id not in (None, "") else None,
            user_id=current_user_id(),
        )
        return jsonify({"items": [u.to_dict() for u in units], "count": len(units)}), 201
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, SerialUnitValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except ValueError:
        return jsonify({"error": "purchase_date must be an ISO-8601 date (YYYY-MM-DD)"}), 400
    except Exception:
        current_app.logger.exception("Failed to quick-add serial units")
        return jsonify({"error": "Internal server error"}), 500


@serial_units_bp.put("/<int:unit_id>")
@require_auth
@require_page_access("/admin/serial-numbers")
def update_unit_route(unit_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=SerialUnit, payload=payload, policy=SERIAL_UNIT_POLICY, partial=True)
        enforce_rules_serial_unit(patch)
        unit = serial_unit_service.update_unit(unit_id=unit_id, patch=patch, user_id=current_user_id())
        return jsonify(unit.to_dict())
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, SerialUnitValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update serial unit")
        return jsonify({"error": "Internal server error"}), 500


@serial_units_bp.post("/<int:unit_id>/transfer")
@require_auth
@require_page_access("/admin/serial-numbers")
def transfer_unit_route(unit_id: int):
    """Request body: {"location": "Kampala Shop"}"""
    data = request.get_json(silent=True) or {}

    try:
        result = serial_unit_service.transfer_unit(
            unit_id=unit_id,
            location=data.get("location"),
            user_id=current_user_id(),
        )
        return jsonify({
            "unit": result["unit"].to_dict(),
            "product_activated": result["product_activated"],
            "unchanged": result["unchanged"],
        })
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SerialUnitValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to transfer serial unit")
        return jsonify({"error": "Internal server error"}), 500


@serial_units_bp.delete("/<int:unit_id>")
@require_auth
@require_page_access("/admin/serial-numbers")
def delete_unit_route(unit_id: int):
    try:
        serial_unit_service.delete_unit(unit_id)
        return jsonify({"ok": True})
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404


# =============================================================================
# STORAGE LOCATIONS
# =============================================================================

@serial_units_bp.get("/locations")
@require_auth
@require_page_access("/admin/serial-numbers")
def list_locations_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    locations = serial_unit_service.list_locations(include_inactive=include_inactive)
    return jsonify({"items": [loc.to_dict() for loc in locations]})


@serial_units_bp.post("/locations")
@require_auth
@require_page_access("/admin/serial-numbers")
def create_location_route():
    data = request.get_json(silent=True) or {}
    try:
        location = serial_unit_service.create_location(
            name=data.get("name"),
            description=data.get("description"),
        )
        return jsonify(location.to_dict()), 201
    except SerialUnitValidationError as e:
        return jsonify({"error": str(e)}), 400


@serial_units_bp.delete("/locations/<int:location_id>")
@require_auth
@require_page_access("/admin/serial-numbers")
def deactivate_location_route(location_id: int):
    try:
        location = serial_unit_service.deactivate_location(location_id)
        return jsonify(location.to_dict())
    except SerialUnitNotFoundError as e:
        return jsonify({"error": str(e)}), 404
