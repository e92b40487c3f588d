# Overview: Flask API routes for stock receiving operations; parses input and returns JSON responses.

"""
Receiving Routes

SECURITY: /admin/purchase-orders page access required.

The barcode scan endpoint is stateless: the client sends the in-progress
receiving session with every scan and gets the updated session back.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..services import receive_service
from ..services.receive_service import ReceiveNotFoundError, ReceiveStateError, ReceiveValidationError
from ..services.inventory_service import InventoryError


receiving_bp = Blueprint("receiving", __name__, url_prefix="/api/receiving")


@receiving_bp.get("/pending")
@require_auth
@require_page_access("/admin/purchase-orders")
def list_pending_route():
    """Orders still expecting stock, with ordered and received quantities per line."""
    orders = receive_service.list_pending_orders()
    return jsonify({"items": [po.to_dict(include_items=True) for po in orders], "count": len(orders)})


@receiving_bp.get("/<int:po_id>/receive-all")
@require_auth
@require_page_access("/admin/purchase-orders")
def receive_all_route(po_id: int):
    """Pre-fill for the "Receive All" button: remaining quantity per item."""
    try:
        remaining = receive_service.receive_all_quantities(po_id)
        return jsonify({"po_id": po_id, "lines": {str(k): v for k, v in remaining.items()}})
    except ReceiveNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@receiving_bp.post("/<int:po_id>")
@require_auth
@require_page_access("/admin/purchase-orders")
def receive_stock_route(po_id: int):
    """
    Request body:
    {
        "lines": [
            {"item_id": 5, "receiving_now": 4, "location": "Main Store", "condition": "new"}
        ]
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        po = receive_service.receive_stock(
            po_id=po_id,
            lines=data.get("lines"),
            user_id=current_user_id(),
        )
        return jsonify(po.to_dict(include_items=True))
    except ReceiveNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReceiveStateError as e:
        return jsonify({"error": str(e)}), 409
    except (ReceiveValidationError, InventoryError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500


@receiving_bp.post("/scan")
@require_auth
@require_page_access("/admin/purchase-orders")
def scan_route():
    """
    Request body:
    {
        "code": "6001234567890",
        "session": {"po_id": 3, "lines": {"5": 2}}   // null when no order is loaded
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        result = receive_service.match_scanned_code(data.get("code"), data.get("session"))
        return jsonify(result.to_dict())
    except ReceiveNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReceiveStateError as e:
        return jsonify({"error": str(e)}), 409
    except ReceiveValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to match scanned code")
        return jsonify({"error": "Internal server error"}), 500
