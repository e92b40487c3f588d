# Overview: Flask API routes for purchase order operations; parses input and returns JSON responses.

"""
Purchase Order Routes

SECURITY: /admin/purchase-orders page access required.

Setting status to "received" books every remaining quantity into stock
through the receiving workflow.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..services import purchase_order_service
from ..services.purchase_order_service import (
    PurchaseOrderNotFoundError,
    PurchaseOrderValidationError,
    PurchaseOrderStateError,
)
from ..services.receive_service import ReceiveStateError, ReceiveValidationError
from ..validation import coerce_int, ValidationError


purchase_orders_bp = Blueprint("purchase_orders", __name__, url_prefix="/api/purchase-orders")


@purchase_orders_bp.get("")
@require_auth
@require_page_access("/admin/purchase-orders")
def list_purchase_orders_route():
    orders = purchase_order_service.list_purchase_orders(
        status=request.args.get("status") or None,
        search=request.args.get("search"),
    )
    return jsonify({"items": [po.to_dict() for po in orders], "count": len(orders)})


@purchase_orders_bp.get("/<int:po_id>")
@require_auth
@require_page_access("/admin/purchase-orders")
def get_purchase_order_route(po_id: int):
    try:
        po = purchase_order_service.get_purchase_order(po_id)
        return jsonify(po.to_dict(include_items=True))
    except PurchaseOrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@purchase_orders_bp.post("")
@require_auth
@require_page_access("/admin/purchase-orders")
def create_purchase_order_route():
    """
    Request body:
    {
        "supplier_id": 1,
        "items": [{"product_id": 3, "quantity": 10, "unit_cost": 250000}],
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        po = purchase_order_service.create_purchase_order(
            supplier_id=coerce_int(data.get("supplier_id"), "supplier_id"),
            items=data.get("items"),
            notes=data.get("notes"),
            user_id=current_user_id(),
        )
        return jsonify(po.to_dict(include_items=True)), 201
    except (ValidationError, PurchaseOrderValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create purchase order")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.post("/<int:po_id>/status")
@require_auth
@require_page_access("/admin/purchase-orders")
def update_status_route(po_id: int):
    """Request body: {"status": "ordered"}"""
    data = request.get_json(silent=True) or {}

    try:
        po = purchase_order_service.update_status(
            po_id=po_id,
            status=data.get("status"),
            user_id=current_user_id(),
        )
        return jsonify(po.to_dict(include_items=True))
    except PurchaseOrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (PurchaseOrderStateError, ReceiveStateError) as e:
        return jsonify({"error": str(e)}), 409
    except (PurchaseOrderValidationError, ReceiveValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update purchase order status")
        return jsonify({"error": "Internal server error"}), 500


@purchase_orders_bp.delete("/<int:po_id>")
@require_auth
@require_page_access("/admin/purchase-orders")
def delete_purchase_order_route(po_id: int):
    try:
        purchase_order_service.delete_purchase_order(po_id)
        return jsonify({"ok": True})
    except PurchaseOrderNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except PurchaseOrderStateError as e:
        return jsonify({"error": str(e)}), 409
