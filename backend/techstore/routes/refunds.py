# Overview: Flask API routes for refund operations; parses input and returns JSON responses.

"""
Refund Routes

SECURITY: /admin/sales page access required (sales and refunds share a page).
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..services import refund_service, sales_service
from ..services.refund_service import RefundError, RefundNotFoundError
from ..services.sales_service import SaleNotFoundError
from ..services.inventory_service import InventoryError


refunds_bp = Blueprint("refunds", __name__, url_prefix="/api/refunds")


@refunds_bp.get("")
@require_auth
@require_page_access("/admin/sales")
def list_refunds_route():
    refunds = refund_service.list_refunds(search=request.args.get("search"))
    return jsonify({
        "items": [r.to_dict() for r in refunds],
        "count": len(refunds),
        "total_refunded": refund_service.total_refunded(),
    })


@refunds_bp.get("/lookup/<path:receipt_number>")
@require_auth
@require_page_access("/admin/sales")
def lookup_sale_route(receipt_number: str):
    """Exact receipt number; voided sales are not found."""
    try:
        return jsonify(refund_service.lookup_sale_for_refund(receipt_number))
    except RefundNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RefundError as e:
        return jsonify({"error": str(e)}), 400


@refunds_bp.post("/preview")
@require_auth
@require_page_access("/admin/sales")
def preview_refund_route():
    """Amount the refund would come to, without saving anything."""
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.get_sale_by_receipt(data.get("receipt_number"))
        amount = refund_service.compute_refund_amount(
            sale,
            data.get("refund_type") or "full",
            data.get("line_quantities"),
            data.get("custom_amount"),
        )
        return jsonify({"receipt_number": sale.receipt_number, "amount": amount, "sale_total": sale.total})
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except RefundError as e:
        return jsonify({"error": str(e)}), 400


@refunds_bp.post("")
@require_auth
@require_page_access("/admin/sales")
def process_refund_route():
    """
    Request body:
    {
        "receipt_number": "RCP-20240501-0003",
        "refund_type": "full" | "items" | "custom",
        "reason": "Faulty screen",
        "line_quantities": {"<sale_item_id>": 1},   // items / custom
        "custom_amount": 20000                      // custom
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        refund = refund_service.process_refund(
            receipt_number=data.get("receipt_number"),
            refund_type=data.get("refund_type") or "full",
            reason=data.get("reason"),
            line_quantities=data.get("line_quantities"),
            custom_amount=data.get("custom_amount"),
            user_id=current_user_id(),
        )
        return jsonify(refund.to_dict()), 201
    except RefundNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (RefundError, InventoryError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to process refund")
        return jsonify({"error": "Internal server error"}), 500
