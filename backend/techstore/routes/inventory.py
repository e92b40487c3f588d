# Overview: Flask API routes for inventory operations; parses input and returns JSON responses.

"""
Inventory Routes

SECURITY: /admin/inventory page access required.

Stock only moves through inventory transactions; there is no endpoint that
writes products.stock_quantity directly.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..services import inventory_service
from ..services.inventory_service import InventoryError, InsufficientStockError
from ..validation import coerce_int, ValidationError


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/transactions")
@require_auth
@require_page_access("/admin/inventory")
def list_transactions_route():
    """
    Query params:
    - product_id
    - type: sale | purchase | adjustment | return | damage
    - limit: default 200, max 1000
    """
    limit = request.args.get("limit", 200, type=int)
    limit = max(1, min(limit, 1000))

    transactions = inventory_service.list_transactions(
        product_id=request.args.get("product_id", type=int),
        transaction_type=request.args.get("type") or None,
        limit=limit,
    )
    return jsonify({"items": [t.to_dict() for t in transactions], "count": len(transactions)})


@inventory_bp.get("/summary")
@require_auth
@require_page_access("/admin/inventory")
def summary_route():
    return jsonify(inventory_service.inventory_value_summary())


@inventory_bp.post("/adjust")
@require_auth
@require_page_access("/admin/inventory")
def adjust_stock_route():
    """
    Request body:
    {
        "product_id": 1,
        "new_quantity": 12,      // absolute count, or
        "delta": -2,             // relative change
        "reason": "Stock count",
        "transaction_type": "adjustment" | "damage"
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        product_id = coerce_int(data.get("product_id"), "product_id")
        new_quantity = data.get("new_quantity")
        delta = data.get("delta")

        tx = inventory_service.adjust_stock(
            product_id=product_id,
            new_quantity=coerce_int(new_quantity, "new_quantity") if new_quantity is not None else None,
            delta=coerce_int(delta, "delta") if delta is not None else None,
            reason=data.get("reason"),
            transaction_type=data.get("transaction_type") or "adjustment",
            user_id=current_user_id(),
        )
        return jsonify(tx.to_dict()), 201
    except InsufficientStockError as e:
        return jsonify({"error": str(e)}), 409
    except (InventoryError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500
