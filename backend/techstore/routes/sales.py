# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales Routes

SECURITY:
- POST /api/sales (checkout) requires /admin/pos
- listing, lookup, summary and void require /admin/sales
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..services import sales_service
from ..services.sales_service import SaleError, SaleNotFoundError
from ..services.wallet_service import InsufficientBalanceError, WalletValidationError
from ..validation import coerce_int, ValidationError
from techstore.time_utils import parse_iso_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _date_range():
    return parse_iso_date(request.args.get("from")), parse_iso_date(request.args.get("to"))


@sales_bp.post("")
@require_auth
@require_page_access("/admin/pos")
def create_sale_route():
    """
    Complete a counter sale.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "serial_unit_ids": [7]}],
        "payment_method": "cash",   // cash|card|mobile_money|bank_transfer|credit|wallet
        "amount_paid": 100000,      // defaults to the total
        "discount": 0,
        "tax": 0,
        "customer_id": 4,           // required for wallet payments
        "customer_name": "...",
        "notes": "..."
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        amount_paid = data.get("amount_paid")
        customer_id = data.get("customer_id")
        sale = sales_service.create_sale(
            items=data.get("items"),
            payment_method=data.get("payment_method") or "cash",
            amount_paid=coerce_int(amount_paid, "amount_paid") if amount_paid not in (None, "") else None,
            discount=coerce_int(data.get("discount") or 0, "discount"),
            tax=coerce_int(data.get("tax") or 0, "tax"),
            customer_id=coerce_int(customer_id, "customer_id") if customer_id not in (None, "") else None,
            customer_name=data.get("customer_name"),
            notes=data.get("notes"),
            user_id=current_user_id(),
        )
        return jsonify(sale.to_dict(include_items=True)), 201
    except SaleError as e:
        return jsonify({"error": str(e), "details": e.details}), 400
    except InsufficientBalanceError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, WalletValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("")
@require_auth
@require_page_access("/admin/sales")
def list_sales_route():
    """
    Query params:
    - from, to: date range (YYYY-MM-DD, inclusive)
    - search: receipt number or customer name
    - payment_method
    - include_voided: default false
    """
    try:
        from_date, to_date = _date_range()
    except ValueError:
        return jsonify({"error": "from/to must be dates (YYYY-MM-DD)"}), 400

    sales = sales_service.list_sales(
        from_date=from_date,
        to_date=to_date,
        search=request.args.get("search"),
        payment_method=request.args.get("payment_method") or None,
        include_voided=request.args.get("include_voided", "false").lower() == "true",
    )
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/summary")
@require_auth
@require_page_access("/admin/sales")
def sales_summary_route():
    try:
        from_date, to_date = _date_range()
    except ValueError:
        return jsonify({"error": "from/to must be dates (YYYY-MM-DD)"}), 400
    return jsonify(sales_service.sales_summary(from_date=from_date, to_date=to_date))


@sales_bp.get("/receipt/<path:receipt_number>")
@require_auth
@require_page_access("/admin/sales")
def get_sale_by_receipt_route(receipt_number: str):
    try:
        sale = sales_service.get_sale_by_receipt(receipt_number)
        return jsonify(sale.to_dict(include_items=True))
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_page_access("/admin/sales")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(sale_id).to_dict(include_items=True))
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@sales_bp.post("/<int:sale_id>/void")
@require_auth
@require_page_access("/admin/sales")
def void_sale_route(sale_id: int):
    """Request body: {"reason": "..."}"""
    data = request.get_json(silent=True) or {}

    try:
        sale = sales_service.void_sale(sale_id=sale_id, reason=data.get("reason"), user_id=current_user_id())
        return jsonify(sale.to_dict(include_items=True))
    except SaleNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to void sale")
        return jsonify({"error": "Internal server error"}), 500
