# Overview: Flask API routes for customer and wallet operations; parses input and returns JSON responses.

"""
Customer Routes

SECURITY: /admin/customers page access required.
- Customer CRUD and search
- Wallet deposits, withdrawals and history under /<customer_id>/wallet
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..models import Customer
from ..services import customer_service, wallet_service
from ..services.customer_service import CustomerNotFoundError, CustomerValidationError
from ..services.wallet_service import (
    WalletNotFoundError,
    WalletValidationError,
    InsufficientBalanceError,
)
from ..validation import ModelValidationPolicy, validate_payload, coerce_int, ValidationError

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "company", "address", "notes"},
    required_on_create={"name"},
)

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_page_access("/admin/customers")
def list_customers_route():
    limit = request.args.get("limit", 500, type=int)
    customers = customer_service.list_customers(
        search=request.args.get("search"),
        limit=max(1, min(limit, 1000)),
    )
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)})


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_page_access("/admin/customers")
def get_customer_route(customer_id: int):
    try:
        return jsonify(customer_service.get_customer(customer_id).to_dict())
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.post("")
@require_auth
@require_page_access("/admin/customers")
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        customer = customer_service.create_customer(patch=patch)
        return jsonify(customer.to_dict()), 201
    except (ValidationError, CustomerValidationError) as e:
        return jsonify({"error": str(e)}), 400


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_page_access("/admin/customers")
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        customer = customer_service.update_customer(customer_id=customer_id, patch=patch)
        return jsonify(customer.to_dict())
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, CustomerValidationError) as e:
        return jsonify({"error": str(e)}), 400


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_page_access("/admin/customers")
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
        return jsonify({"ok": True})
    except CustomerNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except CustomerValidationError as e:
        return jsonify({"error": str(e)}), 409


# =============================================================================
# WALLETS
# =============================================================================

@customers_bp.get("/wallets")
@require_auth
@require_page_access("/admin/customers")
def list_wallets_route():
    wallets = wallet_service.list_wallets(search=request.args.get("search"))
    return jsonify({
        "items": [w.to_dict() for w in wallets],
        "totals": wallet_service.wallet_totals(),
    })


@customers_bp.get("/<int:customer_id>/wallet")
@require_auth
@require_page_access("/admin/customers")
def get_wallet_route(customer_id: int):
    """Wallet balance plus the latest transactions (newest first)."""
    limit = request.args.get("limit", wallet_service.HISTORY_LIMIT, type=int)
    try:
        wallet = wallet_service.get_wallet(customer_id)
        history = wallet_service.wallet_history(customer_id, limit=max(1, min(limit, 500)))
        return jsonify({
            "wallet": wallet.to_dict(),
            "transactions": [t.to_dict() for t in history],
        })
    except WalletNotFoundError as e:
        return jsonify({"error": str(e)}), 404


def _wallet_movement(customer_id: int, action):
    data = request.get_json(silent=True) or {}

    try:
        tx = action(
            customer_id=customer_id,
            amount=coerce_int(data.get("amount"), "amount"),
            notes=data.get("notes"),
            user_id=current_user_id(),
        )
        return jsonify(tx.to_dict()), 201
    except WalletNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except InsufficientBalanceError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, WalletValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to post wallet transaction")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.post("/<int:customer_id>/wallet/deposit")
@require_auth
@require_page_access("/admin/customers")
def deposit_route(customer_id: int):
    """Request body: {"amount": 50000, "notes": "..."}"""
    return _wallet_movement(customer_id, wallet_service.deposit)


@customers_bp.post("/<int:customer_id>/wallet/withdraw")
@require_auth
@require_page_access("/admin/customers")
def withdraw_route(customer_id: int):
    """Request body: {"amount": 20000, "notes": "..."}"""
    return _wallet_movement(customer_id, wallet_service.withdraw)
