# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

SECURITY: /admin/suppliers page access required.
- Supplier CRUD (DELETE deactivates suppliers that have orders or payments)
- Supplier payments and per-supplier balances
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..models import Supplier, SupplierPayment
from ..services import supplier_service
from ..services.supplier_service import SupplierNotFoundError, SupplierValidationError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_supplier_payment,
    ValidationError,
)
from techstore.time_utils import parse_iso_date

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "contact_person", "email", "phone", "address", "notes", "is_active"},
    required_on_create={"name"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "supplier_id", "purchase_order_id", "amount", "payment_date",
        "payment_method", "payment_source", "bank_name", "reference_number", "notes",
    },
    required_on_create={"supplier_id", "amount"},
)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_auth
@require_page_access("/admin/suppliers")
def list_suppliers_route():
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    suppliers = supplier_service.list_suppliers(
        search=request.args.get("search"),
        include_inactive=include_inactive,
    )
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)})


@suppliers_bp.get("/<int:supplier_id>")
@require_auth
@require_page_access("/admin/suppliers")
def get_supplier_route(supplier_id: int):
    try:
        return jsonify(supplier_service.get_supplier(supplier_id).to_dict())
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@suppliers_bp.post("")
@require_auth
@require_page_access("/admin/suppliers")
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=False)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    supplier = supplier_service.create_supplier(patch=patch)
    current_app.logger.info("Supplier created: id=%s name=%s", supplier.id, supplier.name)
    return jsonify(supplier.to_dict()), 201


@suppliers_bp.put("/<int:supplier_id>")
@require_auth
@require_page_access("/admin/suppliers")
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Supplier, payload=payload, policy=SUPPLIER_POLICY, partial=True)
        supplier = supplier_service.update_supplier(supplier_id=supplier_id, patch=patch)
        return jsonify(supplier.to_dict())
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400


@suppliers_bp.delete("/<int:supplier_id>")
@require_auth
@require_page_access("/admin/suppliers")
def delete_supplier_route(supplier_id: int):
    try:
        deleted = supplier_service.delete_supplier(supplier_id)
        return jsonify({"ok": True, "deleted": deleted, "deactivated": not deleted})
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@suppliers_bp.get("/balances")
@require_auth
@require_page_access("/admin/suppliers")
def supplier_balances_route():
    return jsonify({"items": supplier_service.supplier_balances()})


# =============================================================================
# SUPPLIER PAYMENTS
# =============================================================================

@suppliers_bp.get("/payments")
@require_auth
@require_page_access("/admin/suppliers")
def list_payments_route():
    """
    Query params:
    - supplier_id
    - search: supplier name, reference number, bank name
    - from, to: payment date range (YYYY-MM-DD, inclusive)
    """
    try:
        payments = supplier_service.list_payments(
            supplier_id=request.args.get("supplier_id", type=int),
            search=request.args.get("search"),
            from_date=parse_iso_date(request.args.get("from")),
            to_date=parse_iso_date(request.args.get("to")),
        )
    except ValueError:
        return jsonify({"error": "from/to must be dates (YYYY-MM-DD)"}), 400

    return jsonify({
        "items": [p.to_dict() for p in payments],
        "count": len(payments),
        "totals": supplier_service.payment_totals(),
    })


@suppliers_bp.post("/payments")
@require_auth
@require_page_access("/admin/suppliers")
def record_payment_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=SupplierPayment, payload=payload, policy=PAYMENT_POLICY, partial=False)
        enforce_rules_supplier_payment(patch)
        payment = supplier_service.record_payment(patch=patch, user_id=current_user_id())
        return jsonify(payment.to_dict()), 201
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, SupplierValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record supplier payment")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/payments/<int:payment_id>")
@require_auth
@require_page_access("/admin/suppliers")
def delete_payment_route(payment_id: int):
    try:
        supplier_service.delete_payment(payment_id)
        return jsonify({"ok": True})
    except SupplierNotFoundError as e:
        return jsonify({"error": str(e)}), 404
