# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

SECURITY: All routes require authentication and the /admin/products page.
stock_quantity is never writable directly: the create payload may carry an
initial quantity, booked as an inventory transaction; later changes go
through /api/inventory.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access, current_user_id
from ..models import Product
from ..services import products_service
from ..services.products_service import ProductNotFoundError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    coerce_int,
    ValidationError,
    ConflictError,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "category", "price", "unit_cost",
        "reorder_level", "reorder_quantity", "sku", "barcode",
        "manufacturer", "model", "condition", "location", "warranty_months",
        "weight_kg", "dimensions", "image_url", "supplier_id",
        "is_active", "is_featured",
    },
    required_on_create={"name", "category", "price"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_page_access("/admin/products")
def list_products_route():
    """
    Query params:
    - search: name, description, manufacturer, model, category, sku, barcode
    - category
    - include_inactive: default true
    """
    include_inactive = request.args.get("include_inactive", "true").lower() != "false"
    products = products_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category") or None,
        include_inactive=include_inactive,
    )
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<int:product_id>")
@require_auth
@require_page_access("/admin/products")
def get_product_route(product_id: int):
    try:
        return jsonify(products_service.get_product(product_id).to_dict())
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@products_bp.get("/barcode/<path:code>")
@require_auth
@require_page_access("/admin/products")
def lookup_barcode_route(code: str):
    """Exact barcode match, used by the POS and stock screens."""
    product = products_service.lookup_by_barcode(code)
    if not product:
        return jsonify({"error": f"No product found with barcode: {code.strip()}"}), 404
    return jsonify(product.to_dict())


@products_bp.get("/low-stock")
@require_auth
@require_page_access("/admin/inventory")
def low_stock_route():
    products = products_service.low_stock_products()
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.post("")
@require_auth
@require_page_access("/admin/products")
def create_product_route():
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"error": "Invalid JSON payload"}), 400

    payload = dict(payload)
    initial_stock = payload.pop("stock_quantity", 0)

    try:
        initial_stock = coerce_int(initial_stock or 0, "stock_quantity")
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        created = products_service.create_product(
            patch=patch, initial_stock=initial_stock, user_id=current_user_id()
        )
        return jsonify(created.to_dict()), 201
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_page_access("/admin/products")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
        return jsonify(updated.to_dict())
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except ValueError as e:
        return jsonify({"error": str(e)}), 400


@products_bp.delete("/<int:product_id>")
@require_auth
@require_page_access("/admin/products")
def delete_product_route(product_id: int):
    try:
        deleted = products_service.delete_product(product_id=product_id)
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409

    if not deleted:
        return jsonify({"error": "Product not found"}), 404
    return jsonify({"ok": True})
