# Overview: Flask API routes for storefront catalog operations; parses input and returns JSON responses.

"""
Public storefront catalog.

No authentication: these are the pages customers browse. Only active
products are returned, serialized without cost or supplier fields.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import products_service
from ..services.products_service import ProductNotFoundError
from ..validation import ValidationError


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


def _flag(name: str) -> bool:
    return request.args.get(name, "false").lower() in {"1", "true", "yes"}


@catalog_bp.get("")
def list_catalog_route():
    """
    Query params:
    - search: substring over name, description, manufacturer, model, category
    - category, condition
    - min_price, max_price: whole UGX
    - featured: true|false
    - in_stock: true|false
    - sort: newest (default) | price_asc | price_desc | name
    """
    try:
        products = products_service.list_catalog(
            search=request.args.get("search"),
            category=request.args.get("category") or None,
            condition=request.args.get("condition") or None,
            min_price=request.args.get("min_price", type=int),
            max_price=request.args.get("max_price", type=int),
            featured_only=_flag("featured"),
            in_stock_only=_flag("in_stock"),
            sort=request.args.get("sort") or None,
        )
        return jsonify({
            "items": [p.to_public_dict() for p in products],
            "count": len(products),
        })
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list catalog")
        return jsonify({"error": "Internal server error"}), 500


@catalog_bp.get("/categories")
def list_categories_route():
    return jsonify({"items": products_service.list_categories()})


@catalog_bp.get("/<int:product_id>")
def get_catalog_product_route(product_id: int):
    try:
        product = products_service.get_catalog_product(product_id)
        return jsonify(product.to_public_dict())
    except ProductNotFoundError as e:
        return jsonify({"error": str(e)}), 404
