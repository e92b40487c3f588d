# Overview: Flask API routes for inquiry operations; parses input and returns JSON responses.

"""
Inquiry Routes

The storefront cart ends in an inquiry rather than a checkout: POST is
public. Reading and working inquiries requires the /admin/inquiries page.
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import require_auth, require_page_access
from ..services import inquiry_service
from ..services.inquiry_service import InquiryNotFoundError, InquiryValidationError
from ..validation import coerce_int, ValidationError


inquiries_bp = Blueprint("inquiries", __name__, url_prefix="/api/inquiries")


@inquiries_bp.post("")
def submit_inquiry_route():
    """
    Request body:
    {
        "customer_name": "...",      // required
        "customer_email": "a@b.c",   // required
        "customer_phone": "...",
        "customer_company": "...",
        "message": "...",
        "product_id": 1,             // single-product contact form
        "items": [{"product_id": 1, "quantity": 2}]   // cart
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        product_id = data.get("product_id")
        if product_id is not None:
            product_id = coerce_int(product_id, "product_id")

        inquiry = inquiry_service.submit_inquiry(
            customer_name=data.get("customer_name"),
            customer_email=data.get("customer_email"),
            customer_phone=data.get("customer_phone"),
            customer_company=data.get("customer_company"),
            message=data.get("message"),
            product_id=product_id,
            items=data.get("items"),
        )
        return jsonify({"id": inquiry.id, "message": "Inquiry submitted"}), 201
    except (InquiryValidationError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to submit inquiry")
        return jsonify({"error": "Internal server error"}), 500


@inquiries_bp.get("")
@require_auth
@require_page_access("/admin/inquiries")
def list_inquiries_route():
    try:
        inquiries = inquiry_service.list_inquiries(
            status=request.args.get("status") or None,
            search=request.args.get("search"),
        )
        return jsonify({
            "items": [i.to_dict() for i in inquiries],
            "count": len(inquiries),
            "open": inquiry_service.count_open_inquiries(),
        })
    except InquiryValidationError as e:
        return jsonify({"error": str(e)}), 400


@inquiries_bp.get("/<int:inquiry_id>")
@require_auth
@require_page_access("/admin/inquiries")
def get_inquiry_route(inquiry_id: int):
    try:
        return jsonify(inquiry_service.get_inquiry(inquiry_id).to_dict())
    except InquiryNotFoundError as e:
        return jsonify({"error": str(e)}), 404


@inquiries_bp.patch("/<int:inquiry_id>")
@require_auth
@require_page_access("/admin/inquiries")
def update_inquiry_route(inquiry_id: int):
    """Update status, priority, notes or assignee."""
    data = request.get_json(silent=True) or {}

    try:
        assigned = data.get("assigned_to_user_id")
        inquiry = inquiry_service.update_inquiry(
            inquiry_id=inquiry_id,
            status=data.get("status"),
            notes=data.get("notes"),
            priority=data.get("priority"),
            assigned_to_user_id=coerce_int(assigned, "assigned_to_user_id") if assigned is not None else None,
        )
        return jsonify(inquiry.to_dict())
    except InquiryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (InquiryValidationError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update inquiry")
        return jsonify({"error": "Internal server error"}), 500


@inquiries_bp.delete("/<int:inquiry_id>")
@require_auth
@require_page_access("/admin/inquiries")
def delete_inquiry_route(inquiry_id: int):
    try:
        inquiry_service.delete_inquiry(inquiry_id)
        return jsonify({"ok": True})
    except InquiryNotFoundError as e:
        return jsonify({"error": str(e)}), 404
