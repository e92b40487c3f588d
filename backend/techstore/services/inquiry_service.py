# Overview: Service-layer operations for inquiries; encapsulates business logic and database work.

"""
Inquiry Service

WHY: The storefront has no checkout. A cart (or the single-product contact
form) is turned into an Inquiry that staff follow up by phone or email.

MESSAGE FORMAT:
The customer's free text, followed by one line per cart item:
    - <product name> (x<qty>)

LIFECYCLE:
new -> contacted -> quoted -> closed (staff may move freely between states)
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Inquiry, Product, User
from ..validation import coerce_int, ValidationError


INQUIRY_STATUSES = ("new", "contacted", "quoted", "closed")
INQUIRY_PRIORITIES = ("low", "normal", "high")


class InquiryNotFoundError(Exception):
    pass


class InquiryValidationError(ValueError):
    pass


def _resolve_cart(items) -> list[dict]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise InquiryValidationError("items must be a list")

    resolved = []
    for raw in items:
        if not isinstance(raw, dict):
            raise InquiryValidationError("Each item must be an object")
        try:
            product_id = coerce_int(raw.get("product_id"), "product_id")
            quantity = coerce_int(raw.get("quantity", 1), "quantity")
        except ValidationError as e:
            raise InquiryValidationError(str(e))
        if quantity < 1:
            raise InquiryValidationError("quantity must be >= 1")

        product = db.session.query(Product).filter_by(id=product_id, is_active=True).first()
        if not product:
            raise InquiryValidationError(f"Product {product_id} not found")

        resolved.append({
            "product_id": product.id,
            "product_name": product.name,
            "quantity": quantity,
            "unit_price": product.price,
        })
    return resolved


def build_inquiry_message(message: str | None, cart: list[dict]) -> str:
    parts = []
    if message and message.strip():
        parts.append(message.strip())
    if cart:
        parts.append("\n".join(f"- {line['product_name']} (x{line['quantity']})" for line in cart))
    return "\n\n".join(parts)


def submit_inquiry(
    *,
    customer_name: str,
    customer_email: str,
    customer_phone: str | None = None,
    customer_company: str | None = None,
    message: str | None = None,
    product_id: int | None = None,
    items: list | None = None,
) -> Inquiry:
    """Public entry point for the cart and the product contact form."""
    customer_name = (customer_name or "").strip()
    customer_email = (customer_email or "").strip()
    if not customer_name:
        raise InquiryValidationError("customer_name is required")
    if not customer_email or "@" not in customer_email:
        raise InquiryValidationError("A valid customer_email is required")

    cart = _resolve_cart(items)

    if product_id is not None:
        product = db.session.query(Product).filter_by(id=product_id, is_active=True).first()
        if not product:
            raise InquiryValidationError(f"Product {product_id} not found")
    elif len(cart) == 1:
        product_id = cart[0]["product_id"]

    inquiry = Inquiry(
        customer_name=customer_name,
        customer_email=customer_email,
        customer_phone=(customer_phone or "").strip() or None,
        customer_company=(customer_company or "").strip() or None,
        product_id=product_id,
        message=build_inquiry_message(message, cart),
        items=cart or None,
        status="new",
        priority="normal",
    )
    db.session.add(inquiry)
    db.session.commit()

    current_app.logger.info("Inquiry received: id=%s items=%s", inquiry.id, len(cart))
    return inquiry


def list_inquiries(*, status: str | None = None, search: str | None = None) -> list[Inquiry]:
    q = db.session.query(Inquiry)
    if status:
        if status not in INQUIRY_STATUSES:
            raise InquiryValidationError(f"status must be one of: {', '.join(INQUIRY_STATUSES)}")
        q = q.filter(Inquiry.status == status)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            Inquiry.customer_name.ilike(pattern),
            Inquiry.customer_email.ilike(pattern),
            Inquiry.customer_phone.ilike(pattern),
        ))
    return q.order_by(Inquiry.created_at.desc(), Inquiry.id.desc()).all()


def get_inquiry(inquiry_id: int) -> Inquiry:
    inquiry = db.session.query(Inquiry).filter_by(id=inquiry_id).first()
    if not inquiry:
        raise InquiryNotFoundError("Inquiry not found")
    return inquiry


def update_inquiry(
    *,
    inquiry_id: int,
    status: str | None = None,
    notes: str | None = None,
    priority: str | None = None,
    assigned_to_user_id: int | None = None,
) -> Inquiry:
    inquiry = get_inquiry(inquiry_id)

    if status is not None:
        if status not in INQUIRY_STATUSES:
            raise InquiryValidationError(f"status must be one of: {', '.join(INQUIRY_STATUSES)}")
        inquiry.status = status
    if priority is not None:
        if priority not in INQUIRY_PRIORITIES:
            raise InquiryValidationError(f"priority must be one of: {', '.join(INQUIRY_PRIORITIES)}")
        inquiry.priority = priority
    if notes is not None:
        inquiry.notes = notes
    if assigned_to_user_id is not None:
        if not db.session.query(User.id).filter_by(id=assigned_to_user_id).first():
            raise InquiryValidationError("Assignee not found")
        inquiry.assigned_to_user_id = assigned_to_user_id

    db.session.commit()
    return inquiry


def delete_inquiry(inquiry_id: int) -> None:
    inquiry = get_inquiry(inquiry_id)
    db.session.delete(inquiry)
    db.session.commit()


def count_open_inquiries() -> int:
    return db.session.query(Inquiry).filter(Inquiry.status != "closed").count()
