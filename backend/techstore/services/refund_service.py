# Overview: Service-layer operations for refunds; encapsulates business logic and database work.

"""
Refund Service

WHY: Customers bring items back with their receipt. The clerk looks the sale
up by its exact receipt number, chooses what is being refunded and why, and
the refund plus the restocking commit together.

REFUND TYPES:
- full:   the whole sale total; every sale line goes back into stock
- items:  selected lines; each quantity clamped to what is not yet refunded,
          amount = sum(quantity * unit_price)
- custom: clerk-entered amount; lines given alongside are still restocked

RULES:
- a reason is required
- 0 < amount <= sale total
- voided sales cannot be refunded
- units are never restocked twice; once every line is refunded the receipt
  accepts no further refunds
- wallet-paid sales are refunded back into the customer's wallet
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Refund, Sale
from ..validation import coerce_int, ValidationError
from .concurrency import run_with_retry
from .inventory_service import apply_stock_change
from . import wallet_service


REFUND_TYPES = ("full", "items", "custom")


class RefundError(Exception):
    """Raised for refund operation errors."""
    pass


class RefundNotFoundError(Exception):
    pass


def _find_sale(receipt_number: str) -> Sale:
    receipt_number = (receipt_number or "").strip()
    if not receipt_number:
        raise RefundError("Receipt number is required")
    sale = (
        db.session.query(Sale)
        .filter(Sale.receipt_number == receipt_number, Sale.deleted_at.is_(None))
        .first()
    )
    if not sale:
        raise RefundNotFoundError("Receipt not found")
    return sale


def refunded_quantities(sale: Sale) -> dict[int, int]:
    """Quantities already refunded per product across earlier refunds of the sale."""
    totals: dict[int, int] = {}
    for refund in sale.refunds:
        for line in refund.items_returned or []:
            product_id = line.get("product_id")
            totals[product_id] = totals.get(product_id, 0) + int(line.get("quantity") or 0)
    return totals


def lookup_sale_for_refund(receipt_number: str) -> dict:
    sale = _find_sale(receipt_number)
    already = refunded_quantities(sale)
    remaining = remaining_quantities(sale)
    data = sale.to_dict(include_items=True)
    for item in data["items"]:
        item["refunded_quantity"] = already.get(item["product_id"], 0)
        item["refundable_quantity"] = remaining.get(item["id"], 0)
    data["refunded_total"] = sum(r.amount for r in sale.refunds)
    return data


def _parse_line_quantities(line_quantities) -> dict[int, int]:
    if not line_quantities:
        return {}
    if not isinstance(line_quantities, dict):
        raise RefundError("line_quantities must map sale item ids to quantities")
    parsed = {}
    try:
        for key, value in line_quantities.items():
            parsed[coerce_int(key, "sale_item_id")] = coerce_int(value, "quantity")
    except ValidationError as e:
        raise RefundError(str(e))
    return parsed


def remaining_quantities(sale: Sale) -> dict[int, int]:
    """
    Units still refundable per sale item id.

    Earlier refunds record quantities per product, so they are consumed
    against the sale's lines for that product in line order.
    """
    already = refunded_quantities(sale)
    remaining = {}
    for item in sorted(sale.items, key=lambda i: i.id):
        used = min(already.get(item.product_id, 0), item.quantity)
        already[item.product_id] = already.get(item.product_id, 0) - used
        remaining[item.id] = item.quantity - used
    return remaining


def _selected_lines(sale: Sale, refund_type: str, line_quantities: dict[int, int]) -> list[tuple]:
    """(sale_item, quantity) pairs to restock; quantities clamped to 0..not yet refunded."""
    remaining = remaining_quantities(sale)
    if refund_type == "full":
        return [(item, remaining[item.id]) for item in sale.items if remaining[item.id] > 0]

    selected = []
    for item in sale.items:
        qty = min(max(line_quantities.get(item.id, 0), 0), remaining[item.id])
        if qty > 0:
            selected.append((item, qty))
    return selected


def compute_refund_amount(
    sale: Sale,
    refund_type: str,
    line_quantities: dict | None = None,
    custom_amount: int | None = None,
) -> int:
    if refund_type not in REFUND_TYPES:
        raise RefundError(f"refund_type must be one of: {', '.join(REFUND_TYPES)}")

    if refund_type == "full":
        return sale.total
    if refund_type == "custom":
        if custom_amount is None:
            raise RefundError("custom_amount is required for custom refunds")
        try:
            return coerce_int(custom_amount, "custom_amount")
        except ValidationError as e:
            raise RefundError(str(e))

    lines = _selected_lines(sale, refund_type, _parse_line_quantities(line_quantities))
    return sum(item.unit_price * qty for item, qty in lines)


def process_refund(
    *,
    receipt_number: str,
    refund_type: str = "full",
    reason: str | None = None,
    line_quantities: dict | None = None,
    custom_amount: int | None = None,
    user_id: int | None = None,
) -> Refund:
    reason = (reason or "").strip()
    if not reason:
        raise RefundError("Please provide a reason for the refund")

    def _op():
        sale = _find_sale(receipt_number)
        if not any(remaining_quantities(sale).values()):
            raise RefundError("All items on this receipt have already been refunded")
        amount = compute_refund_amount(sale, refund_type, line_quantities, custom_amount)
        if amount <= 0:
            raise RefundError("Refund amount must be greater than 0")
        if amount > sale.total:
            raise RefundError("Refund amount cannot exceed the sale total")

        lines = _selected_lines(sale, refund_type, _parse_line_quantities(line_quantities))

        refund = Refund(
            sale_id=sale.id,
            receipt_number=sale.receipt_number,
            refund_type=refund_type,
            amount=amount,
            reason=reason,
            items_returned=[
                {
                    "product_id": item.product_id,
                    "product_name": item.product_name,
                    "quantity": qty,
                    "unit_price": item.unit_price,
                }
                for item, qty in lines
            ],
            refunded_by_user_id=user_id,
        )
        db.session.add(refund)
        db.session.flush()

        for item, qty in lines:
            apply_stock_change(
                product_id=item.product_id,
                delta=qty,
                transaction_type="return",
                reference_id=sale.id,
                notes=f"Refund for {sale.receipt_number}: {reason}",
                user_id=user_id,
            )

        if sale.payment_method == "wallet" and sale.customer_id:
            wallet_service.refund_to_wallet(
                customer_id=sale.customer_id,
                amount=amount,
                sale_id=sale.id,
                notes=f"Refund for {sale.receipt_number}",
                user_id=user_id,
            )

        db.session.commit()
        return refund

    refund = run_with_retry(_op)
    current_app.logger.info(
        "Refund processed: %s %s amount=%s", refund.receipt_number, refund.refund_type, refund.amount
    )
    return refund


def list_refunds(*, search: str | None = None, limit: int = 500) -> list[Refund]:
    q = db.session.query(Refund)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.outerjoin(Sale, Refund.sale_id == Sale.id).filter(
            db.or_(
                Refund.receipt_number.ilike(pattern),
                Refund.reason.ilike(pattern),
                Sale.customer_name.ilike(pattern),
            )
        )
    return q.order_by(Refund.created_at.desc(), Refund.id.desc()).limit(limit).all()


def total_refunded() -> int:
    return int(db.session.query(func.coalesce(func.sum(Refund.amount), 0)).scalar())
