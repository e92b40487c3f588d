# Overview: Service-layer operations for purchase orders; encapsulates business logic and database work.

"""
Purchase Order Service

LIFECYCLE:
pending -> ordered -> awaiting_delivery -> partially_received -> received
Any open order may be cancelled. received and cancelled are terminal.

Receiving quantities (and therefore partially_received / received) is
handled by receive_service. Marking an order "received" through
update_status receives every outstanding quantity in the same step, so
stock always matches the order.
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, Product, Supplier
from ..validation import coerce_int, ValidationError
from .concurrency import run_with_retry
from .document_service import next_document_number
from .receive_service import receive_stock, receive_all_quantities
from techstore.time_utils import utcnow


PO_STATUSES = ("pending", "ordered", "awaiting_delivery", "partially_received", "received", "cancelled")
TERMINAL_STATUSES = {"received", "cancelled"}


class PurchaseOrderNotFoundError(Exception):
    pass


class PurchaseOrderValidationError(ValueError):
    pass


class PurchaseOrderStateError(Exception):
    """Raised when the order's status does not allow the operation (409)."""
    pass


def get_purchase_order(po_id: int) -> PurchaseOrder:
    po = db.session.query(PurchaseOrder).filter_by(id=po_id).first()
    if not po:
        raise PurchaseOrderNotFoundError("Purchase order not found")
    return po


def _parse_items(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise PurchaseOrderValidationError("At least one item is required")

    parsed = []
    for raw in items:
        if not isinstance(raw, dict):
            raise PurchaseOrderValidationError("Each item must be an object")
        try:
            product_id = coerce_int(raw.get("product_id"), "product_id")
            quantity = coerce_int(raw.get("quantity"), "quantity")
            unit_cost = coerce_int(raw.get("unit_cost", 0), "unit_cost")
        except ValidationError as e:
            raise PurchaseOrderValidationError(str(e))
        if quantity < 1:
            raise PurchaseOrderValidationError("quantity must be >= 1")
        if unit_cost < 0:
            raise PurchaseOrderValidationError("unit_cost must be >= 0")
        if not db.session.query(Product.id).filter_by(id=product_id).first():
            raise PurchaseOrderValidationError(f"Product {product_id} not found")
        parsed.append({"product_id": product_id, "quantity": quantity, "unit_cost": unit_cost})
    return parsed


def create_purchase_order(
    *,
    supplier_id: int,
    items: list,
    notes: str | None = None,
    user_id: int | None = None,
) -> PurchaseOrder:
    """Create a pending order; total_amount = sum(quantity * unit_cost)."""
    supplier = db.session.query(Supplier).filter_by(id=supplier_id).first()
    if not supplier:
        raise PurchaseOrderValidationError("Supplier not found")
    if not supplier.is_active:
        raise PurchaseOrderValidationError("Supplier is not active")

    lines = _parse_items(items)

    def _op():
        po = PurchaseOrder(
            order_number=next_document_number(document_type="purchase_order", prefix="PO"),
            supplier_id=supplier_id,
            status="pending",
            notes=notes,
            ordered_by_user_id=user_id,
            total_amount=sum(line["quantity"] * line["unit_cost"] for line in lines),
        )
        for line in lines:
            po.items.append(PurchaseOrderItem(
                product_id=line["product_id"],
                quantity=line["quantity"],
                received_quantity=0,
                unit_cost=line["unit_cost"],
                total_cost=line["quantity"] * line["unit_cost"],
            ))
        db.session.add(po)
        db.session.commit()
        return po

    po = run_with_retry(_op)
    current_app.logger.info("Purchase order created: %s total=%s", po.order_number, po.total_amount)
    return po


def update_status(*, po_id: int, status: str, user_id: int | None = None) -> PurchaseOrder:
    if status not in PO_STATUSES:
        raise PurchaseOrderValidationError(f"status must be one of: {', '.join(PO_STATUSES)}")

    po = get_purchase_order(po_id)
    if po.status in TERMINAL_STATUSES:
        raise PurchaseOrderStateError(f"Cannot change status of a {po.status} order")
    if status == po.status:
        return po

    if status == "received":
        lines = [
            {"item_id": item_id, "receiving_now": qty}
            for item_id, qty in receive_all_quantities(po_id).items()
            if qty > 0
        ]
        if lines:
            receive_stock(po_id=po_id, lines=lines, user_id=user_id)
            return get_purchase_order(po_id)

    if status == "partially_received" and not any(item.received_quantity for item in po.items):
        raise PurchaseOrderStateError("No items have been received on this order")

    def _op():
        order = get_purchase_order(po_id)
        order.status = status
        if status == "received":
            order.received_at = utcnow()
        db.session.commit()
        return order

    po = run_with_retry(_op)
    current_app.logger.info("Purchase order %s status -> %s", po.order_number, status)
    return po


def list_purchase_orders(*, status: str | None = None, search: str | None = None) -> list[PurchaseOrder]:
    q = db.session.query(PurchaseOrder).join(Supplier, PurchaseOrder.supplier_id == Supplier.id)
    if status and status != "all":
        q = q.filter(PurchaseOrder.status == status)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            PurchaseOrder.order_number.ilike(pattern),
            Supplier.name.ilike(pattern),
        ))
    return q.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def delete_purchase_order(po_id: int) -> None:
    """Only orders that never received stock can be deleted."""
    po = get_purchase_order(po_id)
    if any(item.received_quantity for item in po.items):
        raise PurchaseOrderStateError("Cannot delete an order that has received stock")
    db.session.delete(po)
    db.session.commit()
