# Overview: Service-layer operations for stock receiving; encapsulates business logic and database work.

"""
Stock Receiving Service

WHY: Deliveries against purchase orders often arrive in several drops.
Staff count what arrived per line (by hand or by scanning barcodes) and post
it; stock, the order lines and the order status move together.

RECEIVING RULES:
- 0 <= receiving_now <= ordered - already received, per line
- lines with 0 are skipped; at least one line must be > 0
- cancelled and received orders cannot be received against
- one DB transaction for the whole posting: stock increments, inventory
  transactions, line counters and the order status all commit or none do

STATUS AFTER POSTING (computed over ALL lines of the order):
- received (received_at stamped) when every line is fully received
- partially_received when any line has received > 0
- otherwise unchanged

SCAN INTAKE:
match_scanned_code() works on a client-held session
{"po_id": int | None, "lines": {"<item_id>": receiving_now}} and returns the
updated session, so the server stays stateless between scans.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import PurchaseOrder, PurchaseOrderItem, Product
from ..validation import coerce_int, PRODUCT_CONDITIONS, ValidationError
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import apply_stock_change
from .products_service import is_storefront_location
from techstore.time_utils import utcnow


PENDING_STATUSES = ("awaiting_delivery", "ordered", "pending", "partially_received")
CLOSED_STATUSES = {"received", "cancelled"}


class ReceiveNotFoundError(Exception):
    pass


class ReceiveValidationError(ValueError):
    pass


class ReceiveStateError(Exception):
    """Order status does not allow receiving (409)."""
    pass


def _get_order(po_id: int, *, lock: bool = False) -> PurchaseOrder:
    q = db.session.query(PurchaseOrder).filter_by(id=po_id)
    if lock:
        q = lock_for_update(q)
    po = q.first()
    if not po:
        raise ReceiveNotFoundError("Purchase order not found")
    return po


def list_pending_orders() -> list[PurchaseOrder]:
    """Orders still expecting stock, newest first."""
    return (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.status.in_(PENDING_STATUSES))
        .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        .all()
    )


def receive_all_quantities(po_id: int) -> dict[int, int]:
    """The "Receive All" pre-fill: remaining quantity per line, keyed by item id."""
    po = _get_order(po_id)
    return {item.id: item.remaining_quantity for item in po.items}


def _parse_lines(po: PurchaseOrder, lines) -> list[dict]:
    if not isinstance(lines, list) or not lines:
        raise ReceiveValidationError("No items to receive")

    items_by_id = {item.id: item for item in po.items}
    default_location = current_app.config.get("DEFAULT_RECEIVING_LOCATION", "Main Warehouse")
    default_condition = current_app.config.get("DEFAULT_RECEIVING_CONDITION", "new")

    parsed = []
    seen = set()
    for raw in lines:
        if not isinstance(raw, dict):
            raise ReceiveValidationError("Each line must be an object")
        try:
            item_id = coerce_int(raw.get("item_id"), "item_id")
            receiving_now = coerce_int(raw.get("receiving_now", 0), "receiving_now")
        except ValidationError as e:
            raise ReceiveValidationError(str(e))

        item = items_by_id.get(item_id)
        if item is None:
            raise ReceiveValidationError(f"Item {item_id} is not on order {po.order_number}")
        if item_id in seen:
            raise ReceiveValidationError(f"Item {item_id} listed more than once")
        seen.add(item_id)

        if receiving_now < 0:
            raise ReceiveValidationError("receiving_now must be >= 0")
        if receiving_now > item.remaining_quantity:
            raise ReceiveValidationError(
                f"Cannot receive {receiving_now} of {item.product.name if item.product else item.product_id}: "
                f"only {item.remaining_quantity} outstanding"
            )
        if receiving_now == 0:
            continue

        location = (raw.get("location") or "").strip() or default_location
        condition = (raw.get("condition") or "").strip() or default_condition
        if condition not in PRODUCT_CONDITIONS:
            raise ReceiveValidationError(f"condition must be one of: {', '.join(sorted(PRODUCT_CONDITIONS))}")

        parsed.append({
            "item": item,
            "receiving_now": receiving_now,
            "location": location,
            "condition": condition,
        })

    if not parsed:
        raise ReceiveValidationError("No items to receive")
    return parsed


def _increment_received(item: PurchaseOrderItem, quantity: int) -> None:
    """received_quantity += quantity, guarded so it never exceeds the ordered quantity."""
    stmt = (
        update(PurchaseOrderItem)
        .where(
            PurchaseOrderItem.id == item.id,
            PurchaseOrderItem.received_quantity + quantity <= PurchaseOrderItem.quantity,
        )
        .values(received_quantity=PurchaseOrderItem.received_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if not db.session.execute(stmt).rowcount:
        raise ReceiveStateError("Order line was received concurrently; reload and try again")
    db.session.refresh(item, attribute_names=["received_quantity"])


def _derive_status(po: PurchaseOrder) -> str:
    if all(item.received_quantity >= item.quantity for item in po.items):
        return "received"
    if any(item.received_quantity > 0 for item in po.items):
        return "partially_received"
    return po.status


def receive_stock(*, po_id: int, lines: list, user_id: int | None = None) -> PurchaseOrder:
    """Post a receiving count against a purchase order (all-or-nothing)."""
    def _op():
        po = _get_order(po_id, lock=True)
        if po.status in CLOSED_STATUSES:
            raise ReceiveStateError(f"Cannot receive against a {po.status} order")

        parsed = _parse_lines(po, lines)

        for line in parsed:
            item = line["item"]
            product = db.session.query(Product).filter_by(id=item.product_id).first()

            product.location = line["location"]
            product.condition = line["condition"]
            if is_storefront_location(line["location"]):
                product.is_active = True

            apply_stock_change(
                product_id=product.id,
                delta=line["receiving_now"],
                transaction_type="purchase",
                unit_cost=item.unit_cost,
                reference_id=po.id,
                notes=f"Received from PO: {po.order_number} | Location: {line['location']}",
                user_id=user_id,
            )
            _increment_received(item, line["receiving_now"])

        new_status = _derive_status(po)
        if new_status != po.status:
            po.status = new_status
        if new_status == "received":
            po.received_at = utcnow()

        db.session.commit()
        return po, parsed

    po, parsed = run_with_retry(_op)
    current_app.logger.info(
        "Receiving posted: %s lines=%s units=%s status=%s",
        po.order_number, len(parsed), sum(line["receiving_now"] for line in parsed), po.status,
    )
    return po


# =============================================================================
# BARCODE-DRIVEN INTAKE
# =============================================================================

@dataclass
class ScanResult:
    """
    Outcome of one scan.

    result: incremented | full | order_loaded | not_found
    """
    result: str
    message: str
    session: dict
    item_id: int | None = None
    order: dict | None = field(default=None)

    def to_dict(self) -> dict:
        return {
            "result": self.result,
            "message": self.message,
            "session": self.session,
            "item_id": self.item_id,
            "order": self.order,
        }


def _normalize_session(active_session) -> dict:
    if not active_session:
        return {"po_id": None, "lines": {}}
    if not isinstance(active_session, dict):
        raise ReceiveValidationError("session must be an object")

    po_id = active_session.get("po_id")
    if po_id is not None:
        try:
            po_id = coerce_int(po_id, "po_id")
        except ValidationError as e:
            raise ReceiveValidationError(str(e))

    raw_lines = active_session.get("lines") or {}
    if not isinstance(raw_lines, dict):
        raise ReceiveValidationError("session lines must map item ids to counts")

    lines = {}
    for key, value in raw_lines.items():
        try:
            lines[str(coerce_int(key, "item_id"))] = coerce_int(value, "receiving_now")
        except ValidationError as e:
            raise ReceiveValidationError(str(e))
    return {"po_id": po_id, "lines": lines}


def _session_for_order(po: PurchaseOrder) -> dict:
    """Select-order behaviour: every line pre-filled with its remaining quantity."""
    return {
        "po_id": po.id,
        "lines": {str(item.id): item.remaining_quantity for item in po.items},
    }


def match_scanned_code(code: str, active_session: dict | None = None) -> ScanResult:
    """
    Apply one scanned barcode to the receiving session.

    1. A line of the active order with that barcode: +1, capped at the
       line's remaining quantity (incremented / full).
    2. No active order: load the first pending order containing the
       barcode (order_loaded).
    3. Otherwise not_found.

    An active order that was cancelled or fully received meanwhile raises
    ReceiveStateError.
    """
    code = (code or "").strip()
    session = _normalize_session(active_session)
    if not code:
        return ScanResult("not_found", "Barcode not in pending orders", session)

    if session["po_id"] is not None:
        po = _get_order(session["po_id"])
        if po.status in CLOSED_STATUSES:
            raise ReceiveStateError(f"Purchase order {po.order_number} is {po.status}")
        for item in po.items:
            if item.product is None or item.product.barcode != code:
                continue

            key = str(item.id)
            current = session["lines"].get(key, 0)
            remaining = item.remaining_quantity
            if current < remaining:
                session["lines"][key] = current + 1
                return ScanResult("incremented", f"+1 {item.product.name}", session, item_id=item.id)
            return ScanResult("full", "All ordered units already counted", session, item_id=item.id)

        return ScanResult("not_found", "Barcode not in pending orders", session)

    matching = (
        db.session.query(PurchaseOrder)
        .join(PurchaseOrderItem, PurchaseOrderItem.purchase_order_id == PurchaseOrder.id)
        .join(Product, PurchaseOrderItem.product_id == Product.id)
        .filter(PurchaseOrder.status.in_(PENDING_STATUSES), Product.barcode == code)
        .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        .first()
    )
    if matching:
        supplier_name = matching.supplier.name if matching.supplier else "Unknown"
        return ScanResult(
            "order_loaded",
            f"Loaded {matching.order_number} from {supplier_name}",
            _session_for_order(matching),
            order=matching.to_dict(include_items=True),
        )

    return ScanResult("not_found", "Barcode not in pending orders", session)
