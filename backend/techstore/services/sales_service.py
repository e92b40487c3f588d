# Overview: Service-layer operations for point-of-sale sales; encapsulates business logic and database work.

"""
Point of Sale Service

WHY: A counter sale is recorded in one step: the cart, payment and stock
deduction commit together or not at all.

RULES:
- cart must not be empty; each line's quantity must be available in stock
  (the stock decrement is conditional, so concurrent sales cannot oversell)
- total = subtotal - discount + tax, never negative
- amount_paid >= total except for "credit" sales; change = paid - total
- "wallet" payments spend the customer's wallet balance in the same transaction
- serial units named on a line are marked sold (status, sold_date, sale_id)

VOIDING:
void_sale() soft-deletes the sale (deleted_at), puts the stock back with
"return" transactions, returns wallet money, and marks linked serial units
returned. Voided sales are excluded from listings and refunds.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Product, Refund, Sale, SaleItem, SerialUnit, SerialUnitHistory
from ..validation import coerce_int, ValidationError
from .concurrency import run_with_retry
from .document_service import next_document_number
from .inventory_service import apply_stock_change, InsufficientStockError
from . import wallet_service
from techstore.time_utils import today, utcnow


SALE_PAYMENT_METHODS = ("cash", "card", "mobile_money", "bank_transfer", "credit", "wallet")
WALK_IN_CUSTOMER = "Walk-in Customer"


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class SaleNotFoundError(Exception):
    pass


def _parse_cart(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise SaleError("Cart is empty")

    cart = []
    for raw in items:
        if not isinstance(raw, dict):
            raise SaleError("Each cart item must be an object")
        try:
            product_id = coerce_int(raw.get("product_id"), "product_id")
            quantity = coerce_int(raw.get("quantity", 1), "quantity")
            serial_unit_ids = [coerce_int(v, "serial_unit_ids") for v in (raw.get("serial_unit_ids") or [])]
        except ValidationError as e:
            raise SaleError(str(e))
        if quantity < 1:
            raise SaleError("quantity must be >= 1")
        if len(serial_unit_ids) > quantity:
            raise SaleError("More serial units than items on the line")

        product = db.session.query(Product).filter_by(id=product_id).first()
        if not product:
            raise SaleError(f"Product {product_id} not found")

        price = product.price
        cart.append({
            "product": product,
            "quantity": quantity,
            "unit_price": price,
            "total_price": price * quantity,
            "serial_unit_ids": serial_unit_ids,
        })
    return cart


def _mark_units_sold(sale: Sale, product_id: int, unit_ids: list[int], user_id: int | None) -> None:
    for unit_id in unit_ids:
        unit = db.session.query(SerialUnit).filter_by(id=unit_id).first()
        if not unit or unit.product_id != product_id:
            raise SaleError(f"Serial unit {unit_id} does not belong to product {product_id}")
        if unit.status == "sold":
            raise SaleError(f"Serial unit {unit.serial_number} is already sold")

        previous_status = unit.status
        unit.status = "sold"
        unit.sold_date = today()
        unit.sale_id = sale.id
        unit.customer_id = sale.customer_id
        db.session.add(SerialUnitHistory(
            serial_unit_id=unit.id,
            action="sold",
            previous_status=previous_status,
            new_status="sold",
            previous_location=unit.location,
            new_location=unit.location,
            notes=f"Sold on receipt {sale.receipt_number}",
            performed_by_user_id=user_id,
        ))


def create_sale(
    *,
    items: list,
    payment_method: str = "cash",
    amount_paid: int | None = None,
    discount: int = 0,
    tax: int = 0,
    customer_id: int | None = None,
    customer_name: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> Sale:
    if payment_method not in SALE_PAYMENT_METHODS:
        raise SaleError(f"payment_method must be one of: {', '.join(SALE_PAYMENT_METHODS)}")
    if discount < 0 or tax < 0:
        raise SaleError("discount and tax must be >= 0")

    customer = None
    if customer_id is not None:
        customer = db.session.query(Customer).filter_by(id=customer_id).first()
        if not customer:
            raise SaleError("Customer not found")
    if payment_method == "wallet" and customer is None:
        raise SaleError("Wallet payments require a customer")

    cart = _parse_cart(items)
    subtotal = sum(line["total_price"] for line in cart)
    total = subtotal - discount + tax
    if total < 0:
        raise SaleError("Discount cannot exceed the subtotal")

    if payment_method == "wallet" or amount_paid is None:
        amount_paid = total
    if amount_paid < 0:
        raise SaleError("amount_paid must be >= 0")
    if payment_method != "credit" and amount_paid < total:
        raise SaleError("Insufficient payment", details={"total": total, "amount_paid": amount_paid})

    def _op():
        sale = Sale(
            receipt_number=next_document_number(document_type="receipt", prefix="RCP"),
            customer_id=customer.id if customer else None,
            customer_name=(customer_name or "").strip() or (customer.name if customer else WALK_IN_CUSTOMER),
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=total,
            amount_paid=amount_paid,
            change_given=max(0, amount_paid - total),
            payment_method=payment_method,
            notes=notes,
            sold_by_user_id=user_id,
        )
        db.session.add(sale)
        db.session.flush()

        for line in cart:
            product = line["product"]
            sale.items.append(SaleItem(
                product_id=product.id,
                product_name=product.name,
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                total_price=line["total_price"],
            ))
            try:
                apply_stock_change(
                    product_id=product.id,
                    delta=-line["quantity"],
                    transaction_type="sale",
                    unit_cost=product.unit_cost,
                    reference_id=sale.id,
                    notes=f"Sale {sale.receipt_number}",
                    user_id=user_id,
                )
            except InsufficientStockError:
                raise SaleError(
                    f"Insufficient stock for {product.name}",
                    details={"product_id": product.id, "requested_quantity": line["quantity"]},
                )
            _mark_units_sold(sale, product.id, line["serial_unit_ids"], user_id)

        if payment_method == "wallet" and total > 0:
            wallet_service.charge_for_sale(
                customer_id=customer.id,
                amount=total,
                sale_id=sale.id,
                receipt_number=sale.receipt_number,
                user_id=user_id,
            )

        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info(
        "Sale completed: %s total=%s method=%s", sale.receipt_number, sale.total, sale.payment_method
    )
    return sale


def get_sale(sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id).first()
    if not sale:
        raise SaleNotFoundError("Sale not found")
    return sale


def get_sale_by_receipt(receipt_number: str, *, include_voided: bool = False) -> Sale:
    """Exact receipt number match."""
    receipt_number = (receipt_number or "").strip()
    q = db.session.query(Sale).filter(Sale.receipt_number == receipt_number)
    if not include_voided:
        q = q.filter(Sale.deleted_at.is_(None))
    sale = q.first()
    if not sale:
        raise SaleNotFoundError("Receipt not found")
    return sale


def _day_bounds(from_date: date | None, to_date: date | None):
    start = datetime.combine(from_date, time.min) if from_date else None
    end = datetime.combine(to_date + timedelta(days=1), time.min) if to_date else None
    return start, end


def list_sales(
    *,
    from_date: date | None = None,
    to_date: date | None = None,
    search: str | None = None,
    payment_method: str | None = None,
    include_voided: bool = False,
    limit: int = 500,
) -> list[Sale]:
    q = db.session.query(Sale)
    if not include_voided:
        q = q.filter(Sale.deleted_at.is_(None))
    start, end = _day_bounds(from_date, to_date)
    if start:
        q = q.filter(Sale.created_at >= start)
    if end:
        q = q.filter(Sale.created_at < end)
    if payment_method:
        q = q.filter(Sale.payment_method == payment_method)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(Sale.receipt_number.ilike(pattern), Sale.customer_name.ilike(pattern)))
    return q.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()


def void_sale(*, sale_id: int, reason: str | None = None, user_id: int | None = None) -> Sale:
    def _op():
        sale = get_sale(sale_id)
        if sale.deleted_at is not None:
            raise SaleError("Sale is already voided")
        if db.session.query(Refund.id).filter_by(sale_id=sale.id).first():
            raise SaleError("Sale has refunds and cannot be voided")

        for item in sale.items:
            apply_stock_change(
                product_id=item.product_id,
                delta=item.quantity,
                transaction_type="return",
                reference_id=sale.id,
                notes=f"Void of sale {sale.receipt_number}",
                user_id=user_id,
            )

        for unit in db.session.query(SerialUnit).filter_by(sale_id=sale.id).all():
            db.session.add(SerialUnitHistory(
                serial_unit_id=unit.id,
                action="returned",
                previous_status=unit.status,
                new_status="returned",
                previous_location=unit.location,
                new_location=unit.location,
                notes=f"Sale {sale.receipt_number} voided",
                performed_by_user_id=user_id,
            ))
            unit.status = "returned"
            unit.sold_date = None

        if sale.payment_method == "wallet" and sale.customer_id and sale.total > 0:
            wallet_service.refund_to_wallet(
                customer_id=sale.customer_id,
                amount=sale.total,
                sale_id=sale.id,
                notes=f"Void of sale {sale.receipt_number}",
                user_id=user_id,
            )

        sale.deleted_at = utcnow()
        sale.void_reason = reason
        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    current_app.logger.info("Sale voided: %s", sale.receipt_number)
    return sale


def sales_summary(*, from_date: date | None = None, to_date: date | None = None) -> dict:
    """Count, revenue, refunds and net for non-voided sales in the range."""
    start, end = _day_bounds(from_date, to_date)

    sales_q = db.session.query(func.count(Sale.id), func.coalesce(func.sum(Sale.total), 0)).filter(
        Sale.deleted_at.is_(None)
    )
    refunds_q = db.session.query(func.coalesce(func.sum(Refund.amount), 0))
    if start:
        sales_q = sales_q.filter(Sale.created_at >= start)
        refunds_q = refunds_q.filter(Refund.created_at >= start)
    if end:
        sales_q = sales_q.filter(Sale.created_at < end)
        refunds_q = refunds_q.filter(Refund.created_at < end)

    count, revenue = sales_q.one()
    refunds = refunds_q.scalar()

    return {
        "sales_count": count,
        "revenue": int(revenue),
        "refunds": int(refunds),
        "net": int(revenue) - int(refunds),
    }
