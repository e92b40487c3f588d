# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Suppliers and the payments made to them. A payment may be tied to one of the
supplier's purchase orders; the per-supplier balance compares the value of
non-cancelled orders with the payments recorded.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Supplier, SupplierPayment, PurchaseOrder
from techstore.time_utils import today


class SupplierNotFoundError(Exception):
    pass


class SupplierValidationError(ValueError):
    pass


# =============================================================================
# SUPPLIERS
# =============================================================================

def list_suppliers(*, search: str | None = None, include_inactive: bool = True) -> list[Supplier]:
    q = db.session.query(Supplier)
    if not include_inactive:
        q = q.filter(Supplier.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            Supplier.name.ilike(pattern),
            Supplier.contact_person.ilike(pattern),
            Supplier.email.ilike(pattern),
            Supplier.phone.ilike(pattern),
        ))
    return q.order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id).first()
    if not supplier:
        raise SupplierNotFoundError("Supplier not found")
    return supplier


def create_supplier(*, patch: dict) -> Supplier:
    supplier = Supplier(**patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)
    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.commit()
    return supplier


def delete_supplier(supplier_id: int) -> bool:
    """
    Hard delete when nothing references the supplier, otherwise deactivate.

    Returns True when the row was deleted, False when it was only deactivated.
    """
    supplier = get_supplier(supplier_id)

    has_orders = db.session.query(PurchaseOrder.id).filter_by(supplier_id=supplier_id).first()
    has_payments = db.session.query(SupplierPayment.id).filter_by(supplier_id=supplier_id).first()
    if has_orders or has_payments:
        supplier.is_active = False
        db.session.commit()
        return False

    db.session.delete(supplier)
    db.session.commit()
    return True


# =============================================================================
# SUPPLIER PAYMENTS
# =============================================================================

def record_payment(*, patch: dict, user_id: int | None = None) -> SupplierPayment:
    """
    Record a payment to a supplier.

    patch is pre-validated (validate_payload + enforce_rules_supplier_payment).
    The purchase order, when given, must belong to the same supplier.
    """
    supplier_id = patch.get("supplier_id")
    if not supplier_id:
        raise SupplierValidationError("Please select a supplier")
    get_supplier(supplier_id)

    amount = patch.get("amount")
    if amount is None or amount <= 0:
        raise SupplierValidationError("Please enter a valid amount")

    po_id = patch.get("purchase_order_id")
    if po_id is not None:
        po = db.session.query(PurchaseOrder).filter_by(id=po_id).first()
        if not po:
            raise SupplierValidationError("Purchase order not found")
        if po.supplier_id != supplier_id:
            raise SupplierValidationError("Purchase order does not belong to this supplier")

    payment = SupplierPayment(**patch)
    if payment.payment_date is None:
        payment.payment_date = today()
    payment.paid_by_user_id = user_id

    db.session.add(payment)
    db.session.commit()

    current_app.logger.info(
        "Supplier payment recorded: supplier_id=%s amount=%s po_id=%s", supplier_id, amount, po_id
    )
    return payment


def list_payments(
    *,
    supplier_id: int | None = None,
    search: str | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[SupplierPayment]:
    q = db.session.query(SupplierPayment).join(Supplier, SupplierPayment.supplier_id == Supplier.id)
    if supplier_id is not None:
        q = q.filter(SupplierPayment.supplier_id == supplier_id)
    if from_date:
        q = q.filter(SupplierPayment.payment_date >= from_date)
    if to_date:
        q = q.filter(SupplierPayment.payment_date <= to_date)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            Supplier.name.ilike(pattern),
            SupplierPayment.reference_number.ilike(pattern),
            SupplierPayment.bank_name.ilike(pattern),
        ))
    return q.order_by(SupplierPayment.payment_date.desc(), SupplierPayment.id.desc()).all()


def delete_payment(payment_id: int) -> None:
    payment = db.session.query(SupplierPayment).filter_by(id=payment_id).first()
    if not payment:
        raise SupplierNotFoundError("Payment not found")
    db.session.delete(payment)
    db.session.commit()


def payment_totals(*, month_of: date | None = None) -> dict:
    """Totals for the payments page: all time, this month, count."""
    month_of = month_of or today()
    month_start = month_of.replace(day=1)

    total, count = db.session.query(
        func.coalesce(func.sum(SupplierPayment.amount), 0),
        func.count(SupplierPayment.id),
    ).one()
    this_month = db.session.query(func.coalesce(func.sum(SupplierPayment.amount), 0)).filter(
        SupplierPayment.payment_date >= month_start,
        SupplierPayment.payment_date <= month_of,
    ).scalar()

    return {"total_paid": int(total), "this_month": int(this_month), "count": count}


def supplier_balances() -> list[dict]:
    """Per supplier: value of non-cancelled orders, total paid, outstanding."""
    ordered = dict(
        db.session.query(PurchaseOrder.supplier_id, func.coalesce(func.sum(PurchaseOrder.total_amount), 0))
        .filter(PurchaseOrder.status != "cancelled")
        .group_by(PurchaseOrder.supplier_id)
        .all()
    )
    paid = dict(
        db.session.query(SupplierPayment.supplier_id, func.coalesce(func.sum(SupplierPayment.amount), 0))
        .group_by(SupplierPayment.supplier_id)
        .all()
    )

    rows = []
    for supplier in db.session.query(Supplier).order_by(Supplier.name.asc()).all():
        ordered_total = int(ordered.get(supplier.id, 0))
        paid_total = int(paid.get(supplier.id, 0))
        if not (ordered_total or paid_total or supplier.is_active):
            continue
        rows.append({
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "ordered_total": ordered_total,
            "paid_total": paid_total,
            "balance": ordered_total - paid_total,
        })
    return rows
