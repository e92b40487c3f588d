# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

# backend/techstore/services/inventory_service.py
"""
Inventory invariants

Stock model:
- Product.stock_quantity is a counter, never written with a client-computed value.
- Every change is a single "stock_quantity = stock_quantity + delta" UPDATE
  followed by an InventoryTransaction row recording previous/new stock, in
  the same DB transaction as the workflow that caused it.
- Removals (negative deltas) are conditional: the UPDATE only matches while
  the result stays >= 0, so concurrent sales cannot oversell.

Transaction types:
- purchase: stock received against a purchase order
- sale: stock sold at the point of sale
- return: refunded or voided sale lines put back on the shelf
- adjustment: manual correction or initial stock
- damage: written-off units
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, InventoryTransaction
from .concurrency import atomic_increment, run_with_retry


TRANSACTION_TYPES = {"sale", "purchase", "adjustment", "return", "damage"}


class InventoryError(ValueError):
    """Raised for invalid stock movements."""
    pass


class InsufficientStockError(InventoryError):
    """Raised when a removal would drive stock below zero."""
    pass


def apply_stock_change(
    *,
    product_id: int,
    delta: int,
    transaction_type: str,
    unit_cost: int | None = None,
    reference_id: str | int | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> InventoryTransaction:
    """
    Core stock movement without commit.

    Callers own the transaction: receiving, sales, refunds and adjustments
    call this once per line and commit (or roll back) the whole workflow.
    """
    if transaction_type not in TRANSACTION_TYPES:
        raise InventoryError(f"transaction_type must be one of: {', '.join(sorted(TRANSACTION_TYPES))}")
    if transaction_type in {"sale", "damage"} and delta > 0:
        raise InventoryError(f"{transaction_type} must remove stock")
    if transaction_type in {"purchase", "return"} and delta < 0:
        raise InventoryError(f"{transaction_type} must add stock")

    new_stock = atomic_increment(
        Product,
        product_id,
        "stock_quantity",
        delta,
        minimum=0 if delta < 0 else None,
    )

    if new_stock is None:
        if not db.session.query(Product.id).filter_by(id=product_id).first():
            raise InventoryError("Product not found")
        current = db.session.query(Product.stock_quantity).filter_by(id=product_id).scalar()
        raise InsufficientStockError(
            f"Insufficient stock for product {product_id}: have {current}, need {-delta}"
        )

    tx = InventoryTransaction(
        product_id=product_id,
        transaction_type=transaction_type,
        quantity=delta,
        previous_stock=new_stock - delta,
        new_stock=new_stock,
        unit_cost=unit_cost,
        reference_id=str(reference_id) if reference_id is not None else None,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def adjust_stock(
    *,
    product_id: int,
    new_quantity: int | None = None,
    delta: int | None = None,
    reason: str | None = None,
    transaction_type: str = "adjustment",
    user_id: int | None = None,
) -> InventoryTransaction:
    """
    Manual stock correction from the admin console.

    Exactly one of new_quantity (absolute count) or delta must be given.
    transaction_type may be "adjustment" or "damage".
    """
    if (new_quantity is None) == (delta is None):
        raise InventoryError("Provide exactly one of new_quantity or delta")
    if new_quantity is not None and new_quantity < 0:
        raise InventoryError("new_quantity must be >= 0")
    if transaction_type not in {"adjustment", "damage"}:
        raise InventoryError("transaction_type must be adjustment or damage")

    def _op():
        product = db.session.query(Product).filter_by(id=product_id).first()
        if not product:
            raise InventoryError("Product not found")

        change = delta if delta is not None else new_quantity - product.stock_quantity
        if change == 0:
            raise InventoryError("Adjustment does not change stock")

        tx = apply_stock_change(
            product_id=product_id,
            delta=change,
            transaction_type=transaction_type,
            notes=reason or "Manual adjustment",
            user_id=user_id,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op)


def list_transactions(
    *,
    product_id: int | None = None,
    transaction_type: str | None = None,
    limit: int = 200,
) -> list[InventoryTransaction]:
    q = db.session.query(InventoryTransaction)
    if product_id is not None:
        q = q.filter(InventoryTransaction.product_id == product_id)
    if transaction_type:
        q = q.filter(InventoryTransaction.transaction_type == transaction_type)

    return q.order_by(
        InventoryTransaction.created_at.desc(),
        InventoryTransaction.id.desc(),
    ).limit(limit).all()


def inventory_value_summary() -> dict:
    """Totals shown on the inventory page header."""
    total_units, cost_value, retail_value = db.session.query(
        db.func.coalesce(db.func.sum(Product.stock_quantity), 0),
        db.func.coalesce(db.func.sum(Product.stock_quantity * db.func.coalesce(Product.unit_cost, 0)), 0),
        db.func.coalesce(db.func.sum(Product.stock_quantity * Product.price), 0),
    ).filter(Product.is_active.is_(True)).one()

    return {
        "total_units": int(total_units),
        "cost_value": int(cost_value),
        "retail_value": int(retail_value),
    }
