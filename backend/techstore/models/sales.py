from __future__ import annotations

from ..extensions import db
from techstore.time_utils import to_utc_z


class Sale(db.Model):
    """
    Completed point-of-sale transaction.

    IMMUTABLE: sales are never edited after creation. Voiding sets deleted_at
    (soft delete) and restocks the items; refunds are separate Refund rows.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
        db.Index("ix_sales_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable receipt number (e.g., "RCP-20261019-0007")
    receipt_number = db.Column(db.String(64), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    subtotal = db.Column(db.Integer, nullable=False)
    discount = db.Column(db.Integer, nullable=False, default=0)
    tax = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False)
    amount_paid = db.Column(db.Integer, nullable=False)
    change_given = db.Column(db.Integer, nullable=False, default=0)

    # cash, card, mobile_money, bank_transfer, credit, wallet
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    notes = db.Column(db.Text, nullable=True)

    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    # Void audit trail
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SaleItem.id",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} receipt={self.receipt_number!r} total={self.total}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "receipt_number": self.receipt_number,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
            "amount_paid": self.amount_paid,
            "change_given": self.change_given,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "sold_by_user_id": self.sold_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "void_reason": self.void_reason,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot at sale time
    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
            "created_at": to_utc_z(self.created_at),
        }


class Refund(db.Model):
    """
    Money returned against a historical sale.

    REFUND TYPES:
    - full: the whole sale total, every line restocked
    - items: sum of selected line quantities x unit price
    - custom: manually entered amount, restocks the selected lines if any

    items_returned is the snapshot of restocked lines:
    [{"product_id", "product_name", "quantity", "unit_price"}]
    """
    __tablename__ = "refunds"
    __table_args__ = (
        db.Index("ix_refunds_receipt_number", "receipt_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True)
    receipt_number = db.Column(db.String(64), nullable=False)

    refund_type = db.Column(db.String(16), nullable=False, default="full")
    amount = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.Text, nullable=False)
    items_returned = db.Column(db.JSON, nullable=True)

    refunded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("refunds", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "receipt_number": self.receipt_number,
            "customer_name": self.sale.customer_name if self.sale else None,
            "refund_type": self.refund_type,
            "amount": self.amount,
            "reason": self.reason,
            "items_returned": self.items_returned or [],
            "refunded_by_user_id": self.refunded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
