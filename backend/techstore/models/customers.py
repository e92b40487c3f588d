from __future__ import annotations

from ..extensions import db
from techstore.time_utils import to_utc_z


class Customer(db.Model):
    """
    Walk-in or account customer.

    WHY: Sales, inquiries and prepaid wallet balances are attributed to a
    customer record so the counter can look people up by name or phone.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_phone", "phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    company = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "company": self.company,
            "address": self.address,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CustomerWallet(db.Model):
    """
    Prepaid balance held on behalf of a customer.

    One wallet per customer, created lazily by the first deposit.

    BALANCE:
    balance is only changed by wallet_service, through atomic
    "balance = balance + delta" updates (withdrawals additionally guard
    "WHERE balance >= amount"). Every change appends a WalletTransaction
    in the same DB transaction.
    """
    __tablename__ = "customer_wallets"
    __table_args__ = (
        db.UniqueConstraint("customer_id", name="uq_customer_wallets_customer"),
        db.CheckConstraint("balance >= 0", name="ck_customer_wallets_balance_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    balance = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("wallet", uselist=False, lazy=True, cascade="all, delete-orphan"))
    transactions = db.relationship(
        "WalletTransaction",
        backref="wallet",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="WalletTransaction.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "customer_phone": self.customer.phone if self.customer else None,
            "balance": self.balance,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class WalletTransaction(db.Model):
    """
    Append-only wallet ledger.

    amount is signed: deposits positive, withdrawals and wallet purchases
    negative. balance_after is the wallet balance right after this entry.
    """
    __tablename__ = "wallet_transactions"
    __table_args__ = (
        db.Index("ix_wallet_transactions_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="CASCADE"), nullable=False)
    wallet_id = db.Column(db.Integer, db.ForeignKey("customer_wallets.id", ondelete="CASCADE"), nullable=False, index=True)

    # deposit, withdrawal, purchase
    transaction_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Integer, nullable=False)
    balance_after = db.Column(db.Integer, nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "wallet_id": self.wallet_id,
            "transaction_type": self.transaction_type,
            "amount": self.amount,
            "balance_after": self.balance_after,
            "sale_id": self.sale_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
