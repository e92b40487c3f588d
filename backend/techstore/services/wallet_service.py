# Overview: Service-layer operations for customer wallets; encapsulates business logic and database work.

"""
Customer Wallet Service

WHY: Customers can leave money on account (deposits) and spend it later at
the counter or take it back (withdrawals).

BALANCE INVARIANTS:
- balance never goes below zero
- every change is a single atomic UPDATE:
    deposit:    balance = balance + :amount
    withdrawal: balance = balance - :amount WHERE balance >= :amount
  so two concurrent withdrawals cannot both spend the same money
- every change appends a WalletTransaction (signed amount, balance_after)
  in the same DB transaction

The wallet row is created by the first deposit.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, CustomerWallet, WalletTransaction
from .concurrency import atomic_increment, run_with_retry


HISTORY_LIMIT = 50


class WalletNotFoundError(Exception):
    pass


class WalletValidationError(ValueError):
    pass


class InsufficientBalanceError(WalletValidationError):
    pass


def _require_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise WalletNotFoundError("Customer not found")
    return customer


def _validate_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise WalletValidationError("Please enter a valid amount")


def _get_or_create_wallet(customer_id: int) -> CustomerWallet:
    wallet = db.session.query(CustomerWallet).filter_by(customer_id=customer_id).first()
    if wallet:
        return wallet
    try:
        with db.session.begin_nested():
            wallet = CustomerWallet(customer_id=customer_id, balance=0)
            db.session.add(wallet)
    except IntegrityError:
        # Created concurrently
        wallet = db.session.query(CustomerWallet).filter_by(customer_id=customer_id).one()
    return wallet


def _post(
    wallet: CustomerWallet,
    *,
    delta: int,
    transaction_type: str,
    notes: str | None,
    user_id: int | None,
    sale_id: int | None = None,
) -> WalletTransaction:
    """Apply delta atomically and append the ledger row. No commit."""
    new_balance = atomic_increment(CustomerWallet, wallet.id, "balance", delta, minimum=0)
    if new_balance is None:
        raise InsufficientBalanceError("Insufficient balance")

    tx = WalletTransaction(
        customer_id=wallet.customer_id,
        wallet_id=wallet.id,
        transaction_type=transaction_type,
        amount=delta,
        balance_after=new_balance,
        sale_id=sale_id,
        notes=notes,
        created_by_user_id=user_id,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def deposit(*, customer_id: int, amount: int, notes: str | None = None, user_id: int | None = None) -> WalletTransaction:
    _validate_amount(amount)

    def _op():
        _require_customer(customer_id)
        wallet = _get_or_create_wallet(customer_id)
        db.session.flush()
        tx = _post(wallet, delta=amount, transaction_type="deposit", notes=notes, user_id=user_id)
        db.session.commit()
        return tx

    tx = run_with_retry(_op)
    current_app.logger.info("Wallet deposit: customer_id=%s amount=%s balance=%s", customer_id, amount, tx.balance_after)
    return tx


def withdraw(*, customer_id: int, amount: int, notes: str | None = None, user_id: int | None = None) -> WalletTransaction:
    _validate_amount(amount)

    def _op():
        _require_customer(customer_id)
        wallet = db.session.query(CustomerWallet).filter_by(customer_id=customer_id).first()
        if not wallet:
            raise InsufficientBalanceError("Insufficient balance")
        tx = _post(wallet, delta=-amount, transaction_type="withdrawal", notes=notes, user_id=user_id)
        db.session.commit()
        return tx

    tx = run_with_retry(_op)
    current_app.logger.info("Wallet withdrawal: customer_id=%s amount=%s balance=%s", customer_id, amount, tx.balance_after)
    return tx


def charge_for_sale(*, customer_id: int, amount: int, sale_id: int, receipt_number: str, user_id: int | None = None) -> WalletTransaction:
    """Spend wallet money on a sale. Runs inside the caller's transaction."""
    _validate_amount(amount)
    wallet = db.session.query(CustomerWallet).filter_by(customer_id=customer_id).first()
    if not wallet:
        raise InsufficientBalanceError("Insufficient balance")
    return _post(
        wallet,
        delta=-amount,
        transaction_type="purchase",
        notes=f"Payment for sale {receipt_number}",
        user_id=user_id,
        sale_id=sale_id,
    )


def refund_to_wallet(*, customer_id: int, amount: int, sale_id: int, notes: str, user_id: int | None = None) -> WalletTransaction:
    """Credit money back to the wallet (voids and refunds of wallet sales). No commit."""
    _validate_amount(amount)
    wallet = _get_or_create_wallet(customer_id)
    db.session.flush()
    return _post(wallet, delta=amount, transaction_type="deposit", notes=notes, user_id=user_id, sale_id=sale_id)


def get_wallet(customer_id: int) -> CustomerWallet:
    _require_customer(customer_id)
    wallet = db.session.query(CustomerWallet).filter_by(customer_id=customer_id).first()
    if not wallet:
        raise WalletNotFoundError("Customer has no wallet")
    return wallet


def list_wallets(*, search: str | None = None) -> list[CustomerWallet]:
    q = db.session.query(CustomerWallet).join(Customer, CustomerWallet.customer_id == Customer.id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(Customer.name.ilike(pattern), Customer.phone.ilike(pattern)))
    return q.order_by(CustomerWallet.updated_at.desc(), CustomerWallet.id.desc()).all()


def wallet_history(customer_id: int, *, limit: int = HISTORY_LIMIT) -> list[WalletTransaction]:
    _require_customer(customer_id)
    return (
        db.session.query(WalletTransaction)
        .filter_by(customer_id=customer_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
        .all()
    )


def wallet_totals() -> dict:
    total, active = db.session.query(
        func.coalesce(func.sum(CustomerWallet.balance), 0),
        func.coalesce(func.sum(case((CustomerWallet.balance > 0, 1), else_=0)), 0),
    ).one()
    return {"total_balance": int(total), "active_wallets": int(active)}
