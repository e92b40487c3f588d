# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Inquiry, Sale, SerialUnit


class CustomerNotFoundError(Exception):
    pass


class CustomerValidationError(ValueError):
    pass


def list_customers(*, search: str | None = None, limit: int = 500) -> list[Customer]:
    """Search matches name, phone, email or company (case-insensitive substring)."""
    q = db.session.query(Customer)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            Customer.name.ilike(pattern),
            Customer.phone.ilike(pattern),
            Customer.email.ilike(pattern),
            Customer.company.ilike(pattern),
        ))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise CustomerNotFoundError("Customer not found")
    return customer


def create_customer(*, patch: dict) -> Customer:
    if patch.get("email") and "@" not in patch["email"]:
        raise CustomerValidationError("email must be a valid address")
    customer = Customer(**patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(*, customer_id: int, patch: dict) -> Customer:
    if patch.get("email") and "@" not in patch["email"]:
        raise CustomerValidationError("email must be a valid address")
    customer = get_customer(customer_id)
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    """Customers with sales are kept for the sales history."""
    customer = get_customer(customer_id)
    if db.session.query(Sale.id).filter_by(customer_id=customer_id).first():
        raise CustomerValidationError("Customer has sales and cannot be deleted")
    if customer.wallet is not None and customer.wallet.balance > 0:
        raise CustomerValidationError("Customer has a wallet balance and cannot be deleted")
    for model in (Inquiry, SerialUnit):
        db.session.query(model).filter_by(customer_id=customer_id).update(
            {"customer_id": None}, synchronize_session=False
        )
    db.session.delete(customer)
    db.session.commit()
