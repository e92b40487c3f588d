# Overview: Service-layer operations for data backup; encapsulates business logic and database work.

"""
Data Backup Service

WHY: The shop owner downloads a JSON snapshot of the business tables from the
admin console and keeps it off-site.

FORMAT:
{
  "version": "1.0",
  "created_at": "...Z",
  "app": BACKUP_APP_NAME,
  "tables": {"products": [...], ...},
  "metadata": {"total_records": N, "tables_count": M}
}

Each table is read up to BACKUP_ROW_LIMIT rows. A table that fails to read is
logged and exported as an empty list so the rest of the backup still works.
Auth tables (users, sessions, permissions) are never exported.
"""

from __future__ import annotations

from datetime import date, datetime

from flask import current_app

from ..extensions import db
from ..models import (
    Customer,
    CustomerWallet,
    Inquiry,
    InventoryTransaction,
    Product,
    PurchaseOrder,
    PurchaseOrderItem,
    Refund,
    Sale,
    SaleItem,
    SerialUnit,
    SerialUnitHistory,
    StorageLocation,
    Supplier,
    SupplierPayment,
    WalletTransaction,
)
from ..validation import ValidationError
from techstore.time_utils import to_utc_z, utcnow


BACKUP_VERSION = "1.0"

BACKUP_TABLES = {
    "products": Product,
    "customers": Customer,
    "suppliers": Supplier,
    "sales": Sale,
    "sale_items": SaleItem,
    "purchase_orders": PurchaseOrder,
    "purchase_order_items": PurchaseOrderItem,
    "inventory_transactions": InventoryTransaction,
    "serial_units": SerialUnit,
    "serial_unit_history": SerialUnitHistory,
    "refunds": Refund,
    "supplier_payments": SupplierPayment,
    "inquiries": Inquiry,
    "customer_wallets": CustomerWallet,
    "wallet_transactions": WalletTransaction,
    "storage_locations": StorageLocation,
}


def _serialize_value(value):
    if isinstance(value, datetime):
        return to_utc_z(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def _row_to_dict(model, row) -> dict:
    return {c.key: _serialize_value(getattr(row, c.key)) for c in model.__mapper__.columns}


def _export_table(name: str, model, limit: int) -> list[dict]:
    try:
        rows = db.session.query(model).order_by(model.id).limit(limit).all()
        return [_row_to_dict(model, row) for row in rows]
    except Exception:
        current_app.logger.exception("Backup: failed to export table %s", name)
        db.session.rollback()
        return []


def build_backup(*, tables: list[str] | None = None) -> dict:
    if tables:
        unknown = sorted(set(tables) - set(BACKUP_TABLES))
        if unknown:
            raise ValidationError(f"Unknown backup tables: {', '.join(unknown)}")
        selected = [name for name in BACKUP_TABLES if name in set(tables)]
    else:
        selected = list(BACKUP_TABLES)

    limit = current_app.config.get("BACKUP_ROW_LIMIT", 10000)
    exported = {name: _export_table(name, BACKUP_TABLES[name], limit) for name in selected}
    total = sum(len(rows) for rows in exported.values())

    current_app.logger.info("Backup built: %s tables, %s records", len(exported), total)
    return {
        "version": BACKUP_VERSION,
        "created_at": to_utc_z(utcnow()),
        "app": current_app.config.get("BACKUP_APP_NAME", "techstore"),
        "tables": exported,
        "metadata": {
            "total_records": total,
            "tables_count": len(exported),
        },
    }


def backup_filename(on_date: date) -> str:
    return f"techstore-backup-{on_date.isoformat()}.json"
