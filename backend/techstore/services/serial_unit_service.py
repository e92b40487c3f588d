# Overview: Service-layer operations for serial units; encapsulates business logic and database work.

"""
Serial Unit Service

WHY: High-value electronics are tracked per physical unit (serial number or
barcode) so staff can see where each unit is, whether it is sold, and its
warranty window.

HISTORY:
Every registration, status/location change and transfer appends a
SerialUnitHistory row in the same DB transaction as the change itself.
Plain field edits (notes, cost, dates) do not.

STOREFRONT VISIBILITY:
Transferring a unit into a storefront location (name contains "store" or
"shop") switches the owning product's is_active flag on.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, SerialUnit, SerialUnitHistory, StorageLocation, Supplier
from ..validation import UNIT_STATUSES, PRODUCT_CONDITIONS
from .concurrency import run_with_retry
from .products_service import is_storefront_location, lookup_by_barcode
from techstore.time_utils import today, utcnow


UNIT_FIELDS = {
    "product_id", "serial_number", "status", "condition", "location",
    "purchase_date", "purchase_cost", "supplier_id",
    "warranty_start_date", "warranty_end_date",
    "sold_date", "sale_id", "customer_id", "notes",
}

WARRANTY_EXPIRY_WINDOW_DAYS = 30


class SerialUnitNotFoundError(Exception):
    pass


class SerialUnitValidationError(ValueError):
    pass


def _add_history(
    unit: SerialUnit,
    *,
    action: str,
    previous_status: str | None = None,
    new_status: str | None = None,
    previous_location: str | None = None,
    new_location: str | None = None,
    notes: str | None = None,
    user_id: int | None = None,
) -> SerialUnitHistory:
    entry = SerialUnitHistory(
        serial_unit=unit,
        action=action,
        previous_status=previous_status,
        new_status=new_status,
        previous_location=previous_location,
        new_location=new_location,
        notes=notes,
        performed_by_user_id=user_id,
    )
    db.session.add(entry)
    return entry


def _validate_refs(patch: dict) -> None:
    if "status" in patch and patch["status"] not in UNIT_STATUSES:
        raise SerialUnitValidationError(f"status must be one of: {', '.join(sorted(UNIT_STATUSES))}")
    if patch.get("condition") and patch["condition"] not in PRODUCT_CONDITIONS:
        raise SerialUnitValidationError(f"condition must be one of: {', '.join(sorted(PRODUCT_CONDITIONS))}")
    if "product_id" in patch and not db.session.query(Product.id).filter_by(id=patch["product_id"]).first():
        raise SerialUnitValidationError("Product not found")
    if patch.get("supplier_id") is not None and not db.session.query(Supplier.id).filter_by(id=patch["supplier_id"]).first():
        raise SerialUnitValidationError("Supplier not found")


def get_unit(unit_id: int) -> SerialUnit:
    unit = db.session.query(SerialUnit).filter_by(id=unit_id).first()
    if not unit:
        raise SerialUnitNotFoundError("Serial unit not found")
    return unit


def register_unit(*, patch: dict, user_id: int | None = None) -> SerialUnit:
    """Register one unit and log a "created" history row."""
    if not patch.get("product_id") or not (patch.get("serial_number") or "").strip():
        raise SerialUnitValidationError("Product and serial number are required")

    patch = {k: v for k, v in patch.items() if k in UNIT_FIELDS}
    patch.setdefault("status", "in_stock")
    _validate_refs(patch)

    if patch["status"] == "sold" and not patch.get("sold_date"):
        patch["sold_date"] = today()

    def _op():
        unit = SerialUnit(**patch)
        db.session.add(unit)
        _add_history(
            unit,
            action="created",
            new_status=unit.status,
            new_location=unit.location,
            notes="Unit registered",
            user_id=user_id,
        )
        db.session.commit()
        return unit

    return run_with_retry(_op)


def quick_add_by_barcode(
    *,
    code: str,
    quantity: int = 1,
    status: str = "in_stock",
    condition: str | None = "new",
    location: str | None = None,
    purchase_date=None,
    purchase_cost: int | None = None,
    supplier_id: int | None = None,
    user_id: int | None = None,
) -> list[SerialUnit]:
    """
    Register `quantity` units of the product whose barcode equals `code`.

    Serial number is the product barcode; products without one get
    "<sku or UNIT>-<epoch ms>-<i>".
    """
    product = lookup_by_barcode(code)
    if not product:
        raise SerialUnitNotFoundError(f"No product found with barcode: {(code or '').strip()}")
    if quantity < 1:
        raise SerialUnitValidationError("quantity must be >= 1")

    _validate_refs({"status": status, "condition": condition, "supplier_id": supplier_id})

    def _op():
        stamp = int(utcnow().timestamp() * 1000)
        units = []
        for i in range(quantity):
            unit = SerialUnit(
                product_id=product.id,
                serial_number=product.barcode or f"{product.sku or 'UNIT'}-{stamp}-{i}",
                status=status,
                condition=condition or "new",
                location=location or None,
                purchase_date=purchase_date,
                purchase_cost=purchase_cost,
                supplier_id=supplier_id,
                sold_date=today() if status == "sold" else None,
                notes=f"Quick added via barcode scan ({quantity} units)",
            )
            db.session.add(unit)
            _add_history(
                unit,
                action="created",
                new_status=status,
                new_location=location or None,
                notes="Stock registered via barcode scan",
                user_id=user_id,
            )
            units.append(unit)
        db.session.commit()
        return units

    units = run_with_retry(_op)
    current_app.logger.info("Quick-added %s unit(s) of product_id=%s", len(units), product.id)
    return units


def update_unit(*, unit_id: int, patch: dict, user_id: int | None = None) -> SerialUnit:
    """
    Apply field changes. An "updated" history row is written only when
    status or location changed. Moving to sold stamps sold_date (today)
    unless one is supplied.
    """
    patch = {k: v for k, v in patch.items() if k in UNIT_FIELDS}
    if "serial_number" in patch and not (patch["serial_number"] or "").strip():
        raise SerialUnitValidationError("serial number cannot be blank")
    _validate_refs(patch)

    def _op():
        unit = get_unit(unit_id)
        previous_status = unit.status
        previous_location = unit.location

        for key, value in patch.items():
            setattr(unit, key, value)

        if unit.status == "sold" and previous_status != "sold" and not unit.sold_date:
            unit.sold_date = today()

        if unit.status != previous_status or unit.location != previous_location:
            _add_history(
                unit,
                action="updated",
                previous_status=previous_status,
                new_status=unit.status,
                previous_location=previous_location,
                new_location=unit.location,
                notes=patch.get("notes"),
                user_id=user_id,
            )

        db.session.commit()
        return unit

    return run_with_retry(_op)


def transfer_unit(*, unit_id: int, location: str, user_id: int | None = None) -> dict:
    """
    Move a unit to another location.

    Returns {"unit", "product_activated", "unchanged"}. Transferring to the
    unit's current location is a no-op flagged unchanged.

    product_activated is True only when the transfer itself made the product
    visible on the storefront.
    """
    location = (location or "").strip()
    if not location:
        raise SerialUnitValidationError("Please select a location")

    def _op():
        unit = get_unit(unit_id)
        if unit.location == location:
            return {"unit": unit, "product_activated": False, "unchanged": True}

        previous_location = unit.location
        unit.location = location
        _add_history(
            unit,
            action="transferred",
            previous_status=unit.status,
            new_status=unit.status,
            previous_location=previous_location,
            new_location=location,
            notes=f"Transferred from {previous_location or 'unassigned'} to {location}",
            user_id=user_id,
        )

        activated = False
        product = unit.product
        if is_storefront_location(location) and not product.is_active:
            product.is_active = True
            activated = True
            current_app.logger.info("Product %s made visible by transfer to %s", product.id, location)

        db.session.commit()
        return {"unit": unit, "product_activated": activated, "unchanged": False}

    return run_with_retry(_op)


def delete_unit(unit_id: int) -> None:
    unit = get_unit(unit_id)
    db.session.delete(unit)
    db.session.commit()


def get_unit_history(unit_id: int) -> list[SerialUnitHistory]:
    get_unit(unit_id)
    return (
        db.session.query(SerialUnitHistory)
        .filter_by(serial_unit_id=unit_id)
        .order_by(SerialUnitHistory.created_at.desc(), SerialUnitHistory.id.desc())
        .all()
    )


def list_units(*, search: str | None = None, status: str | None = None) -> list[SerialUnit]:
    q = db.session.query(SerialUnit).join(Product, SerialUnit.product_id == Product.id)
    if status and status != "all":
        q = q.filter(SerialUnit.status == status)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        q = q.filter(db.or_(
            SerialUnit.serial_number.ilike(pattern),
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
        ))
    return q.order_by(SerialUnit.created_at.desc(), SerialUnit.id.desc()).all()


def unit_stats(*, as_of=None) -> dict:
    as_of = as_of or today()
    counts = dict(
        db.session.query(SerialUnit.status, func.count(SerialUnit.id))
        .group_by(SerialUnit.status)
        .all()
    )
    total_value = db.session.query(func.coalesce(func.sum(SerialUnit.purchase_cost), 0)).scalar()
    expiring = db.session.query(func.count(SerialUnit.id)).filter(
        SerialUnit.warranty_end_date > as_of,
        SerialUnit.warranty_end_date < as_of + timedelta(days=WARRANTY_EXPIRY_WINDOW_DAYS),
    ).scalar()

    return {
        "total": sum(counts.values()),
        "in_stock": counts.get("in_stock", 0),
        "sold": counts.get("sold", 0),
        "in_repair": counts.get("in_repair", 0),
        "total_purchase_value": int(total_value or 0),
        "warranty_expiring": expiring or 0,
    }


# =============================================================================
# STORAGE LOCATIONS
# =============================================================================

def list_locations(*, include_inactive: bool = False) -> list[StorageLocation]:
    q = db.session.query(StorageLocation)
    if not include_inactive:
        q = q.filter(StorageLocation.is_active.is_(True))
    return q.order_by(StorageLocation.name.asc()).all()


def create_location(*, name: str, description: str | None = None) -> StorageLocation:
    name = (name or "").strip()
    if not name:
        raise SerialUnitValidationError("Location name is required")

    existing = db.session.query(StorageLocation).filter(func.lower(StorageLocation.name) == name.lower()).first()
    if existing:
        if existing.is_active:
            raise SerialUnitValidationError("Location already exists")
        existing.is_active = True
        existing.description = description or existing.description
        db.session.commit()
        return existing

    location = StorageLocation(name=name, description=description)
    db.session.add(location)
    db.session.commit()
    return location


def deactivate_location(location_id: int) -> StorageLocation:
    location = db.session.query(StorageLocation).filter_by(id=location_id).first()
    if not location:
        raise SerialUnitNotFoundError("Location not found")
    location.is_active = False
    db.session.commit()
    return location
