from __future__ import annotations
from datetime import date, datetime
from techstore.time_utils import parse_iso_datetime, parse_iso_date

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, JSON, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 999,999,999 UGX
# This prevents database overflow issues and nonsensical prices
MAX_PRICE = 999_999_999

PRODUCT_CONDITIONS = {"new", "refurbished", "open_box", "used_like_new", "used_good", "damaged"}
UNIT_STATUSES = {"in_stock", "sold", "reserved", "in_repair", "returned", "damaged", "lost"}
PAYMENT_METHODS = {"cash", "card", "mobile_money", "bank_transfer", "credit"}
PAYMENT_SOURCES = {"cash_register", "bank"}


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects floats, decimals, bools and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    if isinstance(coltype, Float):
        if isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a number")
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{col.key} must be a number")

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, (date, str)):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date (YYYY-MM-DD)")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, JSON):
        return value

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # Empty strings on nullable non-text columns mean "clear"
        if raw == "" and col.nullable and not isinstance(col.type, (String, Text)):
            raw = None

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_money(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        amount = patch[field]
        if amount < 0:
            raise ValidationError(f"{field} must be >= 0")
        if amount > MAX_PRICE:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE:,}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_money(patch, "price")
    _check_money(patch, "unit_cost")

    for field in ("reorder_level", "reorder_quantity", "warranty_months"):
        if patch.get(field) is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")

    if patch.get("condition") and patch["condition"] not in PRODUCT_CONDITIONS:
        raise ValidationError(f"condition must be one of: {', '.join(sorted(PRODUCT_CONDITIONS))}")


def enforce_rules_serial_unit(patch: dict) -> None:
    if patch.get("status") and patch["status"] not in UNIT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(sorted(UNIT_STATUSES))}")
    if patch.get("condition") and patch["condition"] not in PRODUCT_CONDITIONS:
        raise ValidationError(f"condition must be one of: {', '.join(sorted(PRODUCT_CONDITIONS))}")
    _check_money(patch, "purchase_cost")

    start = patch.get("warranty_start_date")
    end = patch.get("warranty_end_date")
    if start and end and end < start:
        raise ValidationError("warranty_end_date must be on or after warranty_start_date")


def enforce_rules_supplier_payment(patch: dict) -> None:
    if patch.get("amount") is None or patch["amount"] <= 0:
        raise ValidationError("amount must be > 0")
    if patch.get("payment_method") and patch["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(sorted(PAYMENT_METHODS))}")
    if patch.get("payment_source") and patch["payment_source"] not in PAYMENT_SOURCES:
        raise ValidationError(f"payment_source must be one of: {', '.join(sorted(PAYMENT_SOURCES))}")
