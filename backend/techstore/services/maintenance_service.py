# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date, timedelta

from flask import current_app

from ..extensions import db
from ..models import SerialUnit
from techstore.time_utils import today as current_date


def cleanup_sold_units(*, retention_days: int | None = None, today: date | None = None) -> int:
    """
    Delete sold serial units whose sold_date is older than retention_days.

    Comparison is on dates: with the default 4 days, a unit sold 5 days ago
    is removed and one sold 3 days ago is kept. Units without a sold_date
    are never removed. History rows go with their unit.
    """
    if retention_days is None:
        retention_days = current_app.config.get("SOLD_UNIT_RETENTION_DAYS", 4)
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")

    cutoff = (today or current_date()) - timedelta(days=retention_days)

    units = db.session.query(SerialUnit).filter(
        SerialUnit.status == "sold",
        SerialUnit.sold_date.isnot(None),
        SerialUnit.sold_date < cutoff,
    ).all()

    # ORM delete so unit history is cascaded
    for unit in units:
        db.session.delete(unit)
    db.session.commit()

    if units:
        current_app.logger.info("Sold unit cleanup removed %s unit(s) sold before %s", len(units), cutoff)
    return len(units)


def try_cleanup_sold_units() -> int | None:
    """
    Best-effort cleanup run when the serial unit list is opened.

    Failures are logged and swallowed so they never block the list.
    """
    try:
        return cleanup_sold_units()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to clean up old sold units")
        return None
