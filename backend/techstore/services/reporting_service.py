# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from sqlalchemy import case, func

from techstore.extensions import db
from techstore.models import Product, PurchaseOrder, SerialUnit
from techstore.services.inquiry_service import count_open_inquiries
from techstore.services.inventory_service import inventory_value_summary
from techstore.services.products_service import low_stock_products
from techstore.services.receive_service import PENDING_STATUSES
from techstore.services.sales_service import sales_summary
from techstore.services.wallet_service import wallet_totals
from techstore.time_utils import today as current_day


def dashboard_summary(*, today: date | None = None) -> dict:
    """Headline numbers for the admin dashboard."""
    day = today or current_day()

    sales_today = sales_summary(from_date=day, to_date=day)

    product_count, active_count = db.session.query(
        func.count(Product.id),
        func.coalesce(func.sum(case((Product.is_active.is_(True), 1), else_=0)), 0),
    ).one()

    pending_orders = (
        db.session.query(func.count(PurchaseOrder.id))
        .filter(PurchaseOrder.status.in_(PENDING_STATUSES))
        .scalar()
    )
    units_in_stock = (
        db.session.query(func.count(SerialUnit.id))
        .filter(SerialUnit.status == "in_stock")
        .scalar()
    )
    wallets = wallet_totals()

    return {
        "date": day.isoformat(),
        "sales_today": sales_today["sales_count"],
        "revenue_today": sales_today["revenue"],
        "refunds_today": sales_today["refunds"],
        "net_today": sales_today["net"],
        "product_count": product_count,
        "active_products": int(active_count),
        "low_stock_count": len(low_stock_products()),
        "open_inquiries": count_open_inquiries(),
        "pending_purchase_orders": pending_orders,
        "units_in_stock": units_in_stock,
        "inventory": inventory_value_summary(),
        "wallet_balance_total": wallets["total_balance"],
        "active_wallets": wallets["active_wallets"],
    }
