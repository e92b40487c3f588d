# backend/techstore/services/products_service.py
"""
Products Service: public catalog queries and admin product management.

STOREFRONT:
Only is_active products are visible to the public. Visibility is switched on
automatically when stock or a unit lands in a storefront location (see
is_storefront_location), and manually from the admin console.

STOCK:
Products never have stock_quantity written directly here. Initial stock on
create goes through inventory_service.apply_stock_change so the ledger
starts with an adjustment row.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Inquiry, Product, PurchaseOrderItem, SaleItem, Supplier
from ..validation import ConflictError, ValidationError
from .concurrency import run_with_retry
from .inventory_service import apply_stock_change

# Used when a product has no reorder_level of its own
DEFAULT_LOW_STOCK_THRESHOLD = 5

CATALOG_SORTS = {
    "newest": (Product.created_at.desc(), Product.id.desc()),
    "price_asc": (Product.price.asc(), Product.id.asc()),
    "price_desc": (Product.price.desc(), Product.id.desc()),
    "name": (Product.name.asc(), Product.id.asc()),
}


class ProductNotFoundError(Exception):
    """Raised when a product does not exist (or is hidden from the storefront)."""
    pass


def is_storefront_location(location: str | None) -> bool:
    """True when the location name contains a storefront keyword (case-insensitive)."""
    if not location:
        return False
    lowered = location.lower()
    keywords = current_app.config.get("STOREFRONT_LOCATION_KEYWORDS") or ["store", "shop"]
    return any(keyword.lower() in lowered for keyword in keywords)


def _search_filter(search: str):
    pattern = f"%{search.strip()}%"
    return db.or_(
        Product.name.ilike(pattern),
        Product.description.ilike(pattern),
        Product.manufacturer.ilike(pattern),
        Product.model.ilike(pattern),
        Product.category.ilike(pattern),
    )


# =============================================================================
# PUBLIC CATALOG
# =============================================================================

def list_catalog(
    *,
    search: str | None = None,
    category: str | None = None,
    condition: str | None = None,
    min_price: int | None = None,
    max_price: int | None = None,
    featured_only: bool = False,
    in_stock_only: bool = False,
    sort: str | None = None,
) -> list[Product]:
    """Active products matching the storefront filters."""
    if sort and sort not in CATALOG_SORTS:
        raise ValidationError(f"sort must be one of: {', '.join(CATALOG_SORTS)}")
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationError("min_price cannot exceed max_price")

    query = db.session.query(Product).filter(Product.is_active.is_(True))

    if search and search.strip():
        query = query.filter(_search_filter(search))
    if category:
        query = query.filter(Product.category == category)
    if condition:
        query = query.filter(Product.condition == condition)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if featured_only:
        query = query.filter(Product.is_featured.is_(True))
    if in_stock_only:
        query = query.filter(Product.stock_quantity > 0)

    return query.order_by(*CATALOG_SORTS[sort or "newest"]).all()


def list_categories() -> list[dict]:
    rows = (
        db.session.query(Product.category, func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category)
        .order_by(Product.category.asc())
        .all()
    )
    return [{"category": category, "count": count} for category, count in rows]


def get_catalog_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, is_active=True).first()
    if not product:
        raise ProductNotFoundError("Product not found")
    return product


# =============================================================================
# ADMIN PRODUCT MANAGEMENT
# =============================================================================

def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    include_inactive: bool = True,
) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            _search_filter(search),
            Product.sku.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))
    if category:
        query = query.filter(Product.category == category)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        raise ProductNotFoundError("Product not found")
    return product


def _check_references(patch: dict, product_id: int | None = None) -> None:
    sku = patch.get("sku")
    if sku:
        query = db.session.query(Product.id).filter(Product.sku == sku)
        if product_id is not None:
            query = query.filter(Product.id != product_id)
        if query.first():
            raise ConflictError("SKU already exists.")

    supplier_id = patch.get("supplier_id")
    if supplier_id is not None and not db.session.query(Supplier.id).filter_by(id=supplier_id).first():
        raise ValidationError("Supplier not found")


def create_product(*, patch: dict, initial_stock: int = 0, user_id: int | None = None) -> Product:
    """
    Create product from a validated patch dict.

    initial_stock > 0 is booked as an "adjustment" inventory transaction.
    """
    if initial_stock < 0:
        raise ValidationError("stock_quantity must be >= 0")
    _check_references(patch)

    def _op():
        product = Product(stock_quantity=0, created_by_user_id=user_id)
        for key, value in patch.items():
            setattr(product, key, value)

        db.session.add(product)
        db.session.flush()

        if initial_stock:
            apply_stock_change(
                product_id=product.id,
                delta=initial_stock,
                transaction_type="adjustment",
                unit_cost=product.unit_cost,
                notes="Initial stock",
                user_id=user_id,
            )

        db.session.commit()
        return product

    product = run_with_retry(_op)
    current_app.logger.info("Product created: id=%s name=%s", product.id, product.name)
    return product


def update_product(*, product_id: int, patch: dict) -> Product:
    product = get_product(product_id)
    _check_references(patch, product_id=product_id)

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product


def delete_product(*, product_id: int) -> bool:
    """
    Delete a product with its serial units and stock ledger.

    Products referenced by sales or purchase orders cannot be deleted;
    deactivate them instead.
    """
    product = db.session.query(Product).filter_by(id=product_id).first()
    if not product:
        return False

    if db.session.query(SaleItem.id).filter_by(product_id=product_id).first() or \
            db.session.query(PurchaseOrderItem.id).filter_by(product_id=product_id).first():
        raise ConflictError("Product has sales or purchase order history; deactivate it instead.")

    db.session.query(Inquiry).filter_by(product_id=product_id).update(
        {"product_id": None}, synchronize_session=False
    )
    db.session.delete(product)
    db.session.commit()
    current_app.logger.info("Product deleted: id=%s", product_id)
    return True


def lookup_by_barcode(code: str) -> Product | None:
    """Exact barcode match (surrounding whitespace ignored)."""
    code = (code or "").strip()
    if not code:
        return None
    return db.session.query(Product).filter(Product.barcode == code).order_by(Product.id.asc()).first()


def low_stock_products() -> list[Product]:
    """Active products at or below their reorder level."""
    threshold = func.coalesce(Product.reorder_level, DEFAULT_LOW_STOCK_THRESHOLD)
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.stock_quantity <= threshold)
        .order_by(Product.stock_quantity.asc(), Product.name.asc())
        .all()
    )
