from __future__ import annotations

from ..extensions import db
from techstore.time_utils import to_utc_z


class Product(db.Model):
    """
    Catalog item shown on the storefront and managed from the admin console.

    STOCK:
    stock_quantity is a denormalized counter. It is only ever changed through
    inventory_service.apply_stock_change(), which issues an atomic
    "stock_quantity = stock_quantity + delta" update and appends an
    InventoryTransaction row in the same DB transaction.

    VISIBILITY:
    Only is_active products are listed on the public catalog. Moving a unit
    (or receiving stock) into a storefront location flips is_active on.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category_active", "category", "is_active"),
        db.Index("ix_products_barcode", "barcode"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=False, index=True)

    # Whole currency units (UGX)
    price = db.Column(db.Integer, nullable=False, default=0)
    unit_cost = db.Column(db.Integer, nullable=True)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=True)
    reorder_quantity = db.Column(db.Integer, nullable=True)

    sku = db.Column(db.String(64), nullable=True, unique=True)
    barcode = db.Column(db.String(128), nullable=True)

    manufacturer = db.Column(db.String(128), nullable=True)
    model = db.Column(db.String(128), nullable=True)
    condition = db.Column(db.String(32), nullable=True)
    location = db.Column(db.String(128), nullable=True)
    warranty_months = db.Column(db.Integer, nullable=True)
    weight_kg = db.Column(db.Float, nullable=True)
    dimensions = db.Column(db.String(128), nullable=True)
    image_url = db.Column(db.String(512), nullable=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.stock_quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "unit_cost": self.unit_cost,
            "stock_quantity": self.stock_quantity,
            "reorder_level": self.reorder_level,
            "reorder_quantity": self.reorder_quantity,
            "sku": self.sku,
            "barcode": self.barcode,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "condition": self.condition,
            "location": self.location,
            "warranty_months": self.warranty_months,
            "weight_kg": self.weight_kg,
            "dimensions": self.dimensions,
            "image_url": self.image_url,
            "supplier_id": self.supplier_id,
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        """Storefront view: no cost, supplier or reorder data."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "price": self.price,
            "in_stock": self.stock_quantity > 0,
            "stock_quantity": self.stock_quantity,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "condition": self.condition,
            "warranty_months": self.warranty_months,
            "image_url": self.image_url,
            "is_featured": self.is_featured,
        }


class Inquiry(db.Model):
    """
    Customer contact request. The storefront cart submits one of these
    instead of checking out.
    """
    __tablename__ = "inquiries"
    __table_args__ = (
        db.Index("ix_inquiries_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_company = db.Column(db.String(255), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    message = db.Column(db.Text, nullable=True)
    items = db.Column(db.JSON, nullable=True)

    # new, contacted, quoted, closed
    status = db.Column(db.String(16), nullable=False, default="new", index=True)
    priority = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    assigned_to_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "customer_company": self.customer_company,
            "customer_id": self.customer_id,
            "product_id": self.product_id,
            "message": self.message,
            "items": self.items or [],
            "status": self.status,
            "priority": self.priority,
            "notes": self.notes,
            "assigned_to_user_id": self.assigned_to_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
