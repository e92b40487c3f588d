from __future__ import annotations

from ..extensions import db
from techstore.time_utils import to_utc_z, to_iso_date


class InventoryTransaction(db.Model):
    """
    Append-only stock movement ledger.

    Every change to Product.stock_quantity writes exactly one row here, in the
    same DB transaction, recording the stock before and after the change.

    TRANSACTION TYPES: sale, purchase, adjustment, return, damage
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_invtx_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)

    # Signed: positive adds stock, negative removes it
    quantity = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    unit_cost = db.Column(db.Integer, nullable=True)

    # Purchase order / sale / refund id the movement belongs to
    reference_id = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("transactions", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "unit_cost": self.unit_cost,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class StorageLocation(db.Model):
    __tablename__ = "storage_locations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class SerialUnit(db.Model):
    """
    One physical unit of a product, identified by its serial number / barcode.

    STATUS: in_stock, sold, reserved, in_repair, returned, damaged, lost
    CONDITION: new, refurbished, open_box, used_like_new, used_good, damaged

    Every status or location change appends a SerialUnitHistory row in the
    same DB transaction (see serial_unit_service).

    RETENTION: sold units are purged SOLD_UNIT_RETENTION_DAYS after sold_date
    (maintenance_service.cleanup_sold_units).
    """
    __tablename__ = "serial_units"
    __table_args__ = (
        db.Index("ix_serial_units_status_sold_date", "status", "sold_date"),
        db.Index("ix_serial_units_serial_number", "serial_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    # Not unique: quick-add by barcode registers several units under the product barcode
    serial_number = db.Column(db.String(128), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="in_stock", index=True)
    condition = db.Column(db.String(32), nullable=True)
    location = db.Column(db.String(128), nullable=True)

    purchase_date = db.Column(db.Date, nullable=True)
    purchase_cost = db.Column(db.Integer, nullable=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)

    warranty_start_date = db.Column(db.Date, nullable=True)
    warranty_end_date = db.Column(db.Date, nullable=True)

    sold_date = db.Column(db.Date, nullable=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="SET NULL"), nullable=True, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship("Product", backref=db.backref("serial_units", lazy=True, cascade="all, delete-orphan"))
    supplier = db.relationship("Supplier")
    history = db.relationship(
        "SerialUnitHistory",
        backref="serial_unit",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="SerialUnitHistory.id.desc()",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SerialUnit id={self.id} serial={self.serial_number!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "serial_number": self.serial_number,
            "status": self.status,
            "condition": self.condition,
            "location": self.location,
            "purchase_date": to_iso_date(self.purchase_date),
            "purchase_cost": self.purchase_cost,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "warranty_start_date": to_iso_date(self.warranty_start_date),
            "warranty_end_date": to_iso_date(self.warranty_end_date),
            "sold_date": to_iso_date(self.sold_date),
            "sale_id": self.sale_id,
            "customer_id": self.customer_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class SerialUnitHistory(db.Model):
    """
    Append-only audit trail for a serial unit.

    IMMUTABLE: rows are never updated. They are only removed together with
    their unit (cascade on delete).
    """
    __tablename__ = "serial_unit_history"
    __table_args__ = (
        db.Index("ix_unit_history_unit_created", "serial_unit_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    serial_unit_id = db.Column(db.Integer, db.ForeignKey("serial_units.id", ondelete="CASCADE"), nullable=False, index=True)

    # created, updated, transferred, sold, returned
    action = db.Column(db.String(32), nullable=False)

    previous_status = db.Column(db.String(16), nullable=True)
    new_status = db.Column(db.String(16), nullable=True)
    previous_location = db.Column(db.String(128), nullable=True)
    new_location = db.Column(db.String(128), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "serial_unit_id": self.serial_unit_id,
            "action": self.action,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "previous_location": self.previous_location,
            "new_location": self.new_location,
            "notes": self.notes,
            "performed_by_user_id": self.performed_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
