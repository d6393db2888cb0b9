from __future__ import annotations

from ..extensions import db
from storepos.money import decimal_str
from storepos.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data (catalog is shared by every store).

    SKU and barcode are globally unique; barcode is optional. Price and tax
    rate are copied onto each transaction line at sale time, so editing a
    product never rewrites history.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(120), nullable=True)

    price = db.Column(db.Numeric(14, 4), nullable=False)
    # Percent, e.g. 5 = 5%
    tax_rate = db.Column(db.Numeric(7, 4), nullable=False, default=0)

    active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "sku": self.sku,
            "barcode": self.barcode,
            "name": self.name,
            "category": self.category,
            "price": decimal_str(self.price),
            "tax_rate": decimal_str(self.tax_rate),
            "active": self.active,
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryRecord(db.Model):
    """
    On-hand quantity of one product at one store.

    INVARIANTS:
    - One row per (store_id, product_id).
    - The transaction engine only changes `quantity` relatively
      (quantity = quantity +/- n) inside its atomic unit.
    - The administrative absolute set lives outside that contract.
    - Quantity may go negative (oversell) unless the stock check is enabled.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("store_id", "product_id", name="uq_inventory_store_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store = db.relationship("Store")
    product = db.relationship("Product", backref=db.backref("inventory_records", lazy=True))

    def to_dict(self) -> dict:
        product = self.product
        return {
            "store_id": str(self.store_id),
            "product_id": str(self.product_id),
            "quantity": decimal_str(self.quantity),
            "sku": product.sku if product else None,
            "barcode": product.barcode if product else None,
            "name": product.name if product else None,
            "category": product.category if product else None,
            "price": decimal_str(product.price) if product else None,
            "tax_rate": decimal_str(product.tax_rate) if product else None,
            "active": product.active if product else None,
        }
