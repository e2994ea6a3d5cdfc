from __future__ import annotations

from ..extensions import db
from .base import SyncTrackedMixin


class Category(SyncTrackedMixin, db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Category id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({"name": self.name, "description": self.description})
        return data


class Product(SyncTrackedMixin, db.Model):
    """
    Product master data.

    Prices are authoritative in cents. The selling price is only a default
    for new sales: each SalesOrderItem snapshots its own unit price.
    Threshold semantics: a product is low on stock when its quantity summed
    over every location is strictly below min_stock_level (0 / NULL never
    flags).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    barcode = db.Column(db.String(128), nullable=True, index=True)
    unit_of_measure = db.Column(db.String(32), nullable=False, default="pcs")

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    selling_price_cents = db.Column(db.Integer, nullable=False, default=0)

    min_stock_level = db.Column(db.Integer, nullable=True, default=0)
    max_stock_level = db.Column(db.Integer, nullable=True)

    image_uri = db.Column(db.String(512), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_favorite = db.Column(db.Boolean, nullable=False, default=False)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "category_id": self.category_id,
            "barcode": self.barcode,
            "unit_of_measure": self.unit_of_measure,
            "cost_price_cents": self.cost_price_cents,
            "selling_price_cents": self.selling_price_cents,
            "min_stock_level": self.min_stock_level,
            "max_stock_level": self.max_stock_level,
            "image_uri": self.image_uri,
            "is_active": self.is_active,
            "is_favorite": self.is_favorite,
        })
        return data


class StockLocation(SyncTrackedMixin, db.Model):
    __tablename__ = "stock_locations"
    __table_args__ = {"sqlite_autoincrement": True}

    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({"name": self.name, "description": self.description})
        return data


class StockLevel(SyncTrackedMixin, db.Model):
    """
    Quantity of one product at one location.

    Rows are created lazily on the first adjustment at a location, so a
    missing row means zero.
    """
    __tablename__ = "stock_levels"
    __table_args__ = (
        db.UniqueConstraint("product_id", "location_id", name="uq_stock_levels_product_location"),
        {"sqlite_autoincrement": True},
    )

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    location_id = db.Column(db.Integer, db.ForeignKey("stock_locations.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    product = db.relationship("Product")
    location = db.relationship("StockLocation")

    def __repr__(self) -> str:
        return f"<StockLevel product_id={self.product_id} location_id={self.location_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
        })
        return data
