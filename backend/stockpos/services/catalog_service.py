# Overview: Service-layer operations for the product catalog; encapsulates business logic and database work.

"""
Catalog Invariants

- SKU is unique across the catalog (ConflictError on duplicates).
- Prices are integer cents within [0, MAX_PRICE_CENTS].
- Deleting a product removes its StockLevel rows in the same unit. A product
  referenced by sales history is never deleted; deactivate it instead.
- Deleting a category detaches its products (category_id becomes NULL).
"""

from __future__ import annotations

import logging

from ..models import Category, Product, SalesOrderItem, StockLevel
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    enforce_rules_product,
    validate_payload,
)

logger = logging.getLogger(__name__)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "description", "category_id", "barcode", "unit_of_measure",
        "cost_price_cents", "selling_price_cents", "min_stock_level", "max_stock_level",
        "image_uri", "is_active", "is_favorite",
    },
    required_on_create={"sku", "name"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description"},
    required_on_create={"name"},
)


class CatalogService:
    """Products and categories."""

    def __init__(self, store):
        self.store = store

    # --- products -------------------------------------------------------------

    def list_products(self, *, active_only: bool = False):
        criteria = (Product.is_active.is_(True),) if active_only else ()
        return self.store.live_select(
            Product, *criteria, order_by=(Product.name.asc(), Product.id.asc()),
        )

    def get_product(self, product_id: int) -> Product:
        return self.store.require(Product, product_id, "Product")

    def find_by_barcode(self, barcode: str) -> Product | None:
        return self.store.session.query(Product).filter_by(barcode=barcode).first()

    def _check_sku(self, sku: str, exclude_id: int | None = None) -> None:
        query = self.store.session.query(Product).filter(Product.sku == sku)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"SKU already exists: {sku}")

    def _check_category(self, patch: dict) -> None:
        if patch.get("category_id") is not None:
            self.store.require(Category, patch["category_id"], "Category")

    def create_product(self, payload: dict) -> Product:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        self._check_category(patch)
        self._check_sku(patch["sku"])
        product = self.store.insert(Product, **patch)
        logger.info("Product created: id=%s sku=%s", product.id, product.sku)
        return product

    def update_product(self, product_id: int, payload: dict) -> Product:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        product = self.get_product(product_id)
        merged = {
            "min_stock_level": product.min_stock_level,
            "max_stock_level": product.max_stock_level,
            **patch,
        }
        enforce_rules_product(merged)
        self._check_category(patch)
        if "sku" in patch:
            self._check_sku(patch["sku"], exclude_id=product_id)
        return self.store.update(Product, product_id, **patch)

    def delete_product(self, product_id: int) -> None:
        with self.store.transaction() as session:
            product = self.get_product(product_id)
            in_use = session.query(SalesOrderItem).filter_by(product_id=product_id).first()
            if in_use is not None:
                raise ConflictError("Product has sales history; deactivate it instead")
            for level in session.query(StockLevel).filter_by(product_id=product_id).all():
                session.delete(level)
            session.delete(product)
            session.flush()
        logger.info("Product deleted: id=%s", product_id)

    # --- categories -----------------------------------------------------------

    def list_categories(self):
        return self.store.live_select(Category, order_by=(Category.name.asc(), Category.id.asc()))

    def create_category(self, payload: dict) -> Category:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
        return self.store.insert(Category, **patch)

    def update_category(self, category_id: int, payload: dict) -> Category:
        patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
        return self.store.update(Category, category_id, **patch)

    def delete_category(self, category_id: int) -> None:
        with self.store.transaction() as session:
            category = self.store.require(Category, category_id, "Category")
            for product in session.query(Product).filter_by(category_id=category_id).all():
                product.category_id = None
            session.flush()
            session.delete(category)
            session.flush()
