# Overview: Service-layer operations for stock levels; encapsulates business logic and database work.

"""
Stock Invariants (authoritative)

Stock model:
- Stock is held per (product, location) in StockLevel rows; a missing row
  means zero. Rows are created lazily by the first adjustment.
- A product's on-hand quantity is SUM(quantity) over all of its locations.

Business invariants:
- A level may never go negative: an adjustment that would take a location
  below zero is rejected (no backorders).
- A transfer is a debit at the source and a credit at the destination inside
  one unit: both legs apply or neither does.
- Low stock: active product, min_stock_level set and > 0, and summed
  quantity strictly below it. find_low_stock_products() is the only
  implementation; reporting reuses it.

Audit:
- The adjustment reason is logged, not persisted.
"""

from __future__ import annotations

import logging

from sqlalchemy import func

from ..models import Product, StockLevel, StockLocation
from ..store import TransactionError
from ..validation import ValidationError, require_int, require_positive_int

logger = logging.getLogger(__name__)


class StockError(ValueError):
    """Raised for stock rule violations."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class InsufficientStockError(StockError):
    """An adjustment would make a location's on-hand quantity negative."""


class TransferError(TransactionError):
    """A stock transfer failed; neither leg was applied."""


# =============================================================================
# SHARED DERIVATIONS
# =============================================================================

def product_totals(session) -> dict[int, int]:
    """product_id -> quantity summed over every location."""
    rows = session.query(
        StockLevel.product_id,
        func.coalesce(func.sum(StockLevel.quantity), 0),
    ).group_by(StockLevel.product_id).all()
    return {product_id: int(total) for product_id, total in rows}


def is_low_stock(product: Product, total_quantity: int) -> bool:
    threshold = product.min_stock_level
    if not product.is_active or not threshold:
        return False
    return total_quantity < threshold


def find_low_stock_products(session) -> list[Product]:
    """Active products whose summed stock is strictly below their minimum."""
    totals = product_totals(session)
    products = session.query(Product).filter(
        Product.is_active.is_(True),
    ).order_by(Product.name.asc(), Product.id.asc()).all()
    return [p for p in products if is_low_stock(p, totals.get(p.id, 0))]


# =============================================================================
# ENGINE
# =============================================================================

class StockEngine:
    """Stock mutations and stock views over a LedgerStore."""

    def __init__(self, store):
        self.store = store

    # --- reads ----------------------------------------------------------------

    def total_quantity(self, product_id: int) -> int:
        total = self.store.session.query(
            func.coalesce(func.sum(StockLevel.quantity), 0)
        ).filter(StockLevel.product_id == product_id).scalar()
        return int(total or 0)

    def quantity_at(self, product_id: int, location_id: int) -> int:
        level = self._find_level(product_id, location_id)
        return level.quantity if level else 0

    def _find_level(self, product_id: int, location_id: int) -> StockLevel | None:
        return self.store.session.query(StockLevel).filter_by(
            product_id=product_id,
            location_id=location_id,
        ).first()

    def _stock_rows(self, product_id: int) -> list[dict]:
        rows = self.store.session.query(StockLevel, StockLocation.name).join(
            StockLocation, StockLocation.id == StockLevel.location_id,
        ).filter(
            StockLevel.product_id == product_id,
        ).order_by(StockLevel.id.asc()).all()
        result = []
        for level, location_name in rows:
            data = level.to_dict()
            data["location_name"] = location_name
            result.append(data)
        return result

    def get_stock_for_product(self, product_id: int):
        """Live view of a product's stock rows joined with location names."""
        return self.store.live(
            [StockLevel.__tablename__, StockLocation.__tablename__],
            lambda: self._stock_rows(product_id),
        )

    def low_stock_products(self):
        """Live list of low-stock products."""
        return self.store.live(
            [Product.__tablename__, StockLevel.__tablename__],
            lambda: find_low_stock_products(self.store.session),
        )

    # --- locations ------------------------------------------------------------

    def list_locations(self):
        return self.store.live_select(StockLocation)

    def add_location(self, name: str, description: str | None = None) -> StockLocation:
        if not name or not str(name).strip():
            raise ValidationError("name is required")
        return self.store.insert(
            StockLocation,
            name=str(name).strip(),
            description=description,
        )

    # --- mutations ------------------------------------------------------------

    def adjust_stock(
        self,
        product_id: int,
        location_id: int,
        delta: int,
        reason: str | None = None,
    ) -> StockLevel:
        """
        Apply a signed quantity change at one location.

        Creates the StockLevel row on first use. Joins the caller's unit when
        called inside one (sales and transfers do).

        Raises:
            ValidationError: delta is not a non-zero integer
            NotFoundError: product or location does not exist
            InsufficientStockError: the level would go below zero
        """
        delta = require_int(delta, "delta")
        if delta == 0:
            raise ValidationError("delta must be non-zero")

        with self.store.transaction() as session:
            self.store.require(Product, product_id, "Product")
            self.store.require(StockLocation, location_id, "Location")

            level = self._find_level(product_id, location_id)
            current = level.quantity if level else 0
            if current + delta < 0:
                raise InsufficientStockError(
                    "adjustment would make on-hand negative",
                    details={
                        "product_id": product_id,
                        "location_id": location_id,
                        "on_hand": current,
                        "requested_delta": delta,
                    },
                )

            if level is None:
                level = StockLevel(product_id=product_id, location_id=location_id, quantity=delta)
                session.add(level)
            else:
                level.quantity = current + delta
            session.flush()

        logger.info(
            "Stock adjusted: product=%s location=%s delta=%+d quantity=%d reason=%s",
            product_id, location_id, delta, level.quantity, reason or "-",
        )
        return level

    def transfer_stock(
        self,
        product_id: int,
        from_location_id: int,
        to_location_id: int,
        quantity: int,
    ) -> tuple[StockLevel, StockLevel]:
        """
        Move quantity between two locations as one unit.

        Returns (source_level, destination_level).

        Raises:
            ValidationError: bad quantity or identical locations (before any write)
            TransferError: either leg failed; nothing was applied
        """
        quantity = require_positive_int(quantity, "quantity")
        if from_location_id == to_location_id:
            raise ValidationError("Cannot transfer to the same location")

        try:
            with self.store.transaction():
                source = self.adjust_stock(
                    product_id, from_location_id, -quantity,
                    reason=f"Transfer to {to_location_id}",
                )
                destination = self.adjust_stock(
                    product_id, to_location_id, quantity,
                    reason=f"Transfer from {from_location_id}",
                )
        except Exception as exc:
            logger.warning("Stock transfer failed for product %s: %s", product_id, exc)
            raise TransferError(
                f"Stock transfer failed: {exc}",
                details={
                    "product_id": product_id,
                    "from_location_id": from_location_id,
                    "to_location_id": to_location_id,
                    "quantity": quantity,
                    **getattr(exc, "details", {}),
                },
            ) from exc

        return source, destination
