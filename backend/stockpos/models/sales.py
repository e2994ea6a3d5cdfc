from __future__ import annotations

from ..extensions import db
from .base import SyncTrackedMixin
from stockpos.time_utils import utcnow, to_utc_z


ORDER_STATUS_DRAFT = "draft"
ORDER_STATUS_CONFIRMED = "confirmed"
ORDER_STATUS_CANCELLED = "cancelled"

PAYMENT_STATUS_PAID = "paid"
PAYMENT_STATUS_PARTIAL = "partial"
PAYMENT_STATUS_CREDIT = "credit"

VALID_PAYMENT_STATUSES = (PAYMENT_STATUS_PAID, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_CREDIT)


class SalesOrder(SyncTrackedMixin, db.Model):
    """
    Sales order header.

    total_amount_cents is computed once from the submitted items and never
    re-derived. payment_status records the intent at checkout and is not
    transitioned as payments accrue; the live balance (total minus payments)
    is the source of truth for settlement.
    """
    __tablename__ = "sales_orders"
    __table_args__ = (
        db.Index("ix_sales_orders_payment_status_due", "payment_status", "due_date"),
        {"sqlite_autoincrement": True},
    )

    # NULL customer = walk-in sale
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_CONFIRMED)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PAID)
    due_date = db.Column(db.DateTime, nullable=True)

    customer = db.relationship("Customer", backref=db.backref("sales_orders", lazy=True))

    def __repr__(self) -> str:
        return f"<SalesOrder id={self.id} total={self.total_amount_cents} payment_status={self.payment_status!r}>"

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "customer_id": self.customer_id,
            "total_amount_cents": self.total_amount_cents,
            "discount_amount_cents": self.discount_amount_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "due_date": to_utc_z(self.due_date) if self.due_date else None,
        })
        return data


class SalesOrderItem(SyncTrackedMixin, db.Model):
    """Line item; unit price is a snapshot taken at sale time."""
    __tablename__ = "sales_order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    # Location the quantity was deducted from
    location_id = db.Column(db.Integer, db.ForeignKey("stock_locations.id"), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    sales_order = db.relationship("SalesOrder", backref=db.backref("items", lazy=True, order_by="SalesOrderItem.id"))
    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity - (self.discount_cents or 0)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "sales_order_id": self.sales_order_id,
            "product_id": self.product_id,
            "location_id": self.location_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "discount_cents": self.discount_cents,
            "line_total_cents": self.line_total_cents,
        })
        return data


class Payment(SyncTrackedMixin, db.Model):
    """
    Payment recorded against a sales order.

    An order accumulates zero or more payments; balance is always
    total_amount_cents - SUM(amount_cents).
    """
    __tablename__ = "payments"
    __table_args__ = {"sqlite_autoincrement": True}

    sales_order_id = db.Column(db.Integer, db.ForeignKey("sales_orders.id"), nullable=True, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    paid_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    sales_order = db.relationship("SalesOrder", backref=db.backref("payments", lazy=True, order_by="Payment.id"))

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "sales_order_id": self.sales_order_id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "paid_at": to_utc_z(self.paid_at),
        })
        return data
