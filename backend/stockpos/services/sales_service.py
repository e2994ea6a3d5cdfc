# Overview: Service-layer operations for sales orders and payments; encapsulates business logic and database work.

"""
Sales Transaction Engine

WHY: A sale touches four tables (order, items, stock, payments). They must
change together or not at all; a sale without its stock movement, or stock
moved for a sale that does not exist, corrupts every report downstream.

DESIGN PRINCIPLES:
- The order total is a pure function of the submitted items, computed once
  and never re-derived from current product prices.
- Stock is deducted from an explicit location (per item, or the order's
  default location). There is no implicit "first row found" choice.
- Payments are separate rows (many-to-one). Balance = total - SUM(payments),
  always computed live.
- payment_status on the order records the checkout intent only; it is never
  transitioned. settlement_status() derives the real state from the balance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import func

from ..models import Customer, Payment, Product, SalesOrder, SalesOrderItem, StockLocation
from ..models.sales import (
    ORDER_STATUS_CONFIRMED,
    PAYMENT_STATUS_CREDIT,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    VALID_PAYMENT_STATUSES,
)
from ..store import TransactionError
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import (
    ValidationError,
    require_int,
    require_money_cents,
    require_positive_int,
)
from .stock_service import StockEngine

logger = logging.getLogger(__name__)


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_ECO_CASH = "eco_cash"
METHOD_ZIPIT = "zipit"
METHOD_USD_CASH = "usd_cash"

VALID_PAYMENT_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_BANK_TRANSFER,
    METHOD_ECO_CASH,
    METHOD_ZIPIT,
    METHOD_USD_CASH,
]


class SaleError(TransactionError):
    """Raised when a sales order could not be created; nothing was written."""


@dataclass(frozen=True)
class SaleItem:
    """One requested line of a sale. Money in cents."""
    product_id: int
    quantity: int
    unit_price_cents: int
    discount_cents: int = 0
    location_id: int | None = None

    @classmethod
    def from_value(cls, value) -> "SaleItem":
        if isinstance(value, SaleItem):
            return value
        if not isinstance(value, dict):
            raise ValidationError("Each item must be an object")
        try:
            return cls(
                product_id=value["product_id"],
                quantity=value["quantity"],
                unit_price_cents=value["unit_price_cents"],
                discount_cents=value.get("discount_cents", 0) or 0,
                location_id=value.get("location_id"),
            )
        except KeyError as exc:
            raise ValidationError(f"Item missing required field: {exc.args[0]}")

    def validated(self, index: int) -> "SaleItem":
        label = f"items[{index}]"
        item = SaleItem(
            product_id=require_int(self.product_id, f"{label}.product_id"),
            quantity=require_positive_int(self.quantity, f"{label}.quantity"),
            unit_price_cents=require_money_cents(self.unit_price_cents, f"{label}.unit_price_cents"),
            discount_cents=require_money_cents(self.discount_cents, f"{label}.discount_cents"),
            location_id=(
                require_int(self.location_id, f"{label}.location_id")
                if self.location_id is not None else None
            ),
        )
        if item.discount_cents > item.unit_price_cents * item.quantity:
            raise ValidationError(f"{label}.discount_cents exceeds the line amount")
        return item

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity - self.discount_cents


def compute_order_total(items: Iterable[SaleItem], discount_amount_cents: int = 0) -> int:
    """SUM(price * qty - item discount) - order discount."""
    return sum(item.line_total_cents for item in items) - discount_amount_cents


def _parse_due_date(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError("due_date must be an ISO-8601 datetime")
    raise ValidationError("due_date must be a datetime")


def _validate_method(method: str) -> str:
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")
    return method


class SalesEngine:
    """Order creation, payments and balances over a LedgerStore."""

    def __init__(self, store, stock: StockEngine | None = None):
        self.store = store
        self.stock = stock or StockEngine(store)

    # =========================================================================
    # ORDER CREATION
    # =========================================================================

    def create_sales_order(
        self,
        customer_id: int | None,
        items: list,
        location_id: int,
        discount_amount_cents: int = 0,
        payment_status: str = PAYMENT_STATUS_PAID,
        due_date=None,
        payment_method: str = METHOD_CASH,
        amount_paid_cents: int | None = None,
    ) -> SalesOrder:
        """
        Create an order, its items, the stock deductions and the initial
        payment as one unit.

        Args:
            customer_id: Customer, or None for a walk-in sale
            items: SaleItem objects or dicts with product_id, quantity,
                unit_price_cents, optional discount_cents and location_id
            location_id: Location stock is deducted from unless an item names its own
            discount_amount_cents: Order-level discount
            payment_status: paid (payment for the full total), partial
                (payment of amount_paid_cents) or credit (no payment)
            due_date: Optional due date (credit / partial sales)
            payment_method: Method recorded on the initial payment

        Returns:
            The created SalesOrder

        Raises:
            ValidationError: input rejected before any write
            SaleError: a step failed inside the unit; nothing was written
        """
        if not items:
            raise ValidationError("At least one item is required")
        lines = [SaleItem.from_value(raw).validated(i) for i, raw in enumerate(items)]
        location_id = require_int(location_id, "location_id")
        discount_amount_cents = require_money_cents(discount_amount_cents or 0, "discount_amount_cents")
        if customer_id is not None:
            customer_id = require_int(customer_id, "customer_id")

        if payment_status not in VALID_PAYMENT_STATUSES:
            raise ValidationError(
                f"Invalid payment status: {payment_status}. Must be one of {list(VALID_PAYMENT_STATUSES)}"
            )
        _validate_method(payment_method)
        due = _parse_due_date(due_date)

        total = compute_order_total(lines, discount_amount_cents)
        if total < 0:
            raise ValidationError("discount_amount_cents exceeds the order subtotal")

        initial_payment = self._initial_payment(payment_status, total, amount_paid_cents)

        try:
            with self.store.transaction() as session:
                if customer_id is not None:
                    self.store.require(Customer, customer_id, "Customer")
                self.store.require(StockLocation, location_id, "Location")

                order = SalesOrder(
                    customer_id=customer_id,
                    total_amount_cents=total,
                    discount_amount_cents=discount_amount_cents,
                    status=ORDER_STATUS_CONFIRMED,
                    payment_status=payment_status,
                    due_date=due,
                )
                session.add(order)
                session.flush()  # assigns order.id

                for line in lines:
                    product = self.store.require(Product, line.product_id, "Product")
                    if not product.is_active:
                        raise ValidationError(f"Product {product.id} is inactive")
                    source_location = line.location_id or location_id

                    session.add(SalesOrderItem(
                        sales_order_id=order.id,
                        product_id=line.product_id,
                        location_id=source_location,
                        quantity=line.quantity,
                        unit_price_cents=line.unit_price_cents,
                        discount_cents=line.discount_cents,
                    ))
                    self.stock.adjust_stock(
                        line.product_id,
                        source_location,
                        -line.quantity,
                        reason=f"Sale order {order.id}",
                    )

                # A paid order always carries its payment, even at a zero total.
                if initial_payment or payment_status == PAYMENT_STATUS_PAID:
                    session.add(Payment(
                        sales_order_id=order.id,
                        amount_cents=initial_payment,
                        payment_method=payment_method,
                        paid_at=utcnow(),
                    ))
                session.flush()
        except Exception as exc:
            logger.warning("Sales order rolled back: %s", exc)
            raise SaleError(
                f"Sales order could not be created: {exc}",
                details=getattr(exc, "details", {}),
            ) from exc

        logger.info(
            "Sales order %s created: total=%d items=%d payment_status=%s",
            order.id, total, len(lines), payment_status,
        )
        return order

    @staticmethod
    def _initial_payment(payment_status: str, total: int, amount_paid_cents) -> int:
        if payment_status == PAYMENT_STATUS_PAID:
            if amount_paid_cents is not None and amount_paid_cents != total:
                raise ValidationError("amount_paid_cents must equal the total for paid orders")
            return total
        if payment_status == PAYMENT_STATUS_PARTIAL:
            amount = require_money_cents(amount_paid_cents, "amount_paid_cents", allow_zero=False)
            if amount >= total:
                raise ValidationError("amount_paid_cents must be less than the total for partial orders")
            return amount
        if amount_paid_cents:
            raise ValidationError("Credit orders cannot carry an initial payment")
        return 0

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def add_payment(self, order_id: int, amount_cents: int, method: str = METHOD_CASH) -> Payment:
        """
        Record a payment against an order.

        Raises:
            ValidationError: amount is not a positive integer, or unknown method
            NotFoundError: order does not exist
        """
        amount = require_money_cents(amount_cents, "amount_cents", allow_zero=False)
        _validate_method(method)
        self.store.require(SalesOrder, order_id, "Sales order")

        payment = self.store.insert(
            Payment,
            sales_order_id=order_id,
            amount_cents=amount,
            payment_method=method,
            paid_at=utcnow(),
        )
        logger.info("Payment %s recorded on order %s: %d (%s)", payment.id, order_id, amount, method)
        return payment

    def total_paid(self, order_id: int) -> int:
        paid = self.store.session.query(
            func.coalesce(func.sum(Payment.amount_cents), 0)
        ).filter(Payment.sales_order_id == order_id).scalar()
        return int(paid or 0)

    def balance(self, order_id: int) -> int:
        """order total - SUM(payments); never cached."""
        order = self.store.require(SalesOrder, order_id, "Sales order")
        return order.total_amount_cents - self.total_paid(order_id)

    def settlement_status(self, order_id: int) -> str:
        """paid / partial / credit derived from the live balance."""
        balance = self.balance(order_id)
        if balance <= 0:
            return PAYMENT_STATUS_PAID
        if self.total_paid(order_id) > 0:
            return PAYMENT_STATUS_PARTIAL
        return PAYMENT_STATUS_CREDIT

    def live_balance(self, order_id: int):
        """Live balance; None once the order no longer exists."""
        def load():
            if self.store.get(SalesOrder, order_id) is None:
                return None
            return self.balance(order_id)

        return self.store.live([Payment.__tablename__, SalesOrder.__tablename__], load)

    # =========================================================================
    # VIEWS
    # =========================================================================

    def orders(self):
        return self.store.live_select(SalesOrder)

    def get_order_items(self, order_id: int):
        return self.store.live_select(SalesOrderItem, SalesOrderItem.sales_order_id == order_id)

    def get_payments_for_order(self, order_id: int):
        return self.store.live_select(Payment, Payment.sales_order_id == order_id)

    def overdue_orders(self, now: datetime | None = None) -> list[SalesOrder]:
        """Orders past their due date that still carry a positive balance."""
        now = now or utcnow()
        candidates = self.store.select(
            SalesOrder,
            SalesOrder.due_date.isnot(None),
            SalesOrder.due_date < now,
        )
        return [order for order in candidates if self.balance(order.id) > 0]

    def order_document(self, order_id: int) -> dict:
        """
        Plain data for invoice/receipt rendering: order, customer, items
        joined with product names, payments, totals and balance.
        """
        order = self.store.require(SalesOrder, order_id, "Sales order")
        session = self.store.session

        rows = session.query(SalesOrderItem, Product.name, Product.sku).outerjoin(
            Product, Product.id == SalesOrderItem.product_id,
        ).filter(
            SalesOrderItem.sales_order_id == order_id,
        ).order_by(SalesOrderItem.id.asc()).all()

        items = []
        subtotal = 0
        for item, product_name, sku in rows:
            data = item.to_dict()
            data["product_name"] = product_name or f"Product {item.product_id}"
            data["sku"] = sku
            subtotal += item.line_total_cents
            items.append(data)

        payments = [p.to_dict() for p in self.store.select(Payment, Payment.sales_order_id == order_id)]
        total_paid = sum(p["amount_cents"] for p in payments)
        balance = order.total_amount_cents - total_paid

        return {
            "order": order.to_dict(),
            "customer": order.customer.to_dict() if order.customer else None,
            "items": items,
            "payments": payments,
            "subtotal_cents": subtotal,
            "discount_amount_cents": order.discount_amount_cents,
            "total_amount_cents": order.total_amount_cents,
            "total_paid_cents": total_paid,
            "balance_cents": balance,
            "settlement_status": self.settlement_status(order_id),
        }

