# Overview: Service-layer operations for reporting; encapsulates business logic and database work.

"""
Reporting Invariants (authoritative)

- Every figure is recomputed from raw rows on every call; nothing is cached
  or persisted. Fine for single-store volumes (thousands of rows).
- A time filter maps to a cutoff (start of the local day / week / month /
  year); rows with timestamp >= cutoff are included. "all" has no cutoff.
- totalProducts is all-time and ignores the filter.
- Low stock uses stock_service.find_low_stock_products, the same rule the
  Stock Engine exposes.
- Sales by category sums unit price * quantity and does NOT subtract
  discounts, unlike order totals. Kept as-is for comparability with
  existing reports.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func

from ..models import Category, Expense, Payment, Product, SalesOrder, SalesOrderItem, StockLevel
from ..time_utils import normalize_report_filter, period_start, to_utc_z
from ..validation import ValidationError
from .stock_service import find_low_stock_products

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

REPORT_TABLES = (
    SalesOrder.__tablename__,
    SalesOrderItem.__tablename__,
    Payment.__tablename__,
    Product.__tablename__,
    StockLevel.__tablename__,
    Expense.__tablename__,
)


def safe_margin(net_profit: int, total_revenue: int) -> float:
    """net / revenue * 100, or 0 when there is no revenue."""
    if not total_revenue:
        return 0.0
    return net_profit / total_revenue * 100


def health_score(net_profit: int, total_revenue: int, product_count: int, low_stock_count: int) -> int:
    """
    0-100 business health: up to 50 points for net margin, up to 50 for the
    share of products not running low.
    """
    margin_score = 0.0
    if net_profit > 0 and total_revenue > 0:
        margin_score = min(max(net_profit / total_revenue * 50, 0.0), 50.0)
    stock_score = 0.0
    if product_count > 0:
        stock_score = (product_count - low_stock_count) / product_count * 50
    return round(margin_score + stock_score)


class ReportingEngine:
    """Time-windowed financial metrics over a LedgerStore."""

    def __init__(self, store, tz_name: str | None = None):
        self.store = store
        self.tz_name = tz_name if tz_name is not None else store.config.get("REPORT_TIMEZONE")

    def _cutoff(self, report_filter: str | None, now: datetime | None) -> tuple[str, datetime | None]:
        try:
            key = normalize_report_filter(report_filter)
        except ValueError as exc:
            raise ValidationError(str(exc))
        return key, period_start(key, now=now, tz_name=self.tz_name)

    def _orders_since(self, cutoff: datetime | None) -> list[SalesOrder]:
        query = self.store.session.query(SalesOrder)
        if cutoff is not None:
            query = query.filter(SalesOrder.created_at >= cutoff)
        return query.order_by(SalesOrder.id.asc()).all()

    def _items_for(self, order_ids: list[int]) -> list[SalesOrderItem]:
        if not order_ids:
            return []
        return self.store.session.query(SalesOrderItem).filter(
            SalesOrderItem.sales_order_id.in_(order_ids),
        ).order_by(SalesOrderItem.id.asc()).all()

    def _expenses_since(self, cutoff: datetime | None) -> list[Expense]:
        query = self.store.session.query(Expense)
        if cutoff is not None:
            query = query.filter(Expense.spent_at >= cutoff)
        return query.all()

    def outstanding_debts(self) -> int:
        """Sum of positive live balances across every order (all-time)."""
        session = self.store.session
        paid = dict(
            session.query(
                Payment.sales_order_id,
                func.coalesce(func.sum(Payment.amount_cents), 0),
            ).group_by(Payment.sales_order_id).all()
        )
        debts = 0
        for order_id, total in session.query(SalesOrder.id, SalesOrder.total_amount_cents).all():
            balance = total - int(paid.get(order_id, 0))
            if balance > 0:
                debts += balance
        return debts

    def compute_metrics(self, report_filter: str = "all", now: datetime | None = None) -> dict:
        key, cutoff = self._cutoff(report_filter, now)
        session = self.store.session

        orders = self._orders_since(cutoff)
        items = self._items_for([o.id for o in orders])
        expenses = self._expenses_since(cutoff)
        cost_by_product = dict(session.query(Product.id, Product.cost_price_cents).all())

        total_revenue = sum(o.total_amount_cents or 0 for o in orders)
        cogs = sum(i.quantity * (cost_by_product.get(i.product_id) or 0) for i in items)
        gross_profit = total_revenue - cogs
        total_expenses = sum(e.amount_cents or 0 for e in expenses)
        net_profit = gross_profit - total_expenses

        low_stock_count = len(find_low_stock_products(session))
        total_products = session.query(Product).filter(Product.is_active.is_(True)).count()
        all_products = session.query(Product).count()
        logger.debug(
            "Metrics computed: filter=%s orders=%d revenue=%d net=%d",
            key, len(orders), total_revenue, net_profit,
        )

        return {
            "filter": key,
            "since": to_utc_z(cutoff) if cutoff else None,
            "order_count": len(orders),
            "total_revenue_cents": total_revenue,
            "cogs_cents": cogs,
            "gross_profit_cents": gross_profit,
            "total_expenses_cents": total_expenses,
            "net_profit_cents": net_profit,
            "margin": safe_margin(net_profit, total_revenue),
            "total_debts_cents": self.outstanding_debts(),
            "total_products": total_products,
            "low_stock_count": low_stock_count,
            "health_score": health_score(net_profit, total_revenue, all_products, low_stock_count),
        }

    def live_metrics(self, report_filter: str = "all"):
        self._cutoff(report_filter, None)
        return self.store.live(REPORT_TABLES, lambda: self.compute_metrics(report_filter))

    def sales_by_category(self, report_filter: str = "all", now: datetime | None = None) -> list[dict]:
        """Gross (pre-discount) item sales grouped by product category name."""
        _, cutoff = self._cutoff(report_filter, now)
        orders = self._orders_since(cutoff)
        items = self._items_for([o.id for o in orders])

        session = self.store.session
        category_by_product = dict(
            session.query(Product.id, Category.name).outerjoin(
                Category, Category.id == Product.category_id,
            ).all()
        )

        totals: dict[str, int] = {}
        for item in items:
            name = category_by_product.get(item.product_id) or UNCATEGORIZED
            totals[name] = totals.get(name, 0) + item.unit_price_cents * item.quantity

        return [{"name": name, "value_cents": value} for name, value in totals.items()]

    def recent_activity(self, limit: int = 5) -> list[dict]:
        """Newest sales, expenses and product additions, merged."""
        session = self.store.session
        activities = []

        for order in session.query(SalesOrder).order_by(SalesOrder.created_at.desc()).limit(limit):
            activities.append({
                "id": f"sale-{order.id}",
                "type": "sale",
                "title": "New Sale",
                "amount_cents": order.total_amount_cents,
                "occurred_at": order.created_at,
            })
        for expense in session.query(Expense).order_by(Expense.spent_at.desc()).limit(limit):
            activities.append({
                "id": f"expense-{expense.id}",
                "type": "expense",
                "title": "Expense Recorded",
                "subtitle": expense.category,
                "amount_cents": -expense.amount_cents,
                "occurred_at": expense.spent_at,
            })
        for product in session.query(Product).order_by(Product.created_at.desc()).limit(limit):
            activities.append({
                "id": f"product-{product.id}",
                "type": "product",
                "title": "Product Added",
                "subtitle": product.name,
                "occurred_at": product.created_at,
            })

        activities.sort(key=lambda a: a["occurred_at"], reverse=True)
        recent = activities[:limit]
        for activity in recent:
            activity["occurred_at"] = to_utc_z(activity["occurred_at"])
        return recent
