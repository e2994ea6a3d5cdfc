# Overview: Service-layer operations for the in-app alert feed; encapsulates business logic and database work.

"""
Notification Invariants

- The feed is persisted; list order is newest first.
- check_alerts() never repeats an alert: a notification with an identical
  body created since the start of the current (report-timezone) day
  suppresses it.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from ..models import Notification
from ..models.communications import NOTIFICATION_TYPES
from ..time_utils import period_start, utcnow
from ..validation import ValidationError
from .sales_service import SalesEngine
from .stock_service import find_low_stock_products

logger = logging.getLogger(__name__)

TYPE_INFO = "info"
TYPE_LOW_STOCK = "low_stock"
TYPE_DEBT = "debt"


class NotificationService:
    def __init__(self, store, sales: SalesEngine | None = None):
        self.store = store
        self.sales = sales or SalesEngine(store)

    def notifications(self):
        return self.store.live_select(
            Notification, order_by=(Notification.created_at.desc(), Notification.id.desc()),
        )

    def add_notification(self, title: str, body: str, type: str = TYPE_INFO, data: dict | None = None) -> Notification:
        if not title or not body:
            raise ValidationError("title and body are required")
        if type not in NOTIFICATION_TYPES:
            raise ValidationError(f"Invalid notification type: {type}. Must be one of {list(NOTIFICATION_TYPES)}")
        return self.store.insert(
            Notification,
            title=title,
            body=body,
            type=type,
            is_read=False,
            data=json.dumps(data) if data is not None else None,
        )

    def mark_as_read(self, notification_id: int) -> Notification:
        return self.store.update(Notification, notification_id, is_read=True)

    def mark_all_as_read(self) -> int:
        with self.store.transaction() as session:
            unread = session.query(Notification).filter(Notification.is_read.is_(False)).all()
            for notification in unread:
                notification.is_read = True
            session.flush()
        return len(unread)

    def delete(self, notification_id: int) -> None:
        self.store.delete(Notification, notification_id)

    def clear_all(self) -> None:
        with self.store.transaction() as session:
            for notification in session.query(Notification).all():
                session.delete(notification)
            session.flush()

    def unread_count(self) -> int:
        return self.store.session.query(Notification).filter(Notification.is_read.is_(False)).count()

    # --- automated alerts -----------------------------------------------------

    def _already_sent_today(self, body: str, now: datetime) -> bool:
        day_start = period_start("today", now=now, tz_name=self.store.config.get("REPORT_TIMEZONE"))
        return self.store.session.query(Notification).filter(
            Notification.body == body,
            Notification.created_at >= day_start,
        ).first() is not None

    def _raise_alert(self, title: str, body: str, type: str, now: datetime) -> Notification | None:
        if self._already_sent_today(body, now):
            logger.debug("Alert suppressed (already sent today): %s", body)
            return None
        notification = self.store.insert(
            Notification,
            title=title,
            body=body,
            type=type,
            is_read=False,
            created_at=now,
            updated_at=now,
        )
        logger.info("Alert raised: %s", body)
        return notification

    def check_alerts(self, now: datetime | None = None) -> list[Notification]:
        """Raise low-stock and overdue-payment alerts. Returns the new ones."""
        now = now or utcnow()
        raised = []

        low_stock = find_low_stock_products(self.store.session)
        if low_stock:
            alert = self._raise_alert(
                "Stock Alert",
                f"You have {len(low_stock)} items running low. Restock soon!",
                TYPE_LOW_STOCK,
                now,
            )
            if alert is not None:
                raised.append(alert)

        overdue = self.sales.overdue_orders(now)
        if overdue:
            alert = self._raise_alert(
                "Overdue Payment",
                f"You have {len(overdue)} overdue payments to collect.",
                TYPE_DEBT,
                now,
            )
            if alert is not None:
                raised.append(alert)

        return raised
