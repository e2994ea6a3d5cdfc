from __future__ import annotations

import json

from ..extensions import db
from .base import SyncTrackedMixin


NOTIFICATION_TYPES = ("info", "low_stock", "debt", "system")


class Notification(SyncTrackedMixin, db.Model):
    """In-app alert feed entry. `data` holds optional JSON metadata."""
    __tablename__ = "notifications"
    __table_args__ = {"sqlite_autoincrement": True}

    title = db.Column(db.String(255), nullable=False)
    body = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="info")
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    data = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        out = self._base_dict()
        out.update({
            "title": self.title,
            "body": self.body,
            "type": self.type,
            "is_read": self.is_read,
            "data": json.loads(self.data) if self.data else None,
        })
        return out
