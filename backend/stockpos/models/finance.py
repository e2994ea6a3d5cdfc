from __future__ import annotations

from ..extensions import db
from .base import SyncTrackedMixin
from stockpos.time_utils import to_utc_z


SUGGESTED_EXPENSE_CATEGORIES = (
    "Rent",
    "Utilities",
    "Marketing",
    "Transport",
    "Packaging",
    "Salaries",
    "Maintenance",
    "Other",
)


class Expense(SyncTrackedMixin, db.Model):
    """Operating expense; category is free-form (see SUGGESTED_EXPENSE_CATEGORIES)."""
    __tablename__ = "expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    category = db.Column(db.String(64), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    description = db.Column(db.Text, nullable=True)
    spent_at = db.Column(db.DateTime, nullable=False, index=True)
    receipt_image_uri = db.Column(db.String(512), nullable=True)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "category": self.category,
            "amount_cents": self.amount_cents,
            "description": self.description,
            "spent_at": to_utc_z(self.spent_at),
            "receipt_image_uri": self.receipt_image_uri,
        })
        return data
