from __future__ import annotations

from ..extensions import db
from .base import SyncTrackedMixin


class Customer(SyncTrackedMixin, db.Model):
    """
    Customer master data. credit_limit_cents is informational; it is not
    enforced when credit sales are created.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "credit_limit_cents": self.credit_limit_cents,
        })
        return data
