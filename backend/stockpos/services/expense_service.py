# Overview: Service-layer operations for operating expenses; encapsulates business logic and database work.

from __future__ import annotations

from ..models import Expense
from ..time_utils import utcnow
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_expense,
    validate_payload,
)

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"category", "amount_cents", "description", "spent_at", "receipt_image_uri"},
    required_on_create={"category", "amount_cents"},
)


class ExpenseService:
    def __init__(self, store):
        self.store = store

    def list_expenses(self):
        """Live list, most recent spend first."""
        return self.store.live_select(Expense, order_by=(Expense.spent_at.desc(), Expense.id.desc()))

    def add_expense(self, payload: dict) -> Expense:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
        enforce_rules_expense(patch)
        if patch.get("spent_at") is None:
            patch["spent_at"] = utcnow()
        return self.store.insert(Expense, **patch)

    def update_expense(self, expense_id: int, payload: dict) -> Expense:
        patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
        enforce_rules_expense(patch)
        return self.store.update(Expense, expense_id, **patch)

    def delete_expense(self, expense_id: int) -> None:
        self.store.delete(Expense, expense_id)
