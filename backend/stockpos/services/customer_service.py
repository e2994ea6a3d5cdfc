# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

import logging

from ..models import Customer, SalesOrder
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    enforce_rules_customer,
    validate_payload,
)

logger = logging.getLogger(__name__)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "email", "phone", "address", "credit_limit_cents"},
    required_on_create={"name"},
)


class CustomerService:
    def __init__(self, store):
        self.store = store

    def list_customers(self):
        return self.store.live_select(Customer)

    def get_customer(self, customer_id: int) -> Customer:
        return self.store.require(Customer, customer_id, "Customer")

    def create_customer(self, payload: dict) -> Customer:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
        enforce_rules_customer(patch)
        return self.store.insert(Customer, **patch)

    def update_customer(self, customer_id: int, payload: dict) -> Customer:
        patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
        enforce_rules_customer(patch)
        return self.store.update(Customer, customer_id, **patch)

    def delete_customer(self, customer_id: int) -> None:
        """Refused while any sales order still references the customer."""
        with self.store.transaction() as session:
            customer = self.get_customer(customer_id)
            order_count = session.query(SalesOrder).filter_by(customer_id=customer_id).count()
            if order_count:
                raise ConflictError(f"Customer has {order_count} sales order(s); cannot delete")
            session.delete(customer)
            session.flush()
        logger.info("Customer deleted: id=%s", customer_id)
