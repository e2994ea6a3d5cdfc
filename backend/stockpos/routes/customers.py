# backend/stockpos/routes/customers.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..permissions import VIEW_CUSTOMERS
from ..services.customer_service import CustomerService
from . import error_response


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_capability(VIEW_CUSTOMERS)
def list_customers():
    with CustomerService(get_store()).list_customers() as live:
        items = [c.to_dict() for c in live.snapshot]
    return jsonify({"items": items, "count": len(items)}), 200


@customers_bp.post("")
@require_auth
@require_capability(VIEW_CUSTOMERS)
def create_customer():
    try:
        customer = CustomerService(get_store()).create_customer(request.get_json(silent=True) or {})
    except Exception as exc:
        return error_response(exc, "Failed to create customer")
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_capability(VIEW_CUSTOMERS)
def update_customer(customer_id: int):
    try:
        customer = CustomerService(get_store()).update_customer(customer_id, request.get_json(silent=True) or {})
    except Exception as exc:
        return error_response(exc, "Failed to update customer")
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_capability(VIEW_CUSTOMERS)
def delete_customer(customer_id: int):
    try:
        CustomerService(get_store()).delete_customer(customer_id)
    except Exception as exc:
        return error_response(exc, "Failed to delete customer")
    return "", 204
