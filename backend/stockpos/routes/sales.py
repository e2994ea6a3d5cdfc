# backend/stockpos/routes/sales.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..permissions import CREATE_SALES, VIEW_CUSTOMERS, VIEW_REPORTS
from ..services.sales_service import SalesEngine
from ..time_utils import parse_iso_datetime
from . import error_response


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("")
@require_auth
@require_capability(CREATE_SALES)
def create_sale():
    """
    Create a sales order with its items, stock deductions and initial payment.

    Request body:
    {
        "customer_id": int (optional),
        "location_id": int,
        "items": [
            {"product_id": int, "quantity": int, "unit_price_cents": int,
             "discount_cents": int (optional), "location_id": int (optional)}
        ],
        "discount_amount_cents": int (optional),
        "payment_status": "paid" | "partial" | "credit",
        "amount_paid_cents": int (partial only),
        "payment_method": str (optional, default cash),
        "due_date": ISO-8601 (optional)
    }

    Returns:
        201: Order document
        400: Invalid request, or the sale was rolled back
    """
    data = request.get_json(silent=True) or {}
    engine = SalesEngine(get_store())
    try:
        order = engine.create_sales_order(
            customer_id=data.get("customer_id"),
            items=data.get("items") or [],
            location_id=data.get("location_id"),
            discount_amount_cents=data.get("discount_amount_cents", 0),
            payment_status=data.get("payment_status", "paid"),
            due_date=data.get("due_date"),
            payment_method=data.get("payment_method", "cash"),
            amount_paid_cents=data.get("amount_paid_cents"),
        )
        document = engine.order_document(order.id)
    except Exception as exc:
        return error_response(exc, "Failed to create sale")

    return jsonify(document), 201


@sales_bp.get("")
@require_auth
@require_capability(CREATE_SALES, VIEW_REPORTS)
def list_sales():
    with SalesEngine(get_store()).orders() as live:
        items = [o.to_dict() for o in reversed(live.snapshot)]
    return jsonify({"items": items, "count": len(items)}), 200


@sales_bp.get("/overdue")
@require_auth
@require_capability(VIEW_CUSTOMERS, VIEW_REPORTS)
def overdue_sales():
    now = None
    if request.args.get("as_of"):
        try:
            now = parse_iso_datetime(request.args["as_of"])
        except ValueError:
            return jsonify({"error": "as_of must be an ISO-8601 datetime"}), 400

    engine = SalesEngine(get_store())
    items = []
    for order in engine.overdue_orders(now):
        data = order.to_dict()
        data["balance_cents"] = engine.balance(order.id)
        items.append(data)
    return jsonify({"items": items, "count": len(items)}), 200


@sales_bp.get("/<int:order_id>")
@require_auth
@require_capability(CREATE_SALES, VIEW_REPORTS)
def get_sale(order_id: int):
    try:
        document = SalesEngine(get_store()).order_document(order_id)
    except Exception as exc:
        return error_response(exc, "Failed to load sale")
    return jsonify(document), 200


@sales_bp.post("/<int:order_id>/payments")
@require_auth
@require_capability(CREATE_SALES)
def add_payment(order_id: int):
    """
    Request body:
    {
        "amount_cents": int (> 0),
        "payment_method": str (optional, default cash)
    }
    """
    data = request.get_json(silent=True) or {}
    engine = SalesEngine(get_store())
    try:
        payment = engine.add_payment(
            order_id,
            data.get("amount_cents"),
            method=data.get("payment_method", "cash"),
        )
        balance = engine.balance(order_id)
        status = engine.settlement_status(order_id)
    except Exception as exc:
        return error_response(exc, "Failed to record payment")

    return jsonify({
        "payment": payment.to_dict(),
        "balance_cents": balance,
        "settlement_status": status,
    }), 201
