# backend/stockpos/routes/expenses.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..models.finance import SUGGESTED_EXPENSE_CATEGORIES
from ..permissions import ADD_EXPENSE, VIEW_REPORTS
from ..services.expense_service import ExpenseService
from . import error_response


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_capability(ADD_EXPENSE, VIEW_REPORTS)
def list_expenses():
    with ExpenseService(get_store()).list_expenses() as live:
        items = [e.to_dict() for e in live.snapshot]
    return jsonify({
        "items": items,
        "count": len(items),
        "suggested_categories": list(SUGGESTED_EXPENSE_CATEGORIES),
    }), 200


@expenses_bp.post("")
@require_auth
@require_capability(ADD_EXPENSE)
def add_expense():
    """
    Request body:
    {
        "category": str,
        "amount_cents": int (> 0),
        "description": str (optional),
        "spent_at": ISO-8601 (optional, default now)
    }
    """
    try:
        expense = ExpenseService(get_store()).add_expense(request.get_json(silent=True) or {})
    except Exception as exc:
        return error_response(exc, "Failed to add expense")
    return jsonify({"expense": expense.to_dict()}), 201


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_capability(ADD_EXPENSE)
def delete_expense(expense_id: int):
    try:
        ExpenseService(get_store()).delete_expense(expense_id)
    except Exception as exc:
        return error_response(exc, "Failed to delete expense")
    return "", 204
