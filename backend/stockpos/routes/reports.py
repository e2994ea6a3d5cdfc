# backend/stockpos/routes/reports.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..permissions import VIEW_REPORTS
from ..services.reporting_service import ReportingEngine
from . import error_response


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/metrics")
@require_auth
@require_capability(VIEW_REPORTS)
def metrics():
    """?filter=today|week|month|year|all (default all)"""
    try:
        report = ReportingEngine(get_store()).compute_metrics(request.args.get("filter", "all"))
    except Exception as exc:
        return error_response(exc, "Failed to compute metrics")
    return jsonify(report), 200


@reports_bp.get("/sales-by-category")
@require_auth
@require_capability(VIEW_REPORTS)
def sales_by_category():
    try:
        rows = ReportingEngine(get_store()).sales_by_category(request.args.get("filter", "all"))
    except Exception as exc:
        return error_response(exc, "Failed to compute sales by category")
    return jsonify({"items": rows}), 200


@reports_bp.get("/recent-activity")
@require_auth
@require_capability(VIEW_REPORTS)
def recent_activity():
    limit = request.args.get("limit", 5, type=int)
    if limit <= 0:
        return jsonify({"error": "limit must be > 0"}), 400
    return jsonify({"items": ReportingEngine(get_store()).recent_activity(limit)}), 200
