# backend/stockpos/routes/system.py
from flask import Blueprint, Response, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..models import TABLE_MODELS
from ..permissions import SYSTEM_ADMIN
from ..services import export_service, system_service
from . import error_response


system_bp = Blueprint("system", __name__, url_prefix="/api/system")


@system_bp.get("/health")
def health():
    store = get_store()
    return jsonify({"status": "ok", "store_open": store.is_open}), 200


@system_bp.get("/tables")
@require_auth
@require_capability(SYSTEM_ADMIN)
def list_tables():
    return jsonify({"tables": sorted(TABLE_MODELS)}), 200


@system_bp.get("/export/<string:table_name>")
@require_auth
@require_capability(SYSTEM_ADMIN)
def export_table(table_name: str):
    """
    Dump one table as CSV (default) or as JSON records (?format=json).

    Returns:
        200: Table contents
        404: Unknown table
    """
    try:
        store = get_store()
        if request.args.get("format") == "json":
            return jsonify({"table": table_name, "records": export_service.dump_table(store, table_name)}), 200
        body = export_service.export_table_csv(store, table_name)
    except Exception as exc:
        return error_response(exc, "Failed to export table")

    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={table_name}.csv"},
    )


@system_bp.post("/factory-reset")
@require_auth
@require_capability(SYSTEM_ADMIN)
def factory_reset():
    """
    Delete every row in every table, then re-seed the defaults.

    Request body:
    {
        "confirm": true
    }
    """
    data = request.get_json(silent=True) or {}
    if data.get("confirm") is not True:
        return jsonify({"error": "Factory reset requires {\"confirm\": true}"}), 400

    try:
        result = system_service.factory_reset(get_store(), reseed=True)
    except Exception as exc:
        return error_response(exc, "Failed to reset store")

    return jsonify(result), 200
