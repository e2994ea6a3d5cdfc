# backend/stockpos/routes/inventory.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..permissions import MANAGE_INVENTORY, VIEW_INVENTORY
from ..services.stock_service import StockEngine
from . import error_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/locations")
@require_auth
@require_capability(VIEW_INVENTORY, MANAGE_INVENTORY)
def list_locations():
    with StockEngine(get_store()).list_locations() as live:
        items = [loc.to_dict() for loc in live.snapshot]
    return jsonify({"items": items, "count": len(items)}), 200


@inventory_bp.post("/locations")
@require_auth
@require_capability(MANAGE_INVENTORY)
def add_location():
    data = request.get_json(silent=True) or {}
    try:
        location = StockEngine(get_store()).add_location(data.get("name"), data.get("description"))
    except Exception as exc:
        return error_response(exc, "Failed to add location")
    return jsonify({"location": location.to_dict()}), 201


@inventory_bp.get("/products/<int:product_id>/stock")
@require_auth
@require_capability(VIEW_INVENTORY, MANAGE_INVENTORY)
def product_stock(product_id: int):
    engine = StockEngine(get_store())
    with engine.get_stock_for_product(product_id) as live:
        rows = live.snapshot
    return jsonify({
        "product_id": product_id,
        "total_quantity": engine.total_quantity(product_id),
        "locations": rows,
    }), 200


@inventory_bp.get("/low-stock")
@require_auth
@require_capability(VIEW_INVENTORY, MANAGE_INVENTORY)
def low_stock():
    with StockEngine(get_store()).low_stock_products() as live:
        items = [p.to_dict() for p in live.snapshot]
    return jsonify({"items": items, "count": len(items)}), 200


@inventory_bp.post("/adjust")
@require_auth
@require_capability(MANAGE_INVENTORY)
def adjust():
    """
    Request body:
    {
        "product_id": int,
        "location_id": int,
        "delta": int (signed, non-zero),
        "reason": str (optional)
    }

    Returns:
        200: Resulting stock level
        400: Invalid request or insufficient stock
        404: Unknown product or location
    """
    data = request.get_json(silent=True) or {}
    try:
        level = StockEngine(get_store()).adjust_stock(
            product_id=data.get("product_id"),
            location_id=data.get("location_id"),
            delta=data.get("delta"),
            reason=data.get("reason"),
        )
    except Exception as exc:
        return error_response(exc, "Failed to adjust stock")
    return jsonify({"stock_level": level.to_dict()}), 200


@inventory_bp.post("/transfer")
@require_auth
@require_capability(MANAGE_INVENTORY)
def transfer():
    """
    Request body:
    {
        "product_id": int,
        "from_location_id": int,
        "to_location_id": int,
        "quantity": int
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        source, destination = StockEngine(get_store()).transfer_stock(
            product_id=data.get("product_id"),
            from_location_id=data.get("from_location_id"),
            to_location_id=data.get("to_location_id"),
            quantity=data.get("quantity"),
        )
    except Exception as exc:
        return error_response(exc, "Failed to transfer stock")
    return jsonify({"from": source.to_dict(), "to": destination.to_dict()}), 200
