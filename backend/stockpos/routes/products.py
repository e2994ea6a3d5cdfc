# backend/stockpos/routes/products.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..permissions import MANAGE_INVENTORY, VIEW_INVENTORY
from ..services.catalog_service import CatalogService
from . import error_response


products_bp = Blueprint("products", __name__, url_prefix="/api")


@products_bp.get("/products")
@require_auth
@require_capability(VIEW_INVENTORY, MANAGE_INVENTORY)
def list_products():
    active_only = request.args.get("active_only", "false").lower() == "true"
    with CatalogService(get_store()).list_products(active_only=active_only) as live:
        items = [p.to_dict() for p in live.snapshot]
    return jsonify({"items": items, "count": len(items)}), 200


@products_bp.get("/products/<int:product_id>")
@require_auth
@require_capability(VIEW_INVENTORY, MANAGE_INVENTORY)
def get_product(product_id: int):
    try:
        product = CatalogService(get_store()).get_product(product_id)
    except Exception as exc:
        return error_response(exc, "Failed to load product")
    return jsonify({"product": product.to_dict()}), 200


@products_bp.post("/products")
@require_auth
@require_capability(MANAGE_INVENTORY)
def create_product():
    """
    Returns:
        201: Product created
        400: Invalid payload
        409: Duplicate SKU
    """
    try:
        product = CatalogService(get_store()).create_product(request.get_json(silent=True) or {})
    except Exception as exc:
        return error_response(exc, "Failed to create product")
    return jsonify({"product": product.to_dict()}), 201


@products_bp.patch("/products/<int:product_id>")
@require_auth
@require_capability(MANAGE_INVENTORY)
def update_product(product_id: int):
    try:
        product = CatalogService(get_store()).update_product(product_id, request.get_json(silent=True) or {})
    except Exception as exc:
        return error_response(exc, "Failed to update product")
    return jsonify({"product": product.to_dict()}), 200


@products_bp.delete("/products/<int:product_id>")
@require_auth
@require_capability(MANAGE_INVENTORY)
def delete_product(product_id: int):
    try:
        CatalogService(get_store()).delete_product(product_id)
    except Exception as exc:
        return error_response(exc, "Failed to delete product")
    return "", 204


@products_bp.get("/categories")
@require_auth
@require_capability(VIEW_INVENTORY, MANAGE_INVENTORY)
def list_categories():
    with CatalogService(get_store()).list_categories() as live:
        items = [c.to_dict() for c in live.snapshot]
    return jsonify({"items": items, "count": len(items)}), 200


@products_bp.post("/categories")
@require_auth
@require_capability(MANAGE_INVENTORY)
def create_category():
    try:
        category = CatalogService(get_store()).create_category(request.get_json(silent=True) or {})
    except Exception as exc:
        return error_response(exc, "Failed to create category")
    return jsonify({"category": category.to_dict()}), 201


@products_bp.delete("/categories/<int:category_id>")
@require_auth
@require_capability(MANAGE_INVENTORY)
def delete_category(category_id: int):
    try:
        CatalogService(get_store()).delete_category(category_id)
    except Exception as exc:
        return error_response(exc, "Failed to delete category")
    return "", 204
