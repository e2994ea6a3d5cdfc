# backend/stockpos/routes/admin.py
from flask import Blueprint, jsonify, request

from .. import get_store
from ..decorators import require_auth, require_capability
from ..permissions import MANAGE_USERS
from ..services.auth_service import UserService
from . import error_response


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/users")
@require_auth
@require_capability(MANAGE_USERS)
def list_users():
    users = UserService(get_store()).list_users()
    return jsonify({"items": [u.to_dict() for u in users], "count": len(users)}), 200


@admin_bp.post("/users")
@require_auth
@require_capability(MANAGE_USERS)
def create_user():
    """
    Request body:
    {
        "username": str,
        "password": str,
        "full_name": str (optional),
        "role": "admin" | "manager" | "staff" (default staff)
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        user = UserService(get_store()).create_user(
            username=data.get("username"),
            full_name=data.get("full_name"),
            password=data.get("password"),
            role=data.get("role", "staff"),
        )
    except Exception as exc:
        return error_response(exc, "Failed to create user")

    return jsonify({"user": user.to_dict()}), 201


@admin_bp.patch("/users/<int:user_id>/role")
@require_auth
@require_capability(MANAGE_USERS)
def update_role(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        user = UserService(get_store()).update_role(user_id, data.get("role"))
    except Exception as exc:
        return error_response(exc, "Failed to update role")

    return jsonify({"user": user.to_dict()}), 200


@admin_bp.delete("/users/<int:user_id>")
@require_auth
@require_capability(MANAGE_USERS)
def delete_user(user_id: int):
    try:
        UserService(get_store()).delete_user(user_id)
    except Exception as exc:
        return error_response(exc, "Failed to delete user")

    return "", 204
