# backend/stockpos/routes/auth.py
from flask import Blueprint, g, jsonify, request

from .. import get_store
from ..decorators import require_auth
from ..permissions import capabilities_for
from ..services.auth_service import UserService
from . import error_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user) -> dict:
    data = user.to_dict()
    data["capabilities"] = capabilities_for(user.role)
    return data


@auth_bp.post("/login")
def login():
    """
    Request body:
    {
        "username": str,
        "password": str
    }

    Returns:
        200: User with capabilities; send its id as X-User-Id afterwards
        401: Invalid credentials
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")
    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400

    try:
        user = UserService(get_store()).authenticate(username, password)
    except Exception as exc:
        return error_response(exc, "Failed to login user")

    if user is None:
        return jsonify({"error": "Invalid credentials"}), 401
    return jsonify({"user": _user_payload(user)}), 200


@auth_bp.get("/me")
@require_auth
def me():
    return jsonify({"user": _user_payload(g.current_user)}), 200


@auth_bp.post("/change-password")
@require_auth
def change_password():
    data = request.get_json(silent=True) or {}
    service = UserService(get_store())
    try:
        if service.authenticate(g.current_user.username, data.get("current_password") or "") is None:
            return jsonify({"error": "Current password is incorrect"}), 400
        service.change_password(g.current_user.id, data.get("new_password") or "")
    except Exception as exc:
        return error_response(exc, "Failed to change password")

    return jsonify({"message": "Password changed"}), 200
