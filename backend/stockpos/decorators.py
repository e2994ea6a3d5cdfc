# Overview: Request and capability decorators for API routes.

from functools import wraps

from flask import g, jsonify, request

from .models import User
from .permissions import has_capability

USER_HEADER = "X-User-Id"


def require_auth(f):
    """
    Resolve the acting user from the X-User-Id header into g.current_user.

    Returns 401 when the header is missing, malformed, or names no user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        from . import get_store

        raw = request.headers.get(USER_HEADER, "").strip()
        if not raw.isdigit():
            return jsonify({"error": "Authentication required"}), 401

        user = get_store().get(User, int(raw))
        if user is None:
            return jsonify({"error": "Unknown user"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_capability(*capabilities: str):
    """Require any one of the given capabilities (after @require_auth)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = getattr(g, "current_user", None)
            if user is None:
                return jsonify({"error": "Authentication required"}), 401

            if not any(has_capability(user.role, cap) for cap in capabilities):
                return jsonify({
                    "error": "Permission denied",
                    "required_permission": capabilities[0] if len(capabilities) == 1 else list(capabilities),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
