# backend/stockpos/routes/communications.py
from flask import Blueprint, jsonify

from .. import get_store
from ..decorators import require_auth
from ..services.notification_service import NotificationService
from . import error_response


communications_bp = Blueprint("communications", __name__, url_prefix="/api/notifications")


@communications_bp.get("")
@require_auth
def list_notifications():
    service = NotificationService(get_store())
    with service.notifications() as live:
        items = [n.to_dict() for n in live.snapshot]
    return jsonify({"items": items, "unread_count": service.unread_count()}), 200


@communications_bp.post("/<int:notification_id>/read")
@require_auth
def mark_read(notification_id: int):
    try:
        notification = NotificationService(get_store()).mark_as_read(notification_id)
    except Exception as exc:
        return error_response(exc, "Failed to mark notification as read")
    return jsonify({"notification": notification.to_dict()}), 200


@communications_bp.post("/read-all")
@require_auth
def mark_all_read():
    updated = NotificationService(get_store()).mark_all_as_read()
    return jsonify({"updated": updated}), 200


@communications_bp.delete("/<int:notification_id>")
@require_auth
def delete_notification(notification_id: int):
    try:
        NotificationService(get_store()).delete(notification_id)
    except Exception as exc:
        return error_response(exc, "Failed to delete notification")
    return "", 204


@communications_bp.post("/check")
@require_auth
def check_alerts():
    raised = NotificationService(get_store()).check_alerts()
    return jsonify({"raised": [n.to_dict() for n in raised]}), 200
