# Overview: Shared error-to-response mapping for API blueprints.

from flask import current_app, jsonify
from sqlalchemy.exc import IntegrityError

from ..services.stock_service import StockError
from ..store import TransactionError
from ..validation import ConflictError, NotFoundError, ValidationError


def error_response(exc: Exception, context: str):
    """
    Map a service exception to a JSON error response.

    Anything unrecognized is logged with its traceback and answered with 500.
    """
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, IntegrityError):
        return jsonify({"error": "Integrity constraint violated", "message": str(exc.orig)}), 409
    if isinstance(exc, (StockError, TransactionError)):
        return jsonify({"error": str(exc), "details": exc.details}), 400

    current_app.logger.exception(context)
    return jsonify({"error": "Internal server error"}), 500
