# Overview: Shared error translation for the JSON blueprints.

from flask import current_app, jsonify

from ..errors import (
    ConfigurationError,
    DateConflictError,
    InvalidArgumentError,
    NotFoundError,
    StateTransitionError,
    StorageError,
    TransientError,
)


def json_error(exc: Exception):
    if isinstance(exc, InvalidArgumentError):
        return jsonify({"error": str(exc), "type": "invalid_argument"}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc), "type": "not_found"}), 404
    if isinstance(exc, DateConflictError):
        return jsonify({"error": str(exc), "type": "date_conflict"}), 409
    if isinstance(exc, StateTransitionError):
        return jsonify({"error": str(exc), "type": "state_transition"}), 409
    if isinstance(exc, ConfigurationError):
        return jsonify({"error": str(exc), "type": "configuration"}), 422
    if isinstance(exc, TransientError):
        return jsonify({"error": "Service busy, please retry", "type": "transient"}), 503
    if isinstance(exc, StorageError):
        return jsonify({"error": "Storage failure", "type": "storage"}), 500
    current_app.logger.exception("Unhandled error")
    return jsonify({"error": "Internal server error"}), 500
