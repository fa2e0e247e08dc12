# registrar/routes/system.py
"""System health endpoint."""

import time
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db

system_bp = Blueprint("system", __name__)


@system_bp.get("/api/health")
def health():
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        database = {"status": "healthy", "response_time_ms": round((time.time() - start_time) * 1000, 2)}
    except SQLAlchemyError as exc:
        db.session.rollback()
        return jsonify({"status": "degraded", "database": {"status": "unhealthy", "error": str(exc)}}), 503
    return jsonify({"status": "ok", "database": database})
