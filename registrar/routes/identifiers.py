# registrar/routes/identifiers.py
"""
Identifier API

- POST /api/identifiers/<id_type>          generate the next identifier ({"year": 2025} optional)
- GET  /api/identifiers/<id_type>/next     peek at the next sequence number without consuming it
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..decorators import require_tenant
from ..errors import RegistrarError
from ..services import identifier_service
from . import json_error


identifiers_bp = Blueprint("identifiers", __name__, url_prefix="/api/identifiers")


@identifiers_bp.post("/<id_type>")
@require_tenant
def generate_identifier(id_type: str):
    body = request.get_json(silent=True) or {}
    try:
        identifier = identifier_service.generate(id_type, g.tenant, body.get("year"))
        return jsonify({"id_type": id_type, "identifier": identifier}), 201
    except RegistrarError as exc:
        return json_error(exc)


@identifiers_bp.get("/<id_type>/next")
@require_tenant
def peek_identifier(id_type: str):
    try:
        sequence = identifier_service.peek_next_sequence(id_type, g.tenant, request.args.get("year"))
        return jsonify({"id_type": id_type, "next_sequence": sequence})
    except RegistrarError as exc:
        return json_error(exc)
