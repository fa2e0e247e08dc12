# registrar/routes/settings.py
"""
Settings API

- GET   /api/settings                documents stored at the addressed scope (no merging)
- GET   /api/settings/<key>          effective document for the tenant (and ?branch_id=)
- GET   /api/settings/<key>/layers   global / tenant / branch layers plus the effective document
- GET   /api/settings/<key>/history  change history at the addressed scope
- PUT   /api/settings/<key>          replace the document at the addressed scope
- PATCH /api/settings/<key>          merge into the document at the addressed scope

Without an X-Tenant-Id header the global scope is addressed.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..decorators import optional_tenant
from ..errors import InvalidArgumentError, RegistrarError
from ..services import settings_service, settings_store
from ..validation import validate_settings_key
from . import json_error


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


def _branch_id() -> int | None:
    raw = request.args.get("branch_id")
    if raw is None and request.is_json:
        raw = (request.get_json(silent=True) or {}).get("branch_id")
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError("branch_id must be an integer") from exc


def _payload() -> tuple[dict, str | None]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    return body.get("value"), body.get("reason")


@settings_bp.get("/<key>")
@optional_tenant
def get_settings(key: str):
    try:
        value = settings_service.resolve(key, g.tenant, branch_id=_branch_id())
        return jsonify({"key": key, "value": value})
    except RegistrarError as exc:
        return json_error(exc)


@settings_bp.get("/<key>/layers")
@optional_tenant
def get_settings_layers(key: str):
    try:
        return jsonify(settings_service.resolve_layers(key, g.tenant, branch_id=_branch_id()))
    except RegistrarError as exc:
        return json_error(exc)


@settings_bp.put("/<key>")
@optional_tenant
def put_settings(key: str):
    try:
        value, reason = _payload()
        record = settings_service.save(
            key, value, g.tenant, branch_id=_branch_id(), actor_id=g.actor_id, reason=reason
        )
        return jsonify({"record": record})
    except RegistrarError as exc:
        return json_error(exc)


@settings_bp.patch("/<key>")
@optional_tenant
def patch_settings(key: str):
    try:
        value, reason = _payload()
        record = settings_service.patch(
            key, value, g.tenant, branch_id=_branch_id(), actor_id=g.actor_id, reason=reason
        )
        return jsonify({"record": record})
    except RegistrarError as exc:
        return json_error(exc)


@settings_bp.get("")
@optional_tenant
def list_settings():
    try:
        scope = settings_service.scope_for(g.tenant, _branch_id())
        return jsonify({"scope": str(scope), "documents": settings_store.list_documents(scope)})
    except RegistrarError as exc:
        return json_error(exc)


@settings_bp.get("/<key>/history")
@optional_tenant
def get_settings_history(key: str):
    try:
        scope = settings_service.scope_for(g.tenant, _branch_id())
        entries = settings_store.history(scope, validate_settings_key(key))
        return jsonify({"key": key, "history": [e.to_dict() for e in entries]})
    except RegistrarError as exc:
        return json_error(exc)
