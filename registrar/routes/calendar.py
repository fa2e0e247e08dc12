# registrar/routes/calendar.py
"""
Academic calendar API

Sessions:
- GET    /api/academic-sessions                      list (?status=, ?include_deleted=1)
- POST   /api/academic-sessions                      create (auto-generates three terms)
- GET    /api/academic-sessions/current              current session and term
- GET    /api/academic-sessions/<id>                 one session with its terms
- PATCH  /api/academic-sessions/<id>                 edit name / dates
- POST   /api/academic-sessions/<id>/activate
- POST   /api/academic-sessions/<id>/close           {"reason"}
- POST   /api/academic-sessions/<id>/reopen          {"reason", "new_end_date"}
- POST   /api/academic-sessions/<id>/archive
- DELETE /api/academic-sessions/<id>                 soft delete
- DELETE /api/academic-sessions/<id>/force           permanent delete
- POST   /api/academic-sessions/<id>/restore
- POST   /api/academic-sessions/bulk-delete          {"ids": [...]}

Terms:
- GET    /api/academic-sessions/<id>/terms          terms of a session (?include_deleted=1)
- POST   /api/academic-sessions/<id>/terms
- PATCH  /api/terms/<id>
- POST   /api/terms/<id>/activate | close | reopen | archive | restore
- DELETE /api/terms/<id>

The actor recorded in audit events comes from the X-Actor-Id header.
"""

from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..decorators import require_tenant
from ..errors import InvalidArgumentError, RegistrarError
from ..services import calendar_repository, calendar_service
from . import json_error


calendar_bp = Blueprint("calendar", __name__, url_prefix="/api")


def _body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    return body


def _flag(body: dict, name: str) -> bool:
    value = body.get(name, False)
    if not isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be true or false")
    return value


@calendar_bp.get("/academic-sessions")
@require_tenant
def list_sessions():
    include_deleted = request.args.get("include_deleted") in ("1", "true")
    sessions = calendar_repository.list_sessions(
        g.tenant, status=request.args.get("status"), include_deleted=include_deleted
    )
    return jsonify({"sessions": [s.to_dict() for s in sessions]})


@calendar_bp.post("/academic-sessions")
@require_tenant
def create_session():
    try:
        body = _body()
        session = calendar_service.create_session(
            g.tenant,
            name=body.get("name"),
            start_date=body.get("start_date"),
            end_date=body.get("end_date"),
            is_current=_flag(body, "is_current"),
            actor_id=g.actor_id,
        )
        return jsonify({"session": session.to_dict(include_terms=True)}), 201
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.get("/academic-sessions/current")
@require_tenant
def get_current():
    session = calendar_service.current_session(g.tenant)
    term = calendar_service.current_term(g.tenant)
    return jsonify({
        "session": session.to_dict() if session else None,
        "term": term.to_dict() if term else None,
    })


@calendar_bp.get("/academic-sessions/<int:session_id>")
@require_tenant
def get_session(session_id: int):
    try:
        session = calendar_repository.get_session(session_id, g.tenant)
        return jsonify({"session": session.to_dict(include_terms=True)})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.patch("/academic-sessions/<int:session_id>")
@require_tenant
def update_session(session_id: int):
    try:
        body = _body()
        session = calendar_service.update_session(
            session_id,
            g.tenant,
            name=body.get("name"),
            start_date=body.get("start_date"),
            end_date=body.get("end_date"),
            actor_id=g.actor_id,
        )
        return jsonify({"session": session.to_dict(include_terms=True)})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/<int:session_id>/activate")
@require_tenant
def activate_session(session_id: int):
    try:
        session = calendar_service.activate_session(session_id, g.tenant, actor_id=g.actor_id)
        return jsonify({"session": session.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/<int:session_id>/close")
@require_tenant
def close_session(session_id: int):
    try:
        session = calendar_service.close_session(
            session_id, g.tenant, _body().get("reason"), actor_id=g.actor_id
        )
        return jsonify({"session": session.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/<int:session_id>/reopen")
@require_tenant
def reopen_session(session_id: int):
    try:
        body = _body()
        session = calendar_service.reopen_session(
            session_id, g.tenant, body.get("reason"), body.get("new_end_date"), actor_id=g.actor_id
        )
        return jsonify({"session": session.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/<int:session_id>/archive")
@require_tenant
def archive_session(session_id: int):
    try:
        session = calendar_service.archive_session(session_id, g.tenant, actor_id=g.actor_id)
        return jsonify({"session": session.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.delete("/academic-sessions/<int:session_id>")
@require_tenant
def delete_session(session_id: int):
    try:
        calendar_service.delete_session(session_id, g.tenant, actor_id=g.actor_id)
        return jsonify({"deleted": True})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.delete("/academic-sessions/<int:session_id>/force")
@require_tenant
def force_delete_session(session_id: int):
    try:
        calendar_service.force_delete_session(session_id, g.tenant, actor_id=g.actor_id)
        return jsonify({"deleted": True})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/<int:session_id>/restore")
@require_tenant
def restore_session(session_id: int):
    try:
        session = calendar_service.restore_session(session_id, g.tenant, actor_id=g.actor_id)
        return jsonify({"session": session.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/bulk-delete")
@require_tenant
def bulk_delete_sessions():
    try:
        ids = _body().get("ids") or []
        if not isinstance(ids, list) or not all(isinstance(i, int) and not isinstance(i, bool) for i in ids):
            raise InvalidArgumentError("ids must be a list of integers")
        count = calendar_service.bulk_delete_sessions(g.tenant, ids, actor_id=g.actor_id)
        return jsonify({"deleted": count})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.get("/academic-sessions/<int:session_id>/terms")
@require_tenant
def list_terms(session_id: int):
    include_deleted = request.args.get("include_deleted") in ("1", "true")
    try:
        session = calendar_repository.get_session(session_id, g.tenant)
        terms = calendar_repository.list_terms(session, include_deleted=include_deleted)
        return jsonify({"terms": [t.to_dict() for t in terms]})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/academic-sessions/<int:session_id>/terms")
@require_tenant
def create_term(session_id: int):
    try:
        body = _body()
        term = calendar_service.create_term(
            session_id,
            g.tenant,
            name=body.get("name"),
            start_date=body.get("start_date"),
            end_date=body.get("end_date"),
            ordinal_number=body.get("ordinal_number"),
            actor_id=g.actor_id,
        )
        return jsonify({"term": term.to_dict()}), 201
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.patch("/terms/<int:term_id>")
@require_tenant
def update_term(term_id: int):
    try:
        body = _body()
        term = calendar_service.update_term(
            term_id,
            g.tenant,
            name=body.get("name"),
            start_date=body.get("start_date"),
            end_date=body.get("end_date"),
            actor_id=g.actor_id,
        )
        return jsonify({"term": term.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.post("/terms/<int:term_id>/<action>")
@require_tenant
def term_action(term_id: int, action: str):
    try:
        body = _body()
        if action == "activate":
            term = calendar_service.activate_term(term_id, g.tenant, actor_id=g.actor_id)
        elif action == "close":
            term = calendar_service.close_term(term_id, g.tenant, body.get("reason"), actor_id=g.actor_id)
        elif action == "reopen":
            term = calendar_service.reopen_term(
                term_id, g.tenant, body.get("reason"), body.get("new_end_date"), actor_id=g.actor_id
            )
        elif action == "archive":
            term = calendar_service.archive_term(term_id, g.tenant, actor_id=g.actor_id)
        elif action == "restore":
            term = calendar_service.restore_term(term_id, g.tenant, actor_id=g.actor_id)
        else:
            return jsonify({"error": f"Unknown term action: {action}"}), 404
        return jsonify({"term": term.to_dict()})
    except RegistrarError as exc:
        return json_error(exc)


@calendar_bp.delete("/terms/<int:term_id>")
@require_tenant
def delete_term(term_id: int):
    try:
        calendar_service.delete_term(term_id, g.tenant, actor_id=g.actor_id)
        return jsonify({"deleted": True})
    except RegistrarError as exc:
        return json_error(exc)
