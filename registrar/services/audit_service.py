# Overview: Append-only audit trail for calendar lifecycle actions.

from __future__ import annotations

from typing import Any, Callable, Optional

from flask import current_app

from ..extensions import db
from ..models import AuditEvent
from ..time_utils import utcnow


_SINKS_EXTENSION = "registrar.audit_sinks"


def register_sink(app, sink: Callable[[dict], None]) -> None:
    """
    Forward every recorded event to an external collaborator.

    Sinks receive the event dict right after the row is added to the session;
    a sink that raises aborts the surrounding transaction.
    """
    app.extensions.setdefault(_SINKS_EXTENSION, []).append(sink)


def record_event(
    action: str,
    target_type: str,
    target_id: int,
    *,
    tenant_id: Optional[int],
    actor_id: Optional[int] = None,
    reason: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """Add an event to the current transaction. The caller commits."""
    event = AuditEvent(
        school_id=tenant_id,
        actor_id=actor_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        reason=reason,
        payload_json=payload,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    db.session.flush()

    current_app.logger.info(
        "audit %s %s=%s tenant=%s actor=%s", action, target_type, target_id, tenant_id, actor_id
    )
    for sink in current_app.extensions.get(_SINKS_EXTENSION, []):
        sink(event.to_dict())
    return event


def list_events(
    *,
    tenant_id: Optional[int] = None,
    target_type: Optional[str] = None,
    target_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100,
) -> list[AuditEvent]:
    query = db.session.query(AuditEvent)
    if tenant_id is not None:
        query = query.filter(AuditEvent.school_id == tenant_id)
    if target_type is not None:
        query = query.filter(AuditEvent.target_type == target_type)
    if target_id is not None:
        query = query.filter(AuditEvent.target_id == target_id)
    if action is not None:
        query = query.filter(AuditEvent.action == action)
    return query.order_by(AuditEvent.id.asc()).limit(limit).all()
