# Overview: Service-layer operations for the academic calendar; encapsulates lifecycle rules and database work.

"""
Academic Calendar Lifecycle Service

================================================================================
PURPOSE: Enforce the session/term lifecycle and the single-current invariants
================================================================================

STATE MACHINE (sessions and terms alike):
    pending -> active -> closed -> archived
                 ^          |
                 +----------+   (reopen, with a reason and a new end date)

    pending:  Created, editable, not yet in use
    active:   In use; exactly one active session per school may be current
    closed:   Finished; dates frozen until an explicit reopen
    archived: Terminal

RULES (NON-NEGOTIABLE):
1. At most one current session per school and one current term per session.
   Switching current is a single transaction: the old flag is cleared and the
   new one set together, or neither happens.
2. Term dates lie inside their session: session.start <= term.start <=
   term.end <= session.end.
3. Close and reopen require a reason of at least 20 characters.
4. A reopened entity may not run into its chronological successor.
5. The current session cannot be closed or deleted. Active and closed terms
   cannot be deleted; closing the current term clears its current flag.
6. Every transition writes an audit event in the same transaction.

The tenant is always passed explicitly; a row owned by another school is
reported as not found.
================================================================================
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Optional

from sqlalchemy import update

from ..errors import (
    DateConflictError,
    InvalidArgumentError,
    StateTransitionError,
)
from ..extensions import db
from ..models import AcademicSession, School, Term
from ..models.calendar import (
    CALENDAR_STATUSES,
    STATUS_ACTIVE,
    STATUS_ARCHIVED,
    STATUS_CLOSED,
    STATUS_PENDING,
)
from ..time_utils import add_months, diff_in_months, parse_iso_date, today, utcnow
from ..validation import require_text, validate_reason
from . import audit_service, calendar_repository, policy_service
from .concurrency import lock_for_update, run_in_transaction


MAX_SESSION_NAME_LENGTH = 25
MAX_TERM_NAME_LENGTH = 60
TERMS_PER_SESSION = 3

_TRANSITIONS = {
    (STATUS_PENDING, STATUS_ACTIVE),
    (STATUS_ACTIVE, STATUS_CLOSED),
    (STATUS_CLOSED, STATUS_ACTIVE),
    (STATUS_CLOSED, STATUS_ARCHIVED),
}


def can_transition(from_status: str, to_status: str) -> bool:
    """
    Check a status change against the state machine.

    active -> active is allowed: it is how a non-current active session becomes
    current again.
    """
    if from_status not in CALENDAR_STATUSES or to_status not in CALENDAR_STATUSES:
        raise InvalidArgumentError(f"Unknown status transition {from_status!r} -> {to_status!r}")
    if from_status == to_status == STATUS_ACTIVE:
        return True
    return (from_status, to_status) in _TRANSITIONS


def _require_transition(entity, to_status: str, action: str) -> None:
    if not can_transition(entity.status, to_status):
        label = "session" if isinstance(entity, AcademicSession) else "term"
        raise StateTransitionError(f"Cannot {action} a {entity.status} {label}")


def _require_tenant(tenant: Optional[School]) -> School:
    if tenant is None:
        raise InvalidArgumentError("tenant is required")
    return tenant


def _require_date(value, *, field: str) -> date:
    parsed = parse_iso_date(value, field=field)
    if parsed is None:
        raise InvalidArgumentError(f"{field} is required")
    return parsed


def _session_name(name) -> str:
    name = require_text(name, field="name")
    if len(name) > MAX_SESSION_NAME_LENGTH:
        raise InvalidArgumentError(f"name must be at most {MAX_SESSION_NAME_LENGTH} characters")
    return name


def _term_name(name) -> str:
    name = require_text(name, field="name")
    if len(name) > MAX_TERM_NAME_LENGTH:
        raise InvalidArgumentError(f"name must be at most {MAX_TERM_NAME_LENGTH} characters")
    return name


def _audit(action: str, entity, *, actor_id, reason=None, payload=None) -> None:
    target_type = "academic_session" if isinstance(entity, AcademicSession) else "term"
    audit_service.record_event(
        action,
        target_type,
        entity.id,
        tenant_id=entity.school_id,
        actor_id=actor_id,
        reason=reason,
        payload=payload,
    )


# ------------------------------------------------------------------------------
# Term planning
# ------------------------------------------------------------------------------

def plan_terms(start_date: date, end_date: date, names: Iterable[str]) -> list[tuple[str, date, date]]:
    """
    Split a session into three consecutive terms.

    Each term spans whole_months // 3 calendar months; the last term absorbs the
    remainder and ends on the session end date. Sessions shorter than three
    months are split evenly by days instead.
    """
    names = list(names)
    span = diff_in_months(start_date, end_date) // TERMS_PER_SESSION
    if span > 0:
        starts = [add_months(start_date, span * i) for i in range(TERMS_PER_SESSION)]
    else:
        total_days = (end_date - start_date).days + 1
        if total_days < TERMS_PER_SESSION:
            raise InvalidArgumentError("Session is too short to hold three terms")
        step = total_days // TERMS_PER_SESSION
        starts = [start_date + timedelta(days=step * i) for i in range(TERMS_PER_SESSION)]

    ends = [s - timedelta(days=1) for s in starts[1:]] + [end_date]
    return list(zip(names, starts, ends))


def _generate_terms(session: AcademicSession, tenant: School) -> list[Term]:
    policy = policy_service.calendar_policy(tenant)
    if not policy.auto_generate_terms:
        return []
    terms = []
    for ordinal, (name, start, end) in enumerate(
        plan_terms(session.start_date, session.end_date, policy.term_names), start=1
    ):
        term = Term(
            school_id=session.school_id,
            academic_session_id=session.id,
            name=name,
            ordinal_number=ordinal,
            start_date=start,
            end_date=end,
            status=STATUS_PENDING,
            is_current=False,
        )
        db.session.add(term)
        terms.append(term)
    db.session.flush()
    return terms


def _check_term_dates(session: AcademicSession, start_date: date, end_date: date) -> None:
    if start_date > end_date:
        raise DateConflictError("Term start date must be on or before its end date")
    if start_date < session.start_date:
        raise DateConflictError("Term cannot start before its session starts")
    if end_date > session.end_date:
        raise DateConflictError("Term cannot end after its session ends")


# ------------------------------------------------------------------------------
# Sessions
# ------------------------------------------------------------------------------

def _activate_session(session: AcademicSession, tenant: School, actor_id: Optional[int]) -> bool:
    """Make session the tenant's current session. Returns False when it already was."""
    if session.status in (STATUS_CLOSED, STATUS_ARCHIVED):
        raise StateTransitionError(
            f"Cannot activate a {session.status} session; reopen it first"
        )
    if session.is_current and session.status == STATUS_ACTIVE:
        return False

    calendar_repository.lock_tenant(tenant)
    previous_ids = [
        row.id
        for row in db.session.query(AcademicSession.id).filter(
            AcademicSession.school_id == tenant.id,
            AcademicSession.is_current.is_(True),
            AcademicSession.id != session.id,
        )
    ]
    db.session.execute(
        update(AcademicSession)
        .where(
            AcademicSession.school_id == tenant.id,
            AcademicSession.is_current.is_(True),
            AcademicSession.id != session.id,
        )
        .values(is_current=False)
    )

    session.is_current = True
    session.status = STATUS_ACTIVE
    if session.activated_at is None:
        session.activated_at = utcnow()
    db.session.flush()

    _audit("session.activated", session, actor_id=actor_id, payload={"previous_session_ids": previous_ids})
    return True


def create_session(
    tenant: School,
    *,
    name: str,
    start_date,
    end_date,
    is_current: bool = False,
    actor_id: Optional[int] = None,
) -> AcademicSession:
    """
    Create a pending session and its three auto-generated terms.

    With is_current=True the session is activated in the same transaction.
    """
    tenant = _require_tenant(tenant)
    name = _session_name(name)
    start = _require_date(start_date, field="start_date")
    end = _require_date(end_date, field="end_date")
    if start > end:
        raise InvalidArgumentError("start_date must be on or before end_date")

    def _op() -> AcademicSession:
        if calendar_repository.session_name_taken(tenant, name):
            raise InvalidArgumentError(f"A session named {name!r} already exists")
        session = AcademicSession(
            school_id=tenant.id,
            name=name,
            start_date=start,
            end_date=end,
            status=STATUS_PENDING,
            is_current=False,
        )
        db.session.add(session)
        db.session.flush()

        terms = _generate_terms(session, tenant)
        _audit("session.created", session, actor_id=actor_id, payload={"term_ids": [t.id for t in terms]})
        if is_current:
            _activate_session(session, tenant, actor_id)
        return session

    return run_in_transaction(_op, operation="session.create", tenant_id=tenant.id, name=name)


def update_session(
    session_id: int,
    tenant: School,
    *,
    name: Optional[str] = None,
    start_date=None,
    end_date=None,
    actor_id: Optional[int] = None,
) -> AcademicSession:
    tenant = _require_tenant(tenant)

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        if session.status in (STATUS_CLOSED, STATUS_ARCHIVED):
            raise StateTransitionError(f"Cannot edit a {session.status} session")

        new_start = parse_iso_date(start_date, field="start_date") or session.start_date
        new_end = parse_iso_date(end_date, field="end_date") or session.end_date
        if new_start != session.start_date and session.status != STATUS_PENDING:
            raise StateTransitionError("start_date cannot change once the session has been activated")
        if new_start > new_end:
            raise InvalidArgumentError("start_date must be on or before end_date")

        for term in session.live_terms():
            if term.start_date < new_start or term.end_date > new_end:
                raise DateConflictError(f"Term {term.name!r} would fall outside the session dates")

        if name is not None:
            new_name = _session_name(name)
            if calendar_repository.session_name_taken(tenant, new_name, exclude_id=session.id):
                raise InvalidArgumentError(f"A session named {new_name!r} already exists")
            session.name = new_name
        session.start_date = new_start
        session.end_date = new_end
        db.session.flush()
        return session

    return run_in_transaction(_op, operation="session.update", tenant_id=tenant.id, session_id=session_id)


def activate_session(session_id: int, tenant: School, *, actor_id: Optional[int] = None) -> AcademicSession:
    """
    Make a session the tenant's current session.

    Idempotent: activating the current session changes nothing and records no
    event. The previously current session keeps status active but loses
    is_current.
    """
    tenant = _require_tenant(tenant)

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        _activate_session(session, tenant, actor_id)
        return session

    return run_in_transaction(_op, operation="session.activate", tenant_id=tenant.id, session_id=session_id)


def close_session(
    session_id: int,
    tenant: School,
    reason: str,
    *,
    actor_id: Optional[int] = None,
) -> AcademicSession:
    """Close an active, non-current session. Terms are not closed along with it."""
    tenant = _require_tenant(tenant)
    reason = validate_reason(reason)

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        _require_transition(session, STATUS_CLOSED, "close")
        if session.is_current:
            raise StateTransitionError("Cannot close the current session; make another session current first")
        for term in session.live_terms():
            if term.is_current and term.status == STATUS_ACTIVE:
                raise StateTransitionError(
                    f"Cannot close a session while term {term.name!r} is current; close it first"
                )

        session.status = STATUS_CLOSED
        session.closed_at = utcnow()
        db.session.flush()
        _audit("session.closed", session, actor_id=actor_id, reason=reason)
        return session

    return run_in_transaction(_op, operation="session.close", tenant_id=tenant.id, session_id=session_id)


def reopen_session(
    session_id: int,
    tenant: School,
    reason: str,
    new_end_date,
    *,
    actor_id: Optional[int] = None,
) -> AcademicSession:
    """
    Move a closed session back to active with a new end date.

    The new end date must not reach the next session's start date and must
    still cover every live term. The session does not become current.
    """
    tenant = _require_tenant(tenant)
    reason = validate_reason(reason)
    new_end = _require_date(new_end_date, field="new_end_date")

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        if session.status != STATUS_CLOSED:
            raise StateTransitionError(f"Only closed sessions can be reopened (status is {session.status})")
        if new_end < session.start_date:
            raise DateConflictError("new_end_date cannot be before the session start date")

        following = calendar_repository.next_session(session)
        if following is not None and new_end >= following.start_date:
            raise DateConflictError(
                f"new_end_date must be before the next session {following.name!r} starts "
                f"({following.start_date.isoformat()})"
            )
        latest_term_end = max((t.end_date for t in session.live_terms()), default=None)
        if latest_term_end is not None and new_end < latest_term_end:
            raise DateConflictError("new_end_date cannot cut off an existing term")

        old_end = session.end_date
        session.status = STATUS_ACTIVE
        session.end_date = new_end
        session.closed_at = None
        db.session.flush()
        _audit(
            "session.reopened",
            session,
            actor_id=actor_id,
            reason=reason,
            payload={"old_end_date": old_end.isoformat(), "new_end_date": new_end.isoformat()},
        )
        return session

    return run_in_transaction(_op, operation="session.reopen", tenant_id=tenant.id, session_id=session_id)


def archive_session(session_id: int, tenant: School, *, actor_id: Optional[int] = None) -> AcademicSession:
    tenant = _require_tenant(tenant)

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        _require_transition(session, STATUS_ARCHIVED, "archive")
        session.status = STATUS_ARCHIVED
        db.session.flush()
        _audit("session.archived", session, actor_id=actor_id)
        return session

    return run_in_transaction(_op, operation="session.archive", tenant_id=tenant.id, session_id=session_id)


def delete_session(session_id: int, tenant: School, *, actor_id: Optional[int] = None) -> AcademicSession:
    """Soft delete. The current session can never be deleted."""
    tenant = _require_tenant(tenant)

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        if session.is_current:
            raise StateTransitionError("Cannot delete the current session")
        session.deleted_at = utcnow()
        db.session.flush()
        _audit("session.deleted", session, actor_id=actor_id)
        return session

    return run_in_transaction(_op, operation="session.delete", tenant_id=tenant.id, session_id=session_id)


def bulk_delete_sessions(tenant: School, session_ids: Iterable[int], *, actor_id: Optional[int] = None) -> int:
    """
    Soft delete many sessions at once.

    Current, foreign and already-deleted sessions are skipped. Returns the number
    of sessions actually deleted.
    """
    tenant = _require_tenant(tenant)
    ids = sorted({int(i) for i in session_ids})
    if not ids:
        return 0

    def _op() -> int:
        sessions = (
            lock_for_update(
                db.session.query(AcademicSession).filter(
                    AcademicSession.school_id == tenant.id,
                    AcademicSession.id.in_(ids),
                    AcademicSession.deleted_at.is_(None),
                    AcademicSession.is_current.is_(False),
                )
            )
            .all()
        )
        now = utcnow()
        for session in sessions:
            session.deleted_at = now
            _audit("session.deleted", session, actor_id=actor_id, payload={"bulk": True})
        db.session.flush()
        return len(sessions)

    return run_in_transaction(_op, operation="session.bulk_delete", tenant_id=tenant.id)


def force_delete_session(session_id: int, tenant: School, *, actor_id: Optional[int] = None) -> None:
    """Permanently remove a session that is not current and has no terms (deleted or not)."""
    tenant = _require_tenant(tenant)

    def _op() -> None:
        session = calendar_repository.get_session(session_id, tenant, include_deleted=True, for_update=True)
        if session.is_current:
            raise StateTransitionError("Cannot delete the current session")
        if calendar_repository.count_terms(session, include_deleted=True):
            raise StateTransitionError("Cannot permanently delete a session that still has terms")
        _audit("session.force_deleted", session, actor_id=actor_id, payload={"name": session.name})
        db.session.delete(session)
        db.session.flush()

    run_in_transaction(_op, operation="session.force_delete", tenant_id=tenant.id, session_id=session_id)


def restore_session(session_id: int, tenant: School, *, actor_id: Optional[int] = None) -> AcademicSession:
    """Undo a soft delete, unless a newer session is already active or current."""
    tenant = _require_tenant(tenant)

    def _op() -> AcademicSession:
        session = calendar_repository.get_session(session_id, tenant, include_deleted=True, for_update=True)
        if session.deleted_at is None:
            raise StateTransitionError("Session is not deleted")
        for newer in calendar_repository.newer_live_sessions(session):
            if newer.is_current or newer.status == STATUS_ACTIVE:
                raise StateTransitionError(
                    f"Cannot restore: newer session {newer.name!r} is already in use"
                )
        session.deleted_at = None
        db.session.flush()
        _audit("session.restored", session, actor_id=actor_id)
        return session

    return run_in_transaction(_op, operation="session.restore", tenant_id=tenant.id, session_id=session_id)


def current_session(tenant: School) -> Optional[AcademicSession]:
    return calendar_repository.current_session(_require_tenant(tenant))


def current_term(tenant: School) -> Optional[Term]:
    return calendar_repository.current_term(_require_tenant(tenant))


def is_date_in_current_term(tenant: School, day=None) -> bool:
    term = current_term(tenant)
    if term is None:
        return False
    day = parse_iso_date(day, field="date") or today()
    return term.start_date <= day <= term.end_date


# ------------------------------------------------------------------------------
# Terms
# ------------------------------------------------------------------------------

def _clear_current_terms(session: AcademicSession, keep_term_id: int) -> None:
    lock_for_update(db.session.query(AcademicSession).filter(AcademicSession.id == session.id)).one()
    db.session.execute(
        update(Term)
        .where(
            Term.academic_session_id == session.id,
            Term.is_current.is_(True),
            Term.id != keep_term_id,
        )
        .values(is_current=False)
    )


def create_term(
    session_id: int,
    tenant: School,
    *,
    name: str,
    start_date,
    end_date,
    ordinal_number: Optional[int] = None,
    actor_id: Optional[int] = None,
) -> Term:
    tenant = _require_tenant(tenant)
    name = _term_name(name)
    start = _require_date(start_date, field="start_date")
    end = _require_date(end_date, field="end_date")

    def _op() -> Term:
        session = calendar_repository.get_session(session_id, tenant, for_update=True)
        if session.status in (STATUS_CLOSED, STATUS_ARCHIVED):
            raise StateTransitionError(f"Cannot add terms to a {session.status} session")
        _check_term_dates(session, start, end)
        if calendar_repository.term_name_taken(session, name):
            raise InvalidArgumentError(f"A term named {name!r} already exists in this session")

        term = Term(
            school_id=session.school_id,
            academic_session_id=session.id,
            name=name,
            ordinal_number=ordinal_number or calendar_repository.next_term_ordinal(session),
            start_date=start,
            end_date=end,
            status=STATUS_PENDING,
            is_current=False,
        )
        db.session.add(term)
        db.session.flush()
        _audit("term.created", term, actor_id=actor_id)
        return term

    return run_in_transaction(_op, operation="term.create", tenant_id=tenant.id, session_id=session_id)


def update_term(
    term_id: int,
    tenant: School,
    *,
    name: Optional[str] = None,
    start_date=None,
    end_date=None,
    actor_id: Optional[int] = None,
) -> Term:
    tenant = _require_tenant(tenant)

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, for_update=True)
        if term.status in (STATUS_CLOSED, STATUS_ARCHIVED):
            raise StateTransitionError(f"Cannot edit a {term.status} term")
        session = term.academic_session
        new_start = parse_iso_date(start_date, field="start_date") or term.start_date
        new_end = parse_iso_date(end_date, field="end_date") or term.end_date
        _check_term_dates(session, new_start, new_end)

        if name is not None:
            new_name = _term_name(name)
            if calendar_repository.term_name_taken(session, new_name, exclude_id=term.id):
                raise InvalidArgumentError(f"A term named {new_name!r} already exists in this session")
            term.name = new_name
        term.start_date = new_start
        term.end_date = new_end
        db.session.flush()
        return term

    return run_in_transaction(_op, operation="term.update", tenant_id=tenant.id, term_id=term_id)


def activate_term(term_id: int, tenant: School, *, actor_id: Optional[int] = None) -> Term:
    """Make a term current within its session. The session must be active."""
    tenant = _require_tenant(tenant)

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, for_update=True)
        session = term.academic_session
        if session.deleted_at is not None or session.status != STATUS_ACTIVE:
            raise StateTransitionError("A term can only be activated inside an active session")
        if term.status in (STATUS_CLOSED, STATUS_ARCHIVED):
            raise StateTransitionError(f"Cannot activate a {term.status} term; reopen it first")
        if term.is_current and term.status == STATUS_ACTIVE:
            return term
        _check_term_dates(session, term.start_date, term.end_date)

        _clear_current_terms(session, term.id)
        term.is_current = True
        term.status = STATUS_ACTIVE
        if term.activated_at is None:
            term.activated_at = utcnow()
        db.session.flush()
        _audit("term.activated", term, actor_id=actor_id)
        return term

    return run_in_transaction(_op, operation="term.activate", tenant_id=tenant.id, term_id=term_id)


def close_term(term_id: int, tenant: School, reason: str, *, actor_id: Optional[int] = None) -> Term:
    tenant = _require_tenant(tenant)
    reason = validate_reason(reason)

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, for_update=True)
        _require_transition(term, STATUS_CLOSED, "close")
        term.status = STATUS_CLOSED
        term.is_current = False
        term.closed_at = utcnow()
        db.session.flush()
        _audit("term.closed", term, actor_id=actor_id, reason=reason)
        return term

    return run_in_transaction(_op, operation="term.close", tenant_id=tenant.id, term_id=term_id)


def reopen_term(
    term_id: int,
    tenant: School,
    reason: str,
    new_end_date,
    *,
    actor_id: Optional[int] = None,
) -> Term:
    """
    Reopen the most recently closed term of an active session.

    The term becomes active and current again with its new end date, which
    must stay inside the session and before the next term starts. The next
    term must not have started (status pending).
    """
    tenant = _require_tenant(tenant)
    reason = validate_reason(reason)
    new_end = _require_date(new_end_date, field="new_end_date")

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, for_update=True)
        session = term.academic_session
        if term.status != STATUS_CLOSED:
            raise StateTransitionError(f"Only closed terms can be reopened (status is {term.status})")
        if session.status != STATUS_ACTIVE:
            raise StateTransitionError("Terms can only be reopened inside an active session")

        if new_end < term.start_date:
            raise DateConflictError("new_end_date cannot be before the term start date")
        if new_end > session.end_date:
            raise DateConflictError("new_end_date cannot be after the session end date")

        following = calendar_repository.next_term(term)
        if following is not None:
            if new_end >= following.start_date:
                raise DateConflictError(
                    f"new_end_date must be before the next term {following.name!r} starts "
                    f"({following.start_date.isoformat()})"
                )
            if following.status != STATUS_PENDING:
                raise StateTransitionError(
                    f"Cannot reopen: the next term {following.name!r} is already {following.status}"
                )

        latest = calendar_repository.last_closed_term(session)
        if latest is None or latest.id != term.id:
            raise StateTransitionError("Only the most recently closed term can be reopened")

        _clear_current_terms(session, term.id)
        old_end = term.end_date
        term.status = STATUS_ACTIVE
        term.is_current = True
        term.end_date = new_end
        term.closed_at = None
        db.session.flush()
        _audit(
            "term.reopened",
            term,
            actor_id=actor_id,
            reason=reason,
            payload={"old_end_date": old_end.isoformat(), "new_end_date": new_end.isoformat()},
        )
        return term

    return run_in_transaction(_op, operation="term.reopen", tenant_id=tenant.id, term_id=term_id)


def archive_term(term_id: int, tenant: School, *, actor_id: Optional[int] = None) -> Term:
    tenant = _require_tenant(tenant)

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, for_update=True)
        _require_transition(term, STATUS_ARCHIVED, "archive")
        term.status = STATUS_ARCHIVED
        db.session.flush()
        _audit("term.archived", term, actor_id=actor_id)
        return term

    return run_in_transaction(_op, operation="term.archive", tenant_id=tenant.id, term_id=term_id)


def delete_term(term_id: int, tenant: School, *, actor_id: Optional[int] = None) -> Term:
    tenant = _require_tenant(tenant)

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, for_update=True)
        if term.is_current:
            raise StateTransitionError("Cannot delete the current term")
        if term.status in (STATUS_ACTIVE, STATUS_CLOSED):
            raise StateTransitionError(f"Cannot delete a {term.status} term")
        term.deleted_at = utcnow()
        db.session.flush()
        _audit("term.deleted", term, actor_id=actor_id)
        return term

    return run_in_transaction(_op, operation="term.delete", tenant_id=tenant.id, term_id=term_id)


def bulk_delete_terms(tenant: School, term_ids: Iterable[int], *, actor_id: Optional[int] = None) -> int:
    tenant = _require_tenant(tenant)
    ids = sorted({int(i) for i in term_ids})
    if not ids:
        return 0

    def _op() -> int:
        terms = (
            lock_for_update(
                db.session.query(Term).filter(
                    Term.school_id == tenant.id,
                    Term.id.in_(ids),
                    Term.deleted_at.is_(None),
                    Term.is_current.is_(False),
                    Term.status.notin_((STATUS_ACTIVE, STATUS_CLOSED)),
                )
            )
            .all()
        )
        now = utcnow()
        for term in terms:
            term.deleted_at = now
            _audit("term.deleted", term, actor_id=actor_id, payload={"bulk": True})
        db.session.flush()
        return len(terms)

    return run_in_transaction(_op, operation="term.bulk_delete", tenant_id=tenant.id)


def restore_term(term_id: int, tenant: School, *, actor_id: Optional[int] = None) -> Term:
    tenant = _require_tenant(tenant)

    def _op() -> Term:
        term = calendar_repository.get_term(term_id, tenant, include_deleted=True, for_update=True)
        if term.deleted_at is None:
            raise StateTransitionError("Term is not deleted")
        if term.academic_session.deleted_at is not None:
            raise StateTransitionError("Restore the session before restoring its terms")
        if term.academic_session.status in (STATUS_CLOSED, STATUS_ARCHIVED):
            raise StateTransitionError(
                f"Cannot restore a term into a {term.academic_session.status} session"
            )
        term.deleted_at = None
        db.session.flush()
        _audit("term.restored", term, actor_id=actor_id)
        return term

    return run_in_transaction(_op, operation="term.restore", tenant_id=tenant.id, term_id=term_id)


def force_delete_term(term_id: int, tenant: School, *, actor_id: Optional[int] = None) -> None:
    tenant = _require_tenant(tenant)

    def _op() -> None:
        term = calendar_repository.get_term(term_id, tenant, include_deleted=True, for_update=True)
        if term.is_current:
            raise StateTransitionError("Cannot delete the current term")
        _audit("term.force_deleted", term, actor_id=actor_id, payload={"name": term.name})
        db.session.delete(term)
        db.session.flush()

    run_in_transaction(_op, operation="term.force_delete", tenant_id=tenant.id, term_id=term_id)
