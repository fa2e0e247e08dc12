# Overview: Tenant-scoped queries for academic sessions and terms.
#
# Every lookup filters by school_id; a row owned by another tenant is reported
# exactly like a missing one.

from __future__ import annotations

from typing import Optional

from ..errors import NotFoundError
from ..extensions import db
from ..models import AcademicSession, School, Term
from ..models.calendar import STATUS_ACTIVE, STATUS_CLOSED
from .concurrency import lock_for_update


def _sessions(tenant: School, *, include_deleted: bool = False):
    query = db.session.query(AcademicSession).filter(AcademicSession.school_id == tenant.id)
    if not include_deleted:
        query = query.filter(AcademicSession.deleted_at.is_(None))
    return query


def _terms(tenant: School, *, include_deleted: bool = False):
    query = db.session.query(Term).filter(Term.school_id == tenant.id)
    if not include_deleted:
        query = query.filter(Term.deleted_at.is_(None))
    return query


def get_session(
    session_id: int,
    tenant: School,
    *,
    include_deleted: bool = False,
    for_update: bool = False,
) -> AcademicSession:
    query = _sessions(tenant, include_deleted=include_deleted).filter(AcademicSession.id == session_id)
    if for_update:
        query = lock_for_update(query)
    session = query.first()
    if session is None:
        raise NotFoundError(f"Academic session {session_id} not found")
    return session


def get_term(
    term_id: int,
    tenant: School,
    *,
    include_deleted: bool = False,
    for_update: bool = False,
) -> Term:
    query = _terms(tenant, include_deleted=include_deleted).filter(Term.id == term_id)
    if for_update:
        query = lock_for_update(query)
    term = query.first()
    if term is None:
        raise NotFoundError(f"Term {term_id} not found")
    return term


def lock_tenant(tenant: School) -> School:
    """Row lock on the tenant; serialises current-session switches per school."""
    return lock_for_update(db.session.query(School).filter(School.id == tenant.id)).one()


def list_sessions(
    tenant: School,
    *,
    status: Optional[str] = None,
    include_deleted: bool = False,
) -> list[AcademicSession]:
    query = _sessions(tenant, include_deleted=include_deleted)
    if status:
        query = query.filter(AcademicSession.status == status)
    return query.order_by(AcademicSession.start_date.desc(), AcademicSession.id.desc()).all()


def list_terms(session: AcademicSession, *, include_deleted: bool = False) -> list[Term]:
    query = db.session.query(Term).filter(Term.academic_session_id == session.id)
    if not include_deleted:
        query = query.filter(Term.deleted_at.is_(None))
    return query.order_by(Term.start_date.asc(), Term.ordinal_number.asc()).all()


def count_terms(session: AcademicSession, *, include_deleted: bool = True) -> int:
    query = db.session.query(Term).filter(Term.academic_session_id == session.id)
    if not include_deleted:
        query = query.filter(Term.deleted_at.is_(None))
    return query.count()


def current_session(tenant: School) -> Optional[AcademicSession]:
    return (
        _sessions(tenant)
        .filter(AcademicSession.is_current.is_(True), AcademicSession.status == STATUS_ACTIVE)
        .first()
    )


def current_term(tenant: School) -> Optional[Term]:
    session = current_session(tenant)
    if session is None:
        return None
    return (
        db.session.query(Term)
        .filter(
            Term.academic_session_id == session.id,
            Term.deleted_at.is_(None),
            Term.is_current.is_(True),
            Term.status == STATUS_ACTIVE,
        )
        .first()
    )


def next_session(session: AcademicSession) -> Optional[AcademicSession]:
    """Chronologically next live session of the same tenant."""
    return (
        db.session.query(AcademicSession)
        .filter(
            AcademicSession.school_id == session.school_id,
            AcademicSession.deleted_at.is_(None),
            AcademicSession.id != session.id,
            AcademicSession.start_date > session.start_date,
        )
        .order_by(AcademicSession.start_date.asc())
        .first()
    )


def newer_live_sessions(session: AcademicSession) -> list[AcademicSession]:
    return (
        db.session.query(AcademicSession)
        .filter(
            AcademicSession.school_id == session.school_id,
            AcademicSession.deleted_at.is_(None),
            AcademicSession.id != session.id,
            AcademicSession.start_date > session.start_date,
        )
        .all()
    )


def next_term(term: Term) -> Optional[Term]:
    """Chronologically next live term of the same session."""
    return (
        db.session.query(Term)
        .filter(
            Term.academic_session_id == term.academic_session_id,
            Term.deleted_at.is_(None),
            Term.id != term.id,
            Term.start_date > term.start_date,
        )
        .order_by(Term.start_date.asc())
        .first()
    )


def last_closed_term(session: AcademicSession) -> Optional[Term]:
    return (
        db.session.query(Term)
        .filter(
            Term.academic_session_id == session.id,
            Term.deleted_at.is_(None),
            Term.status == STATUS_CLOSED,
        )
        .order_by(Term.closed_at.desc(), Term.id.desc())
        .first()
    )


def next_term_ordinal(session: AcademicSession) -> int:
    current_max = (
        db.session.query(db.func.max(Term.ordinal_number))
        .filter(Term.academic_session_id == session.id)
        .scalar()
    )
    return (current_max or 0) + 1


def session_name_taken(tenant: School, name: str, *, exclude_id: Optional[int] = None) -> bool:
    query = db.session.query(AcademicSession.id).filter(
        AcademicSession.school_id == tenant.id,
        AcademicSession.name == name,
    )
    if exclude_id is not None:
        query = query.filter(AcademicSession.id != exclude_id)
    return query.first() is not None


def term_name_taken(session: AcademicSession, name: str, *, exclude_id: Optional[int] = None) -> bool:
    query = db.session.query(Term.id).filter(
        Term.academic_session_id == session.id,
        Term.name == name,
    )
    if exclude_id is not None:
        query = query.filter(Term.id != exclude_id)
    return query.first() is not None

