from __future__ import annotations

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z


STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_CLOSED = "closed"
STATUS_ARCHIVED = "archived"

CALENDAR_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_CLOSED, STATUS_ARCHIVED)


class AcademicSession(db.Model):
    """
    A school year for one tenant.

    LIFECYCLE: pending -> active -> closed -> archived, with closed -> active
    through an explicit reopen. Soft-deleted rows keep their data and are hidden
    from normal lookups.

    INVARIANT: at most one live row per school has is_current = true. The partial
    unique index enforces it in the database as well as in the service layer.
    """
    __tablename__ = "academic_sessions"
    __table_args__ = (
        db.UniqueConstraint("school_id", "name", name="uq_academic_sessions_school_name"),
        db.Index(
            "uq_academic_sessions_one_current",
            "school_id",
            unique=True,
            sqlite_where=db.text("is_current = 1"),
            postgresql_where=db.text("is_current"),
        ),
        db.Index("ix_academic_sessions_school_start", "school_id", "start_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)

    name = db.Column(db.String(25), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    is_current = db.Column(db.Boolean, nullable=False, default=False)

    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    school = db.relationship("School", backref=db.backref("academic_sessions", lazy=True))
    terms = db.relationship(
        "Term",
        back_populates="academic_session",
        order_by="Term.start_date",
        lazy=True,
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def live_terms(self) -> list["Term"]:
        return [t for t in self.terms if t.deleted_at is None]

    def __repr__(self) -> str:
        return f"<AcademicSession id={self.id} name={self.name!r} status={self.status}>"

    def to_dict(self, *, include_terms: bool = False) -> dict:
        data = {
            "id": self.id,
            "school_id": self.school_id,
            "name": self.name,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "is_current": self.is_current,
            "activated_at": to_utc_z(self.activated_at),
            "closed_at": to_utc_z(self.closed_at),
            "deleted_at": to_utc_z(self.deleted_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_terms:
            data["terms"] = [t.to_dict() for t in self.live_terms()]
        return data


class Term(db.Model):
    """
    Sub-period of an academic session.

    Mirrors the session lifecycle. Dates must lie inside the parent session and
    at most one live term per session is current.
    """
    __tablename__ = "terms"
    __table_args__ = (
        db.UniqueConstraint("academic_session_id", "name", name="uq_terms_session_name"),
        db.Index(
            "uq_terms_one_current",
            "academic_session_id",
            unique=True,
            sqlite_where=db.text("is_current = 1"),
            postgresql_where=db.text("is_current"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    academic_session_id = db.Column(db.Integer, db.ForeignKey("academic_sessions.id"), nullable=False, index=True)

    name = db.Column(db.String(60), nullable=False)
    ordinal_number = db.Column(db.Integer, nullable=False, default=1)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    is_current = db.Column(db.Boolean, nullable=False, default=False)

    activated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    academic_session = db.relationship("AcademicSession", back_populates="terms")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def __repr__(self) -> str:
        return f"<Term id={self.id} name={self.name!r} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "academic_session_id": self.academic_session_id,
            "name": self.name,
            "ordinal_number": self.ordinal_number,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "is_current": self.is_current,
            "activated_at": to_utc_z(self.activated_at),
            "closed_at": to_utc_z(self.closed_at),
            "deleted_at": to_utc_z(self.deleted_at),
        }
