from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class School(db.Model):
    """
    Multi-tenant root: every tenant is a School.

    All settings overrides, calendar entities and identifier counters belong to
    exactly one school. Services take the school explicitly; nothing reads the
    tenant from ambient state below the HTTP layer.
    """
    __tablename__ = "schools"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Used for {SCHOOL} in identifiers

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<School id={self.id} name={self.name!r}>"

    @property
    def short_code(self) -> str:
        if self.code:
            return self.code.upper()
        if self.name:
            return self.name[:3].upper()
        return "SCH"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Branch(db.Model):
    """
    Campus within a school.

    Branch settings override tenant settings; branch names are unique within a
    school, not globally.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.UniqueConstraint("school_id", "name", name="uq_branches_school_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    school = db.relationship("School", backref=db.backref("branches", lazy=True))

    def __repr__(self) -> str:
        return f"<Branch id={self.id} school_id={self.school_id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "name": self.name,
            "code": self.code,
            "created_at": to_utc_z(self.created_at),
        }
