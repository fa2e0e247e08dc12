from __future__ import annotations

from ..extensions import db


class IdentifierSequence(db.Model):
    """
    Atomic per-school identifier counters, one row per (school, id type, year).

    next_number is the number the next caller will receive; it only ever moves
    through a single UPDATE ... SET next_number = next_number + 1.
    """
    __tablename__ = "identifier_sequences"
    __table_args__ = (
        db.UniqueConstraint("school_id", "id_type", "year", name="uq_identifier_sequences_school_type_year"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    school_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=False, index=True)
    id_type = db.Column(db.String(32), nullable=False, index=True)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "school_id": self.school_id,
            "id_type": self.id_type,
            "year": self.year,
            "next_number": self.next_number,
        }
