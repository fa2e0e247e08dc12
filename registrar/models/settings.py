from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SettingsRecord(db.Model):
    """
    One JSON settings document per (key, scope).

    scope_type is GLOBAL, TENANT or BRANCH. scope_id is 0 for GLOBAL, the school
    id for TENANT and the branch id for BRANCH, so the unique constraint also
    holds for the global row (NULLs never collide in SQL unique constraints).
    Writes are whole-document replacements; the last write wins.
    """
    __tablename__ = "settings_records"
    __table_args__ = (
        db.UniqueConstraint("key", "scope_type", "scope_id", name="uq_settings_records_key_scope"),
        db.Index("ix_settings_records_scope", "scope_type", "scope_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, index=True)
    scope_type = db.Column(db.String(16), nullable=False)
    scope_id = db.Column(db.Integer, nullable=False, default=0)

    tenant_id = db.Column(db.Integer, db.ForeignKey("schools.id"), nullable=True, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True)

    value_json = db.Column(db.JSON, nullable=False)

    updated_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "scope_type": self.scope_type,
            "scope_id": self.scope_id,
            "tenant_id": self.tenant_id,
            "branch_id": self.branch_id,
            "value_json": self.value_json,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }


class SettingAudit(db.Model):
    """Append-only history of settings writes."""
    __tablename__ = "setting_audits"
    __table_args__ = (
        db.Index("ix_setting_audits_scope", "scope_type", "scope_id", "key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False)
    scope_type = db.Column(db.String(16), nullable=False)
    scope_id = db.Column(db.Integer, nullable=False)
    tenant_id = db.Column(db.Integer, nullable=True, index=True)

    old_value_json = db.Column(db.JSON, nullable=True)
    new_value_json = db.Column(db.JSON, nullable=True)

    changed_by_user_id = db.Column(db.Integer, nullable=True)
    change_reason = db.Column(db.Text, nullable=True)
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "scope_type": self.scope_type,
            "scope_id": self.scope_id,
            "tenant_id": self.tenant_id,
            "old_value_json": self.old_value_json,
            "new_value_json": self.new_value_json,
            "changed_by_user_id": self.changed_by_user_id,
            "change_reason": self.change_reason,
            "changed_at": to_utc_z(self.changed_at),
        }
