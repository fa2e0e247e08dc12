"""initial schema

Revision ID: r0001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the complete registrar schema:
- schools / branches: tenant hierarchy
- settings_records / setting_audits: scoped JSON settings documents and their history
- academic_sessions / terms: calendar entities with soft delete and single-current indexes
- identifier_sequences: atomic per (school, type, year) counters
- audit_events: append-only lifecycle audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'r0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # schools / branches
    # ============================================================================
    op.create_table(
        'schools',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_schools_code', 'schools', ['code'], unique=True)
    op.create_index('ix_schools_is_active', 'schools', ['is_active'])

    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('school_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('school_id', 'name', name='uq_branches_school_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branches_school_id', 'branches', ['school_id'])

    # ============================================================================
    # settings
    # ============================================================================
    op.create_table(
        'settings_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('scope_type', sa.String(length=16), nullable=False),
        sa.Column('scope_id', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('value_json', sa.JSON(), nullable=False),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['tenant_id'], ['schools.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', 'scope_type', 'scope_id', name='uq_settings_records_key_scope'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_settings_records_key', 'settings_records', ['key'])
    op.create_index('ix_settings_records_tenant_id', 'settings_records', ['tenant_id'])
    op.create_index('ix_settings_records_scope', 'settings_records', ['scope_type', 'scope_id'])

    op.create_table(
        'setting_audits',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('scope_type', sa.String(length=16), nullable=False),
        sa.Column('scope_id', sa.Integer(), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=True),
        sa.Column('old_value_json', sa.JSON(), nullable=True),
        sa.Column('new_value_json', sa.JSON(), nullable=True),
        sa.Column('changed_by_user_id', sa.Integer(), nullable=True),
        sa.Column('change_reason', sa.Text(), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_setting_audits_tenant_id', 'setting_audits', ['tenant_id'])
    op.create_index('ix_setting_audits_scope', 'setting_audits', ['scope_type', 'scope_id', 'key'])

    # ============================================================================
    # academic calendar
    # ============================================================================
    op.create_table(
        'academic_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('school_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=25), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('school_id', 'name', name='uq_academic_sessions_school_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_academic_sessions_school_id', 'academic_sessions', ['school_id'])
    op.create_index('ix_academic_sessions_status', 'academic_sessions', ['status'])
    op.create_index('ix_academic_sessions_deleted_at', 'academic_sessions', ['deleted_at'])
    op.create_index('ix_academic_sessions_school_start', 'academic_sessions', ['school_id', 'start_date'])
    op.create_index(
        'uq_academic_sessions_one_current', 'academic_sessions', ['school_id'], unique=True,
        sqlite_where=sa.text('is_current = 1'), postgresql_where=sa.text('is_current'),
    )

    op.create_table(
        'terms',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('school_id', sa.Integer(), nullable=False),
        sa.Column('academic_session_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=60), nullable=False),
        sa.Column('ordinal_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id']),
        sa.ForeignKeyConstraint(['academic_session_id'], ['academic_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('academic_session_id', 'name', name='uq_terms_session_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_terms_school_id', 'terms', ['school_id'])
    op.create_index('ix_terms_academic_session_id', 'terms', ['academic_session_id'])
    op.create_index('ix_terms_status', 'terms', ['status'])
    op.create_index('ix_terms_deleted_at', 'terms', ['deleted_at'])
    op.create_index(
        'uq_terms_one_current', 'terms', ['academic_session_id'], unique=True,
        sqlite_where=sa.text('is_current = 1'), postgresql_where=sa.text('is_current'),
    )

    # ============================================================================
    # identifier counters and audit trail
    # ============================================================================
    op.create_table(
        'identifier_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('school_id', sa.Integer(), nullable=False),
        sa.Column('id_type', sa.String(length=32), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('school_id', 'id_type', 'year', name='uq_identifier_sequences_school_type_year'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_identifier_sequences_school_id', 'identifier_sequences', ['school_id'])
    op.create_index('ix_identifier_sequences_id_type', 'identifier_sequences', ['id_type'])

    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('school_id', sa.Integer(), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('target_type', sa.String(length=32), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('payload_json', sa.JSON(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['school_id'], ['schools.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_events_school_id', 'audit_events', ['school_id'])
    op.create_index('ix_audit_events_action', 'audit_events', ['action'])
    op.create_index('ix_audit_events_occurred_at', 'audit_events', ['occurred_at'])
    op.create_index('ix_audit_events_target', 'audit_events', ['target_type', 'target_id'])


def downgrade():
    op.drop_table('audit_events')
    op.drop_table('identifier_sequences')
    op.drop_table('terms')
    op.drop_table('academic_sessions')
    op.drop_table('setting_audits')
    op.drop_table('settings_records')
    op.drop_table('branches')
    op.drop_table('schools')
