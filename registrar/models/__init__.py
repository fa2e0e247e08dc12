from .tenancy import School, Branch
from .settings import SettingsRecord, SettingAudit
from .calendar import AcademicSession, Term
from .identifiers import IdentifierSequence
from .audit import AuditEvent

__all__ = [
    'School', 'Branch',
    'SettingsRecord', 'SettingAudit',
    'AcademicSession', 'Term',
    'IdentifierSequence',
    'AuditEvent',
]
