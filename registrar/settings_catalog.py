# Overview: Global default settings documents, seeded at the GLOBAL scope.
#
# Tenant and branch overrides only need to carry the leaves they change; every
# other value falls through to these documents during resolution.

from __future__ import annotations


DEFAULT_ID_PATTERN = "{PREFIX}-{YEAR}-{SEQUENCE}"
DEFAULT_SEQUENCE_LENGTH = 6

DEFAULT_TERM_NAMES = ["First Term", "Second Term", "Third Term"]


DEFAULT_SETTINGS: dict[str, dict] = {
    "website.company": {
        "legal_name": "Your School Name",
        "tagline": "Excellence in Education",
        "public_email": "info@yourschool.com",
        "public_phone": None,
        "website_url": None,
        "show_address_footer": True,
        "show_phone_footer": True,
        "show_email_footer": True,
    },
    "website.themes": {
        "primary_color": "indigo",
        "secondary_color": "gray",
        "default_theme": "light",  # light | dark | auto
        "dashboard_layout": "modern",
        "sidebar_collapsed": False,
        "compact_mode": False,
    },
    "website.localization": {
        "timezone": "UTC",
        "date_format": "%d/%m/%Y",
        "currency": "USD",
        "language": "en",
        "allowed_file_types": ["pdf", "doc", "docx", "jpg", "jpeg", "png"],
        "max_file_upload_size": 5120,  # KB
    },
    "website.prefixes": {
        "student_id": "STD",
        "staff_id": "STF",
        "parent_id": "PAR",
        "invoice": "INV",
        "payment": "PAY",
        "receipt": "REC",
        "class": "CLS",
        "section": "SEC",
        "subject": "SUB",
        "exam": "EXM",
        "fee_type": "FEE",
        "transport_route": "TRT",
        "library_book": "LIB",
    },
    "website.id_formats": {
        "student_id": {"pattern": DEFAULT_ID_PATTERN, "sequence_length": DEFAULT_SEQUENCE_LENGTH},
        "staff_id": {"pattern": DEFAULT_ID_PATTERN, "sequence_length": DEFAULT_SEQUENCE_LENGTH},
        "parent_id": {"pattern": DEFAULT_ID_PATTERN, "sequence_length": DEFAULT_SEQUENCE_LENGTH},
        "invoice": {"pattern": DEFAULT_ID_PATTERN, "sequence_length": DEFAULT_SEQUENCE_LENGTH},
        "receipt": {"pattern": DEFAULT_ID_PATTERN, "sequence_length": DEFAULT_SEQUENCE_LENGTH},
    },
    "general.notifications": {
        "student_admission": {"admin": True, "parent": True},
        "fee_payment": {"admin": True, "parent": True},
        "fee_overdue": {"admin": True, "parent": True},
        "absent_today": {"admin": True, "teacher": True, "parent": True},
        "exam_result_published": {"admin": True, "teacher": True, "parent": True, "student": True},
        "system_announcement": {"admin": True, "teacher": True, "parent": True, "student": True},
    },
    "general.integrations": {
        "slack": {"enabled": False, "config": {}},
        "google_calendar": {"enabled": False, "config": {}},
        "zoom": {"enabled": False, "config": {}},
    },
    "general.api_keys": {
        "public_api_enabled": False,
    },
    "authentication": {
        "login_throttle_max": 5,  # failed attempts before lockout
        "login_throttle_lock": 15,  # minutes
        "reset_password_token_life": 60,  # minutes
        "allow_password_reset": True,
        "enable_email_verification": True,
        "otp_length": 6,
        "otp_validity": 10,  # minutes
        "allow_user_registration": True,
        "password_min_length": 8,
        "password_require_letters": True,
        "password_require_mixed_case": True,
        "password_require_numbers": True,
        "password_require_symbols": False,
    },
    "user_management": {
        "allow_student_signin": True,
        "allow_parent_signin": True,
        "allow_teacher_signin": True,
        "allow_staff_signin": True,
    },
    "academic.calendar": {
        "auto_generate_terms": True,
        "term_names": list(DEFAULT_TERM_NAMES),
    },
}
