"""
Settings-driven policies.

WHY: Callers should not poke at raw settings documents. This module turns the
resolved `authentication`, `user_management` and `academic.calendar` documents
into typed policies, and degrades to safe defaults when a tenant override is
malformed (the problem is logged as a ConfigurationError, never silently).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

from flask import current_app

from ..errors import ConfigurationError
from ..models import School
from ..settings_catalog import DEFAULT_SETTINGS, DEFAULT_TERM_NAMES
from . import settings_service


SIGNIN_ROLE_FLAGS = {
    "student": "allow_student_signin",
    "parent": "allow_parent_signin",
    "teacher": "allow_teacher_signin",
    "staff": "allow_staff_signin",
}
ALWAYS_ALLOWED_ROLES = frozenset({"admin"})


@dataclass(frozen=True)
class PasswordRules:
    min_length: int = 8
    require_letters: bool = True
    require_mixed_case: bool = True
    require_numbers: bool = True
    require_symbols: bool = False


@dataclass(frozen=True)
class AuthenticationPolicy:
    login_throttle_max: int = 5
    lockout_duration: timedelta = timedelta(minutes=15)
    reset_token_life: timedelta = timedelta(minutes=60)
    enable_email_verification: bool = True
    otp_length: int = 6
    password: PasswordRules = field(default_factory=PasswordRules)


@dataclass(frozen=True)
class CalendarPolicy:
    auto_generate_terms: bool = True
    term_names: tuple[str, ...] = tuple(DEFAULT_TERM_NAMES)


def _positive_int(doc: dict, key: str, default: int) -> int:
    value = doc.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")
    return value


def _flag(doc: dict, key: str, default: bool) -> bool:
    value = doc.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"{key} must be true or false, got {value!r}")
    return value


def _resolve_or_default(key: str, tenant: Optional[School], branch_id: Optional[int]) -> dict:
    document = settings_service.resolve(key, tenant, branch_id=branch_id)
    if not document:
        return dict(DEFAULT_SETTINGS.get(key, {}))
    return document


def _log_fallback(key: str, tenant: Optional[School], exc: ConfigurationError) -> None:
    current_app.logger.error(
        "Invalid %s settings for tenant %s, using defaults: %s",
        key,
        tenant.id if tenant is not None else None,
        exc,
    )


def authentication_policy(tenant: Optional[School], *, branch_id: Optional[int] = None) -> AuthenticationPolicy:
    doc = _resolve_or_default("authentication", tenant, branch_id)
    try:
        return AuthenticationPolicy(
            login_throttle_max=_positive_int(doc, "login_throttle_max", 5),
            lockout_duration=timedelta(minutes=_positive_int(doc, "login_throttle_lock", 15)),
            reset_token_life=timedelta(minutes=_positive_int(doc, "reset_password_token_life", 60)),
            enable_email_verification=_flag(doc, "enable_email_verification", True),
            otp_length=_positive_int(doc, "otp_length", 6),
            password=PasswordRules(
                min_length=_positive_int(doc, "password_min_length", 8),
                require_letters=_flag(doc, "password_require_letters", True),
                require_mixed_case=_flag(doc, "password_require_mixed_case", True),
                require_numbers=_flag(doc, "password_require_numbers", True),
                require_symbols=_flag(doc, "password_require_symbols", False),
            ),
        )
    except ConfigurationError as exc:
        _log_fallback("authentication", tenant, exc)
        return AuthenticationPolicy()


def validate_password(password: str, tenant: Optional[School], *, branch_id: Optional[int] = None) -> list[str]:
    """Return the list of rule violations; empty when the password is acceptable."""
    rules = authentication_policy(tenant, branch_id=branch_id).password
    password = password or ""
    errors = []
    if len(password) < rules.min_length:
        errors.append(f"Password must be at least {rules.min_length} characters")
    if rules.require_letters and not re.search(r"[A-Za-z]", password):
        errors.append("Password must contain a letter")
    if rules.require_mixed_case and not (re.search(r"[a-z]", password) and re.search(r"[A-Z]", password)):
        errors.append("Password must contain upper and lower case letters")
    if rules.require_numbers and not re.search(r"\d", password):
        errors.append("Password must contain a number")
    if rules.require_symbols and not re.search(r"[^A-Za-z0-9]", password):
        errors.append("Password must contain a symbol")
    return errors


def allowed_signin_roles(tenant: Optional[School], *, branch_id: Optional[int] = None) -> set[str]:
    doc = _resolve_or_default("user_management", tenant, branch_id)
    allowed = set(ALWAYS_ALLOWED_ROLES)
    for role, flag in SIGNIN_ROLE_FLAGS.items():
        try:
            enabled = _flag(doc, flag, True)
        except ConfigurationError as exc:
            _log_fallback("user_management", tenant, exc)
            enabled = True
        if enabled:
            allowed.add(role)
    return allowed


def is_feature_enabled(
    key: str,
    flag: str,
    tenant: Optional[School],
    *,
    branch_id: Optional[int] = None,
    default: bool = False,
) -> bool:
    """Boolean toggle at ``key.flag``; any non-boolean value counts as the default."""
    value: Any = settings_service.resolve(key, tenant, branch_id=branch_id).get(flag, default)
    if not isinstance(value, bool):
        return default
    return value


def calendar_policy(tenant: Optional[School]) -> CalendarPolicy:
    doc = _resolve_or_default("academic.calendar", tenant, None)
    try:
        auto = _flag(doc, "auto_generate_terms", True)
        names = doc.get("term_names", DEFAULT_TERM_NAMES)
        if (
            not isinstance(names, list)
            or len(names) != 3
            or not all(isinstance(n, str) and n.strip() for n in names)
            or len({n.strip() for n in names}) != 3
        ):
            raise ConfigurationError("term_names must be a list of three distinct names")
        return CalendarPolicy(auto_generate_terms=auto, term_names=tuple(n.strip() for n in names))
    except ConfigurationError as exc:
        _log_fallback("academic.calendar", tenant, exc)
        return CalendarPolicy()
