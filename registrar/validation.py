from __future__ import annotations

import re
from typing import Any

from .errors import InvalidArgumentError


# Closing or reopening a calendar entity must carry an explanation of this length
MIN_REASON_LENGTH = 20

SETTINGS_KEY_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")
MAX_SETTINGS_KEY_LENGTH = 128

# Identifier patterns: literal alphanumerics and separators, plus {UPPERCASE} placeholders.
ID_PATTERN_RE = re.compile(r"^(?:[A-Za-z0-9_\-/.]|\{[A-Z]+\})+$")
MAX_ID_PATTERN_LENGTH = 100
SEQUENCE_LENGTH_RANGE = (4, 8)


def require_text(value: Any, *, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} is required")
    return value.strip()


def validate_reason(reason: Any) -> str:
    """Reasons are trimmed before the length check."""
    text = reason.strip() if isinstance(reason, str) else ""
    if len(text) < MIN_REASON_LENGTH:
        raise InvalidArgumentError(
            f"reason must be at least {MIN_REASON_LENGTH} characters"
        )
    return text


def validate_settings_key(key: Any) -> str:
    if not isinstance(key, str) or not key.strip():
        raise InvalidArgumentError("Settings key cannot be empty")
    key = key.strip()
    if len(key) > MAX_SETTINGS_KEY_LENGTH or not SETTINGS_KEY_RE.match(key):
        raise InvalidArgumentError(f"Invalid settings key: {key!r}")
    return key


def coerce_int(value: Any, *, field: str) -> int:
    """Strict integer coercion: bools, floats and decimal strings are rejected."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise InvalidArgumentError(f"{field} must be an integer")


def id_pattern_problems(pattern: Any) -> list[str]:
    """Return every reason an identifier pattern is unusable (empty list when valid)."""
    if not isinstance(pattern, str) or not pattern.strip():
        return ["pattern is required"]
    problems = []
    if len(pattern) > MAX_ID_PATTERN_LENGTH:
        problems.append(f"pattern must be at most {MAX_ID_PATTERN_LENGTH} characters")
    if not ID_PATTERN_RE.match(pattern):
        problems.append("pattern may only contain letters, digits, separators and {PLACEHOLDER} tokens")
    if "{SEQUENCE}" not in pattern:
        problems.append("pattern must contain {SEQUENCE}")
    return problems


def sequence_length_problems(length: Any) -> list[str]:
    low, high = SEQUENCE_LENGTH_RANGE
    if isinstance(length, bool) or not isinstance(length, int):
        return ["sequence_length must be an integer"]
    if not low <= length <= high:
        return [f"sequence_length must be between {low} and {high}"]
    return []
