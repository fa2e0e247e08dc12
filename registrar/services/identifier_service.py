# Overview: Human-readable identifier generation from tenant-configured patterns.

"""
Identifier generation.

A pattern such as ``{PREFIX}-{YEAR}-{SEQUENCE}`` comes from the resolved
``website.id_formats`` document and is filled in with:

    {PREFIX}    website.prefixes[id_type] (falls back to the type's initials)
    {SCHOOL}    the tenant code, else the first three letters of its name
    {YEAR}      four-digit year
    {SEQUENCE}  per (tenant, id_type, year) counter, zero-padded

Unknown placeholders are left untouched. Counters are allocated with a single
atomic UPDATE so concurrent callers never receive the same number.
"""

from __future__ import annotations

import re
from typing import Optional

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ConfigurationError, InvalidArgumentError
from ..extensions import db
from ..models import IdentifierSequence, School
from ..settings_catalog import DEFAULT_ID_PATTERN, DEFAULT_SEQUENCE_LENGTH
from ..time_utils import utcnow
from ..validation import coerce_int, id_pattern_problems, sequence_length_problems
from . import settings_service
from .concurrency import run_in_transaction


MAX_IDENTIFIER_LENGTH = 50
SEPARATORS = "-_/."

ID_TYPE_RE = re.compile(r"^[a-z][a-z0-9_]{0,31}$")
PLACEHOLDER_RE = re.compile(r"\{(PREFIX|SCHOOL|YEAR|SEQUENCE)\}")


def validate_pattern(pattern: str) -> None:
    problems = id_pattern_problems(pattern)
    if problems:
        raise InvalidArgumentError("; ".join(problems))


def _require_id_type(id_type) -> str:
    if not isinstance(id_type, str) or not ID_TYPE_RE.match(id_type.strip()):
        raise InvalidArgumentError(f"Invalid identifier type: {id_type!r}")
    return id_type.strip()


def _require_tenant(tenant: Optional[School]) -> School:
    if tenant is None:
        raise InvalidArgumentError("tenant is required")
    return tenant


def _year(year) -> int:
    if year is None:
        return utcnow().year
    value = coerce_int(year, field="year")
    if not 1000 <= value <= 9999:
        raise InvalidArgumentError("year must have four digits")
    return value


def resolve_format(id_type: str, tenant: School) -> tuple[str, int]:
    """
    Pattern and sequence length for id_type, validated again at use time.

    A missing entry means the default format; a present but corrupt entry is a
    ConfigurationError and is never silently replaced.
    """
    formats = settings_service.resolve("website.id_formats", tenant)
    entry = formats.get(id_type)
    if entry is None:
        return DEFAULT_ID_PATTERN, DEFAULT_SEQUENCE_LENGTH
    if not isinstance(entry, dict):
        raise ConfigurationError(f"website.id_formats.{id_type} is not an object")

    pattern = entry.get("pattern", DEFAULT_ID_PATTERN)
    length = entry.get("sequence_length", DEFAULT_SEQUENCE_LENGTH)
    problems = id_pattern_problems(pattern) + sequence_length_problems(length)
    if problems:
        raise ConfigurationError(f"website.id_formats.{id_type}: " + "; ".join(problems))
    return pattern, length


def resolve_prefix(id_type: str, tenant: School) -> str:
    prefixes = settings_service.resolve("website.prefixes", tenant)
    for candidate in (id_type, id_type.removesuffix("_id")):
        value = prefixes.get(candidate)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return id_type.replace("_", "")[:3].upper()


def next_sequence(*, tenant_id: int, id_type: str, year: int) -> int:
    """
    Allocate the next number for (tenant, id_type, year) inside the caller's transaction.

    The first caller inserts the counter row; a concurrent first caller that
    loses the insert race falls back to the UPDATE path.
    """
    stmt = (
        update(IdentifierSequence)
        .where(
            IdentifierSequence.school_id == tenant_id,
            IdentifierSequence.id_type == id_type,
            IdentifierSequence.year == year,
        )
        .values(next_number=IdentifierSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _allocated() -> int:
        current = (
            db.session.query(IdentifierSequence.next_number)
            .filter_by(school_id=tenant_id, id_type=id_type, year=year)
            .scalar()
        )
        return current - 1

    if db.session.execute(stmt).rowcount:
        return _allocated()

    db.session.add(IdentifierSequence(school_id=tenant_id, id_type=id_type, year=year, next_number=2))
    try:
        db.session.flush()
        return 1
    except IntegrityError:
        db.session.rollback()
        if not db.session.execute(stmt).rowcount:
            raise
        return _allocated()


def peek_next_sequence(id_type: str, tenant: School, year=None) -> int:
    tenant = _require_tenant(tenant)
    seq = (
        db.session.query(IdentifierSequence.next_number)
        .filter_by(school_id=tenant.id, id_type=_require_id_type(id_type), year=_year(year))
        .scalar()
    )
    return seq or 1


def render(pattern: str, *, prefix: str, school: str, year: int, sequence: int, length: int) -> str:
    """Substitute placeholders literally in one pass, then tidy separators."""
    values = {
        "PREFIX": prefix,
        "SCHOOL": school,
        "YEAR": str(year),
        "SEQUENCE": str(sequence).zfill(length),
    }
    value = PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], pattern)
    for sep in SEPARATORS:
        value = re.sub(re.escape(sep) + "{2,}", sep, value)
    return value.strip(SEPARATORS)


def generate(id_type: str, tenant: School, year=None) -> str:
    """
    Produce the next identifier of id_type for tenant, e.g. ``STD-2025-000001``.

    Each call consumes one sequence number and commits it.
    """
    tenant = _require_tenant(tenant)
    id_type = _require_id_type(id_type)
    year = _year(year)

    try:
        pattern, length = resolve_format(id_type, tenant)
    except ConfigurationError as exc:
        current_app.logger.error(
            "Identifier format for %s is corrupt (tenant %s): %s", id_type, tenant.id, exc
        )
        raise
    prefix = resolve_prefix(id_type, tenant)

    def _op() -> str:
        sequence = next_sequence(tenant_id=tenant.id, id_type=id_type, year=year)
        identifier = render(
            pattern,
            prefix=prefix,
            school=tenant.short_code,
            year=year,
            sequence=sequence,
            length=length,
        )
        if not identifier or len(identifier) > MAX_IDENTIFIER_LENGTH:
            raise ConfigurationError(
                f"Pattern {pattern!r} produced an unusable identifier for {id_type}"
            )
        return identifier

    try:
        return run_in_transaction(
            _op, operation="identifier.generate", tenant_id=tenant.id, id_type=id_type, year=year
        )
    except ConfigurationError as exc:
        current_app.logger.error("Identifier generation failed for %s (tenant %s): %s", id_type, tenant.id, exc)
        raise


def reset_counter(id_type: str, tenant: School, year=None, *, start_at: int = 1) -> dict:
    """Admin utility: the next generated identifier will use start_at."""
    tenant = _require_tenant(tenant)
    id_type = _require_id_type(id_type)
    year = _year(year)
    start_at = coerce_int(start_at, field="start_at")
    if start_at < 1:
        raise InvalidArgumentError("start_at must be at least 1")

    def _op() -> dict:
        seq = (
            db.session.query(IdentifierSequence)
            .filter_by(school_id=tenant.id, id_type=id_type, year=year)
            .first()
        )
        if seq is None:
            seq = IdentifierSequence(school_id=tenant.id, id_type=id_type, year=year, next_number=start_at)
            db.session.add(seq)
        else:
            seq.next_number = start_at
        db.session.flush()
        return seq.to_dict()

    result = run_in_transaction(_op, operation="identifier.reset", tenant_id=tenant.id, id_type=id_type, year=year)
    current_app.logger.info("Identifier counter %s/%s reset to %d for tenant %s", id_type, year, start_at, tenant.id)
    return result
