# Overview: Settings resolution (GLOBAL -> TENANT -> BRANCH) and validated writes.

from __future__ import annotations

import copy
import re
from typing import Any, Optional

from flask import current_app

from ..errors import InvalidArgumentError
from ..extensions import db
from ..models import Branch, School
from ..settings_catalog import DEFAULT_SETTINGS
from ..validation import (
    id_pattern_problems,
    sequence_length_problems,
    validate_settings_key,
)
from . import settings_store
from .settings_store import (
    SettingsScope,
    branch_scope,
    global_scope,
    tenant_scope,
)


# Lowest precedence first; later layers override earlier ones.
PRECEDENCE = [settings_store.SCOPE_GLOBAL, settings_store.SCOPE_TENANT, settings_store.SCOPE_BRANCH]

MAX_PREFIX_LENGTH = 10
PREFIX_FORBIDDEN_RE = re.compile(r"[{}\s]")


def merge_documents(base: dict, override: dict) -> dict:
    """
    Recursively lay ``override`` over ``base`` and return a new document.

    RULES:
    - A None leaf in the override is ignored, at any depth, so the base value
      (or its absence) survives.
    - Nested mappings merge key by key.
    - Lists and scalars replace the base value wholesale.
    - Neither input is mutated.
    """
    result = copy.deepcopy(base) if isinstance(base, dict) else {}
    for key, value in (override or {}).items():
        if value is None:
            continue
        if isinstance(value, dict):
            current = result.get(key)
            merged = merge_documents(current if isinstance(current, dict) else {}, value)
            if merged or not value or isinstance(current, dict):
                result[key] = merged
        else:
            result[key] = copy.deepcopy(value)
    return result


def _tenant_id(tenant: School | int | None) -> Optional[int]:
    if tenant is None:
        return None
    if isinstance(tenant, School):
        return tenant.id
    return int(tenant)


def _require_branch(tenant_id: int, branch_id: int) -> None:
    branch = db.session.get(Branch, branch_id)
    if branch is None or branch.school_id != tenant_id:
        raise InvalidArgumentError(f"Branch {branch_id} does not belong to tenant {tenant_id}")


def scope_for(tenant: School | int | None = None, branch_id: int | None = None) -> SettingsScope:
    """Most specific scope addressed by (tenant, branch)."""
    tenant_id = _tenant_id(tenant)
    if tenant_id is None:
        if branch_id is not None:
            raise InvalidArgumentError("branch_id requires a tenant")
        return global_scope()
    if branch_id is not None:
        _require_branch(tenant_id, branch_id)
        return branch_scope(tenant_id, branch_id)
    return tenant_scope(tenant_id)


def _layer_scopes(tenant_id: Optional[int], branch_id: Optional[int]) -> list[SettingsScope]:
    scopes = [global_scope()]
    if tenant_id is not None:
        scopes.append(tenant_scope(tenant_id))
        if branch_id is not None:
            _require_branch(tenant_id, branch_id)
            scopes.append(branch_scope(tenant_id, branch_id))
    return scopes


def resolve_layers(
    key: str,
    tenant: School | int | None = None,
    *,
    branch_id: int | None = None,
) -> dict[str, Any]:
    """
    Return each stored layer plus the effective document.

    Used by admin screens to show where a value comes from.
    """
    key = validate_settings_key(key)
    tenant_id = _tenant_id(tenant)
    layers: dict[str, Optional[dict]] = {scope: None for scope in PRECEDENCE}
    effective: dict = {}
    for scope in _layer_scopes(tenant_id, branch_id):
        document = settings_store.get_document(scope, key)
        layers[scope.scope_type] = document
        if scope.scope_type == settings_store.SCOPE_GLOBAL:
            effective = copy.deepcopy(document) if document else {}
        elif document:
            effective = merge_documents(effective, document)
    return {"key": key, "layers": layers, "effective": effective}


def resolve(
    key: str,
    tenant: School | int | None = None,
    *,
    branch_id: int | None = None,
) -> dict:
    """
    Effective settings document for key.

    Without a tenant the global document is returned as stored (nulls kept).
    Missing documents at any scope count as empty. The returned dict is a
    fresh copy owned by the caller.
    """
    return resolve_layers(key, tenant, branch_id=branch_id)["effective"]


def _validate_id_formats(document: dict) -> None:
    for id_type, entry in document.items():
        if entry is None:
            continue
        if not isinstance(entry, dict):
            raise InvalidArgumentError(f"website.id_formats.{id_type} must be an object")
        problems = []
        if "pattern" in entry and entry["pattern"] is not None:
            problems.extend(id_pattern_problems(entry["pattern"]))
        if "sequence_length" in entry and entry["sequence_length"] is not None:
            problems.extend(sequence_length_problems(entry["sequence_length"]))
        if problems:
            raise InvalidArgumentError(f"website.id_formats.{id_type}: " + "; ".join(problems))


def _validate_prefixes(document: dict) -> None:
    for id_type, prefix in document.items():
        if prefix is None:
            continue
        if not isinstance(prefix, str) or len(prefix) > MAX_PREFIX_LENGTH:
            raise InvalidArgumentError(
                f"website.prefixes.{id_type} must be a string of at most {MAX_PREFIX_LENGTH} characters"
            )
        if PREFIX_FORBIDDEN_RE.search(prefix):
            raise InvalidArgumentError(f"website.prefixes.{id_type} cannot contain braces or whitespace")


_KEY_VALIDATORS = {
    "website.id_formats": _validate_id_formats,
    "website.prefixes": _validate_prefixes,
}


def validate_document(key: str, document: Any) -> None:
    if not isinstance(document, dict) or not document:
        raise InvalidArgumentError("Settings data cannot be empty")
    validator = _KEY_VALIDATORS.get(key)
    if validator is not None:
        validator(document)


def save(
    key: str,
    document: dict,
    tenant: School | int | None = None,
    *,
    branch_id: int | None = None,
    actor_id: int | None = None,
    reason: str | None = None,
) -> dict:
    """
    Replace the document stored at the most specific addressed scope.

    Full replacement: leaves not present in ``document`` are removed from that
    scope (they may still resolve from a lower-precedence layer). Use ``patch``
    to merge into the stored document instead.
    """
    key = validate_settings_key(key)
    validate_document(key, document)
    scope = scope_for(tenant, branch_id)
    record = settings_store.set_document(scope, key, document, actor_id=actor_id, reason=reason)
    current_app.logger.info("Settings %s saved at %s by actor %s", key, scope, actor_id)
    return record.to_dict()


def patch(
    key: str,
    partial: dict,
    tenant: School | int | None = None,
    *,
    branch_id: int | None = None,
    actor_id: int | None = None,
    reason: str | None = None,
) -> dict:
    """Merge ``partial`` into the document stored at the addressed scope, then save it."""
    key = validate_settings_key(key)
    if not isinstance(partial, dict) or not partial:
        raise InvalidArgumentError("Settings data cannot be empty")
    scope = scope_for(tenant, branch_id)
    stored = settings_store.get_document(scope, key) or {}
    merged = merge_documents(stored, partial)
    return save(key, merged, tenant, branch_id=branch_id, actor_id=actor_id, reason=reason)


def seed_defaults(*, overwrite: bool = False, actor_id: int | None = None) -> int:
    """Write the default catalog at GLOBAL scope. Returns how many documents were written."""
    written = 0
    scope = global_scope()
    for key, document in DEFAULT_SETTINGS.items():
        if not overwrite and settings_store.get_document(scope, key) is not None:
            continue
        settings_store.set_document(scope, key, document, actor_id=actor_id, reason="default settings")
        written += 1
    if written:
        current_app.logger.info("Seeded %d default settings documents", written)
    return written
