# Overview: Persistence for settings documents keyed by (scope, key), with a read-through cache.

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InvalidArgumentError, StorageError
from ..extensions import db
from ..models import SettingAudit, SettingsRecord
from .concurrency import run_in_transaction


SCOPE_GLOBAL = "GLOBAL"
SCOPE_TENANT = "TENANT"
SCOPE_BRANCH = "BRANCH"

SCOPE_TYPES = (SCOPE_GLOBAL, SCOPE_TENANT, SCOPE_BRANCH)

_CACHE_EXTENSION = "registrar.settings_cache"
_MISSING = object()


@dataclass(frozen=True)
class SettingsScope:
    scope_type: str
    tenant_id: Optional[int] = None
    branch_id: Optional[int] = None

    @property
    def scope_id(self) -> int:
        if self.scope_type == SCOPE_BRANCH:
            return int(self.branch_id)
        if self.scope_type == SCOPE_TENANT:
            return int(self.tenant_id)
        return 0

    def __str__(self) -> str:
        return f"{self.scope_type}:{self.scope_id}"


def global_scope() -> SettingsScope:
    return SettingsScope(SCOPE_GLOBAL)


def tenant_scope(tenant_id: int) -> SettingsScope:
    if not tenant_id:
        raise InvalidArgumentError("tenant_id is required for tenant scope")
    return SettingsScope(SCOPE_TENANT, tenant_id=tenant_id)


def branch_scope(tenant_id: int, branch_id: int) -> SettingsScope:
    if not tenant_id or not branch_id:
        raise InvalidArgumentError("tenant_id and branch_id are required for branch scope")
    return SettingsScope(SCOPE_BRANCH, tenant_id=tenant_id, branch_id=branch_id)


class _DocumentCache:
    """Per-app document cache. A put is dropped when the key was invalidated after its read began."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[tuple, object] = {}
        self._generations: dict[tuple, int] = {}
        self._epoch = 0

    def get(self, cache_key: tuple):
        with self._lock:
            return self._entries.get(cache_key, _MISSING)

    def generation(self, cache_key: tuple) -> tuple:
        with self._lock:
            return (self._epoch, self._generations.get(cache_key, 0))

    def put(self, cache_key: tuple, value, generation: tuple) -> bool:
        with self._lock:
            if (self._epoch, self._generations.get(cache_key, 0)) != generation:
                return False
            self._entries[cache_key] = value
            return True

    def invalidate(self, cache_key: tuple) -> None:
        with self._lock:
            self._entries.pop(cache_key, None)
            self._generations[cache_key] = self._generations.get(cache_key, 0) + 1

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generations.clear()
            self._epoch += 1


def _cache() -> Optional[_DocumentCache]:
    if not current_app.config.get("SETTINGS_CACHE_ENABLED", True):
        return None
    cache = current_app.extensions.get(_CACHE_EXTENSION)
    if cache is None:
        cache = current_app.extensions.setdefault(_CACHE_EXTENSION, _DocumentCache())
    return cache


def clear_cache() -> None:
    cache = current_app.extensions.get(_CACHE_EXTENSION)
    if cache is not None:
        cache.clear()


def _cache_key(scope: SettingsScope, key: str) -> tuple:
    return (scope.scope_type, scope.scope_id, key)


def _load_record(scope: SettingsScope, key: str) -> Optional[SettingsRecord]:
    return (
        db.session.query(SettingsRecord)
        .filter_by(key=key, scope_type=scope.scope_type, scope_id=scope.scope_id)
        .first()
    )


def get_document(scope: SettingsScope, key: str) -> Optional[dict]:
    """
    Return the document stored at exactly this scope, or None when absent.

    The result is a private copy; mutating it never affects the cache.
    """
    cache = _cache()
    cache_key = _cache_key(scope, key)
    if cache is not None:
        cached = cache.get(cache_key)
        if cached is not _MISSING:
            return copy.deepcopy(cached)
        generation = cache.generation(cache_key)

    try:
        record = _load_record(scope, key)
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Failed to read settings %s at %s: %s", key, scope, exc)
        raise StorageError(f"Failed to read settings '{key}'") from exc

    value = record.value_json if record is not None else None
    if cache is not None:
        cache.put(cache_key, copy.deepcopy(value), generation)
    return copy.deepcopy(value)


def list_documents(scope: SettingsScope) -> dict[str, dict]:
    try:
        records = (
            db.session.query(SettingsRecord)
            .filter_by(scope_type=scope.scope_type, scope_id=scope.scope_id)
            .order_by(SettingsRecord.key.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.error("Failed to list settings at %s: %s", scope, exc)
        raise StorageError("Failed to list settings") from exc
    return {r.key: copy.deepcopy(r.value_json) for r in records}


def set_document(
    scope: SettingsScope,
    key: str,
    document: dict,
    *,
    actor_id: Optional[int] = None,
    reason: Optional[str] = None,
) -> SettingsRecord:
    """
    Overwrite the whole document for (scope, key) and append an audit row.

    Concurrent writers are last-write-wins.
    """
    new_value = copy.deepcopy(document)

    def _op() -> SettingsRecord:
        record = _load_record(scope, key)
        old_value = None
        if record is None:
            record = SettingsRecord(
                key=key,
                scope_type=scope.scope_type,
                scope_id=scope.scope_id,
                tenant_id=scope.tenant_id,
                branch_id=scope.branch_id,
                value_json=new_value,
                updated_by_user_id=actor_id,
            )
            db.session.add(record)
        else:
            old_value = record.value_json
            record.value_json = new_value
            record.updated_by_user_id = actor_id

        db.session.add(
            SettingAudit(
                key=key,
                scope_type=scope.scope_type,
                scope_id=scope.scope_id,
                tenant_id=scope.tenant_id,
                old_value_json=old_value,
                new_value_json=new_value,
                changed_by_user_id=actor_id,
                change_reason=reason,
            )
        )
        db.session.flush()
        return record

    cache = _cache()
    cache_key = _cache_key(scope, key)
    if cache is not None:
        cache.invalidate(cache_key)
    try:
        return run_in_transaction(_op, operation="settings.set", key=key, scope=str(scope))
    finally:
        if cache is not None:
            cache.invalidate(cache_key)


def history(scope: SettingsScope, key: str, *, limit: int = 50) -> list[SettingAudit]:
    return (
        db.session.query(SettingAudit)
        .filter_by(key=key, scope_type=scope.scope_type, scope_id=scope.scope_id)
        .order_by(SettingAudit.id.desc())
        .limit(limit)
        .all()
    )
