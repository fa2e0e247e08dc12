"""
Tenant Service: school and branch bookkeeping plus tenant lookup helpers.

WHY: Services receive the tenant as an explicit argument. The HTTP layer and
the CLI turn an id from the outside world into a School here, once, and pass
the object down.
"""

from __future__ import annotations

from typing import Optional

from ..errors import InvalidArgumentError, NotFoundError
from ..extensions import db
from ..models import Branch, School
from ..validation import require_text
from .concurrency import run_in_transaction


def get_tenant(tenant_id, *, require_active: bool = True) -> School:
    try:
        tenant_id = int(tenant_id)
    except (TypeError, ValueError) as exc:
        raise InvalidArgumentError(f"Invalid tenant id: {tenant_id!r}") from exc
    school = db.session.get(School, tenant_id)
    if school is None or (require_active and not school.is_active):
        raise NotFoundError(f"Tenant {tenant_id} not found")
    return school


def list_tenants(*, include_inactive: bool = False) -> list[School]:
    query = db.session.query(School)
    if not include_inactive:
        query = query.filter(School.is_active.is_(True))
    return query.order_by(School.id.asc()).all()


def create_tenant(name: str, code: Optional[str] = None) -> School:
    name = require_text(name, field="name")
    code = code.strip().upper() if code and code.strip() else None

    def _op() -> School:
        if code and db.session.query(School.id).filter_by(code=code).first():
            raise InvalidArgumentError(f"Tenant code {code!r} is already in use")
        school = School(name=name, code=code, is_active=True)
        db.session.add(school)
        db.session.flush()
        return school

    return run_in_transaction(_op, operation="tenant.create", name=name)


def create_branch(tenant: School, name: str, code: Optional[str] = None) -> Branch:
    name = require_text(name, field="name")

    def _op() -> Branch:
        if db.session.query(Branch.id).filter_by(school_id=tenant.id, name=name).first():
            raise InvalidArgumentError(f"Branch {name!r} already exists")
        branch = Branch(school_id=tenant.id, name=name, code=code)
        db.session.add(branch)
        db.session.flush()
        return branch

    return run_in_transaction(_op, operation="branch.create", tenant_id=tenant.id, name=name)
