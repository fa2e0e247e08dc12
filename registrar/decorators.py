# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .errors import InvalidArgumentError, NotFoundError
from .services import tenant_service


def require_tenant(f):
    """
    Establish tenant context from the X-Tenant-Id header.

    Sets g.tenant (School) and g.actor_id (X-Actor-Id, optional). Authentication
    happens upstream; this only resolves which school the request acts on.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Tenant-Id")
        if not raw:
            return jsonify({"error": "X-Tenant-Id header is required"}), 400
        try:
            g.tenant = tenant_service.get_tenant(raw)
        except InvalidArgumentError as exc:
            return jsonify({"error": str(exc)}), 400
        except NotFoundError as exc:
            return jsonify({"error": str(exc)}), 404

        actor = request.headers.get("X-Actor-Id")
        g.actor_id = int(actor) if actor and actor.isdigit() else None
        return f(*args, **kwargs)

    return decorated_function


def optional_tenant(f):
    """Like require_tenant, but a missing header means global scope (g.tenant = None)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not request.headers.get("X-Tenant-Id"):
            g.tenant = None
            actor = request.headers.get("X-Actor-Id")
            g.actor_id = int(actor) if actor and actor.isdigit() else None
            return f(*args, **kwargs)
        return require_tenant(f)(*args, **kwargs)

    return decorated_function
