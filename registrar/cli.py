# registrar/cli.py
# Overview: Flask CLI commands for bootstrap and administration.
#
# Commands (flask <group> <command>):
#   system init                      Create tables and seed global default settings.
#   tenants create NAME [--code]     Register a school (tenant).
#   tenants add-branch TENANT NAME   Register a branch under a school.
#   tenants list                     List schools.
#   settings seed-defaults           Write the default catalog at global scope.
#   settings show KEY                Print the effective document (--tenant-id, --branch-id, --layers).
#   settings set KEY JSON            Replace a document at a scope (--tenant-id, --branch-id).
#   calendar current --tenant-id     Print a school's current session and term.
#   ids generate TYPE --tenant-id    Generate one identifier.
#   ids reset-counter TYPE           Reset a (tenant, type, year) counter.

import json

import click
from flask.cli import with_appcontext

from .errors import RegistrarError
from .extensions import db
from .services import (
    calendar_service,
    identifier_service,
    settings_service,
    tenant_service,
)


def _fail(exc: Exception):
    raise click.ClickException(str(exc))


def _tenant_or_none(tenant_id):
    if tenant_id is None:
        return None
    return tenant_service.get_tenant(tenant_id)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--overwrite-defaults', is_flag=True, help='Rewrite global defaults even if present')
@with_appcontext
def init_system(overwrite_defaults):
    """Create all tables and seed global default settings."""
    db.create_all()
    click.echo("PASS Tables created")
    written = settings_service.seed_defaults(overwrite=overwrite_defaults)
    click.echo(f"PASS Seeded {written} default settings documents")


@click.group('tenants')
def tenants_group():
    """School (tenant) management."""


@tenants_group.command('create')
@click.argument('name')
@click.option('--code', default=None, help='Short school code used in identifiers')
@with_appcontext
def create_tenant(name, code):
    try:
        school = tenant_service.create_tenant(name, code)
    except RegistrarError as exc:
        _fail(exc)
    click.echo(f"PASS Created tenant {school.name} (ID: {school.id}, Code: {school.code})")


@tenants_group.command('add-branch')
@click.argument('tenant_id', type=int)
@click.argument('name')
@click.option('--code', default=None)
@with_appcontext
def add_branch(tenant_id, name, code):
    try:
        tenant = tenant_service.get_tenant(tenant_id)
        branch = tenant_service.create_branch(tenant, name, code)
    except RegistrarError as exc:
        _fail(exc)
    click.echo(f"PASS Created branch {branch.name} (ID: {branch.id}) for tenant {tenant.id}")


@tenants_group.command('list')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive tenants')
@with_appcontext
def list_tenants(include_inactive):
    for school in tenant_service.list_tenants(include_inactive=include_inactive):
        status = "active" if school.is_active else "inactive"
        click.echo(f"{school.id}\t{school.code or '-'}\t{school.name}\t{status}")


@click.group('settings')
def settings_group():
    """Settings inspection and maintenance."""


@settings_group.command('seed-defaults')
@click.option('--overwrite', is_flag=True)
@with_appcontext
def seed_defaults(overwrite):
    written = settings_service.seed_defaults(overwrite=overwrite)
    click.echo(f"PASS Seeded {written} default settings documents")


@settings_group.command('show')
@click.argument('key')
@click.option('--tenant-id', type=int, default=None)
@click.option('--branch-id', type=int, default=None)
@click.option('--layers', is_flag=True, help='Show each scope layer as well')
@with_appcontext
def show_settings(key, tenant_id, branch_id, layers):
    try:
        tenant = _tenant_or_none(tenant_id)
        if layers:
            result = settings_service.resolve_layers(key, tenant, branch_id=branch_id)
        else:
            result = settings_service.resolve(key, tenant, branch_id=branch_id)
    except RegistrarError as exc:
        _fail(exc)
    click.echo(json.dumps(result, indent=2, sort_keys=True))


@settings_group.command('set')
@click.argument('key')
@click.argument('document')
@click.option('--tenant-id', type=int, default=None)
@click.option('--branch-id', type=int, default=None)
@click.option('--reason', default=None)
@with_appcontext
def set_settings(key, document, tenant_id, branch_id, reason):
    """Replace the whole document at the addressed scope. DOCUMENT is JSON."""
    try:
        value = json.loads(document)
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"Invalid JSON: {exc}", param_hint="DOCUMENT")
    try:
        tenant = _tenant_or_none(tenant_id)
        settings_service.save(key, value, tenant, branch_id=branch_id, reason=reason)
    except RegistrarError as exc:
        _fail(exc)
    click.echo(f"PASS Saved {key}")


@click.group('calendar')
def calendar_group():
    """Academic calendar helpers."""


@calendar_group.command('current')
@click.option('--tenant-id', type=int, required=True)
@with_appcontext
def show_current(tenant_id):
    try:
        tenant = tenant_service.get_tenant(tenant_id)
    except RegistrarError as exc:
        _fail(exc)
    session = calendar_service.current_session(tenant)
    term = calendar_service.current_term(tenant)
    click.echo(f"Session: {session.name if session else '-'}")
    click.echo(f"Term: {term.name if term else '-'}")


@click.group('ids')
def ids_group():
    """Identifier generation and counters."""


@ids_group.command('generate')
@click.argument('id_type')
@click.option('--tenant-id', type=int, required=True)
@click.option('--year', type=int, default=None)
@with_appcontext
def generate_id(id_type, tenant_id, year):
    try:
        tenant = tenant_service.get_tenant(tenant_id)
        click.echo(identifier_service.generate(id_type, tenant, year))
    except RegistrarError as exc:
        _fail(exc)


@ids_group.command('reset-counter')
@click.argument('id_type')
@click.option('--tenant-id', type=int, required=True)
@click.option('--year', type=int, default=None)
@click.option('--start-at', type=int, default=1)
@click.confirmation_option(prompt='Reset the counter? Identifiers may be reissued.')
@with_appcontext
def reset_counter(id_type, tenant_id, year, start_at):
    try:
        tenant = tenant_service.get_tenant(tenant_id)
        seq = identifier_service.reset_counter(id_type, tenant, year, start_at=start_at)
    except RegistrarError as exc:
        _fail(exc)
    click.echo(f"PASS {id_type} counter for {seq['year']} now starts at {seq['next_number']}")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(tenants_group)
    app.cli.add_command(settings_group)
    app.cli.add_command(calendar_group)
    app.cli.add_command(ids_group)
