# Overview: Flask CLI command groups for bootstrap, user administration, and ledger checks.

# backend/manuerp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--with-demo-users]
#   Create all tables; optionally seed one verified user per role.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User administration:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --name "Plant Admin" --email admin@erp.local --password "Password123!" --role admin
#   Create a verified user (prompts if options are omitted).
# - python -m flask users deactivate admin@erp.local
#   Lock a user out on their next request.
#
# Stock ledger checks:
# - python -m flask stock reconcile
#   Report materials whose cached balance differs from the ledger.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Material, ROLES
from .services import auth_service, stock_ledger_service
from .errors import ValidationError


DEMO_PASSWORD = "Password123!"

DEMO_USERS = [
    ("Plant Admin", "admin@erp.local", "admin"),
    ("Plant Manager", "manager@erp.local", "manager"),
    ("Line Operator", "operator@erp.local", "operator"),
    ("Stock Keeper", "inventory@erp.local", "inventory"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--with-demo-users', is_flag=True, help='Seed one verified user per role')
@with_appcontext
def init_system(with_demo_users):
    """
    Create the schema and, optionally, demo users.

    SECURITY: Demo users share the password "Password123!". Never seed them
    in production.
    """
    click.echo("START Initializing ManufactureERP...")
    db.create_all()
    click.echo("PASS Tables created")

    if not with_demo_users:
        return

    click.echo("\nUSERS Creating demo users...")
    for name, email, role in DEMO_USERS:
        if auth_service.find_user_by_email(email):
            click.echo(f"WARN  User '{email}' already exists, skipping...")
            continue
        try:
            auth_service.create_user(
                name=name,
                email=email,
                password=DEMO_PASSWORD,
                role=role,
                is_verified=True,
            )
        except ValidationError as e:
            click.echo(f"FAIL Failed to create user '{email}': {e.message}")
            continue
        click.echo(f"PASS Created user: {email} with role '{role}'")

    click.echo(f"\nDemo password for all users: {DEMO_PASSWORD} (CHANGE IN PRODUCTION!)")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User administration commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "INACTIVE"
        verified = "verified" if user.is_verified else "unverified"
        click.echo(f"{user.id:>4}  {user.email:<32} {user.role:<10} {status:<9} {verified}")


@users_group.command('create')
@click.option('--name', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='operator', show_default=True)
@with_appcontext
def create_user_cmd(name, email, password, role):
    """Create a verified user."""
    try:
        user = auth_service.create_user(
            name=name,
            email=email,
            password=password,
            role=role,
            is_verified=True,
        )
    except ValidationError as e:
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.id}: {user.email} ({user.role})")


@users_group.command('deactivate')
@click.argument('email')
@with_appcontext
def deactivate_user(email):
    user = auth_service.find_user_by_email(email)
    if user is None:
        click.echo(f"FAIL User '{email}' not found")
        raise SystemExit(1)
    user.is_active = False
    db.session.commit()
    click.echo(f"PASS Deactivated {user.email}")


@click.group('stock')
def stock_group():
    """Stock ledger consistency commands."""


@stock_group.command('reconcile')
@with_appcontext
def reconcile_stock():
    """
    Compare each material's cached balance with its ledger.

    'ledger' drift means the cache no longer equals the fold of its entries
    (a real inconsistency). 'snapshot' drift alone is expected after an older
    entry was reversed.
    """
    materials = db.session.query(Material).order_by(Material.code).all()
    drifted = 0
    for material in materials:
        report = stock_ledger_service.reconcile_material(material.id)
        if report["snapshot_consistent"] and report["ledger_consistent"]:
            continue
        drifted += 1
        kind = "ledger" if not report["ledger_consistent"] else "snapshot"
        click.echo(
            f"WARN  {material.code:<16} cached={report['cached']} "
            f"latest={report['latest_snapshot']} ledger={report['ledger_total']} ({kind} drift)"
        )

    click.echo(f"DONE Checked {len(materials)} materials, {drifted} with drift")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
