# Overview: Flask CLI command groups for bootstrap, inspection, and stock reconciliation.

# backend/ferreteria/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and the default admin / employee users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username ana --email ana@ferreteria.local --password "Password123!" --role employee
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask inventory reconcile [--product-id 12]
#   Replay the movement ledger against current_stock. Exits 1 on any divergence.
# - python -m flask inventory low-stock
#   Active products at or below their reorder threshold.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES, ROLE_ADMIN, ROLE_EMPLOYEE
from .errors import CoreError
from .services.auth_service import create_user, PasswordValidationError
from .services import inventory_service


DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create tables and default users.

    Users: admin/admin@ferreteria.local, caja/caja@ferreteria.local
    Password for both: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing database...")
    db.create_all()

    defaults = [
        ("admin", "admin@ferreteria.local", ROLE_ADMIN),
        ("caja", "caja@ferreteria.local", ROLE_EMPLOYEE),
    ]
    for username, email, role in defaults:
        existing = db.session.query(User).filter_by(username=username).first()
        if existing:
            click.echo(f"PASS Using existing user: {username} ({existing.role})")
            continue
        create_user(username, email, DEFAULT_PASSWORD, role=role)
        click.echo(f"PASS Created user: {username} ({role})")

    click.echo("PASS System initialized")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must be at least 8 characters with upper, lower, digit and
    special character.
    """
    try:
        user = create_user(username, email, password, role=role)
    except (ValueError, PasswordValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<32} {'Role':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<32} {user.role:<10} {active_str}")


@click.group('inventory')
def inventory_group():
    """Stock ledger inspection."""


@inventory_group.command('reconcile')
@click.option('--product-id', type=int, help='Only reconcile this product')
@with_appcontext
def reconcile(product_id):
    """
    Check every product's current_stock against its movement ledger.
    Exits with status 1 if any product diverges.
    """
    try:
        if product_id is not None:
            reports = [inventory_service.reconcile_product(product_id)]
        else:
            reports = inventory_service.reconcile_all()
    except CoreError as e:
        raise click.ClickException(e.message)

    diverging = [r for r in reports if not r["consistent"]]
    for r in diverging:
        click.echo(
            f"FAIL {r['sku']} (ID {r['product_id']}): current_stock={r['current_stock']} "
            f"expected={r['expected_stock']} chain_breaks={len(r['chain_breaks'])}"
        )

    click.echo(f"Checked {len(reports)} product(s), {len(diverging)} diverging")
    if diverging:
        raise SystemExit(1)
    click.echo("PASS Ledger consistent")


@inventory_group.command('low-stock')
@with_appcontext
def low_stock():
    """List active products at or below min_stock."""
    products = inventory_service.list_low_stock()
    if not products:
        click.echo("No products at or below their reorder threshold.")
        return

    click.echo(f"{'SKU':<16} {'Name':<40} {'Stock':>7} {'Min':>5}")
    for p in products:
        click.echo(f"{p.sku:<16} {p.name[:40]:<40} {p.current_stock:>7} {p.min_stock:>5}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
