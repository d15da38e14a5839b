# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/economica/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py.
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create tables and one user per role (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Add demo products, clients and coupons.
#
# Users:
# - python -m flask users list
# - python -m flask users create --email a@b.c --password "Secret123" --role LEVEL_3_MANAGER
#
# Permissions:
# - python -m flask perms list [--role LEVEL_1_CASHIER] [--category sales]
# - python -m flask perms check cajero@laeconomica.local sales:apply_discount

from datetime import timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Client, Coupon, Product, User
from .permissions import (
    PERMISSION_DEFINITIONS,
    ROLE_PERMISSIONS,
    Role,
    effective_permissions,
)
from .services import permission_service, products_service
from .services.auth_service import PasswordValidationError, create_user
from .time_utils import utcnow


DEFAULT_PASSWORD = "Economica123"

DEFAULT_USERS = [
    ("dev@laeconomica.local", Role.DEVELOPER, "Desarrollo"),
    ("dueno@laeconomica.local", Role.OWNER, "Dueño"),
    ("gerente@laeconomica.local", Role.MANAGER, "Gerente"),
    ("supervisor@laeconomica.local", Role.SUPERVISOR, "Supervisor"),
    ("cajero@laeconomica.local", Role.CASHIER, "Cajero"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create the schema and one account per role.

    All passwords default to DEFAULT_PASSWORD. Change them in production!
    """
    click.echo("START Initializing La Económica POS...")
    db.create_all()

    for email, role, first_name in DEFAULT_USERS:
        if db.session.query(User).filter_by(email=email).first():
            click.echo(f"SKIP {email} already exists")
            continue
        create_user(email, DEFAULT_PASSWORD, role, first_name=first_name)
        click.echo(f"PASS Created {email} ({role.value})")

    click.echo(f"\nDONE Default password: {DEFAULT_PASSWORD}")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """DANGER: Drop all tables and recreate schema. This will DELETE ALL DATA!"""
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    db.create_all()
    click.echo("PASS Schema recreated")


@system_group.command('seed-demo')
@click.option('--force', is_flag=True, help='Seed even when DEMO_SEED_ENABLED is false')
@with_appcontext
def seed_demo(force):
    """Demo catalog, clients and coupons for a local terminal."""
    if not (force or current_app.config["DEMO_SEED_ENABLED"]):
        raise click.ClickException("Demo seeding disabled (set DEMO_SEED_ENABLED=true or pass --force)")

    products = [
        ("ABR-001", "Arroz 1kg", 3250, 40, "pieza"),
        ("FRJ-001", "Frijol negro 1kg", 4100, 25, "pieza"),
        ("ACE-001", "Aceite vegetal 1L", 5890, 18, "pieza"),
        ("AZU-001", "Azúcar estándar", 2875, 60, "kg"),
    ]
    for sku, name, price_cents, stock, unit in products:
        if db.session.query(Product).filter_by(sku=sku).first():
            continue
        products_service.create_product(sku=sku, name=name, price_cents=price_cents, stock_quantity=stock, unit=unit)
        click.echo(f"PASS Product {sku}")

    clients = [
        ("María López", "maria@example.com", 0),
        ("Juan Pérez", "juan@example.com", 620),
        ("Ana Torres", "ana@example.com", 3100),
    ]
    for name, email, points in clients:
        if db.session.query(Client).filter_by(email=email).first():
            continue
        db.session.add(Client(name=name, email=email, total_points=points))
        click.echo(f"PASS Client {email}")

    if not db.session.query(Coupon).filter_by(code="BIENVENIDA10").first():
        db.session.add(Coupon(
            code="BIENVENIDA10",
            description="10% de bienvenida",
            discount_type="percentage",
            discount_value=10,
            max_discount_cents=5000,
            expires_at=utcnow() + timedelta(days=90),
        ))
        click.echo("PASS Coupon BIENVENIDA10")

    db.session.commit()


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    users = db.session.query(User).order_by(User.level.desc(), User.email.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 72)
    click.echo(f"{'ID':<5} {'Email':<34} {'Role':<22} {'Active'}")
    click.echo("=" * 72)
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<34} {user.role:<22} {'Yes' if user.is_active else 'No'}")
    click.echo("=" * 72 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', default=Role.CASHIER.value, show_default=True,
              type=click.Choice([r.value for r in Role]))
@click.option('--first-name', default=None)
@click.option('--last-name', default=None)
@with_appcontext
def create_user_command(email, password, role, first_name, last_name):
    try:
        user = create_user(email, password, role, first_name=first_name, last_name=last_name)
    except (ValueError, PasswordValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, {user.role})")


@click.group('perms')
def perms_group():
    """Permission inspection."""


@perms_group.command('list')
@click.option('--role', default=None, type=click.Choice([r.value for r in Role]))
@click.option('--category', default=None, help='e.g. sales, inventory, customers')
def list_permissions(role, category):
    allowed = ROLE_PERMISSIONS[Role.parse(role)] if role else None
    for code, name, _description, perm_category in PERMISSION_DEFINITIONS:
        if category and perm_category.value != category.lower():
            continue
        if allowed is not None and "*" not in allowed and code not in allowed:
            continue
        click.echo(f"{code:<32} {name}")


@perms_group.command('check')
@click.argument('email')
@click.argument('permission')
@with_appcontext
def check_permission(email, permission):
    """Check a user's permission, temporary grants included."""
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if not user:
        raise click.ClickException(f"User {email} not found")

    allowed = permission_service.user_is_authorized(user, permission)
    click.echo(f"{'ALLOWED' if allowed else 'DENIED'} {user.email} {permission}")
    if not allowed:
        held = sorted(effective_permissions(permission_service.principal_for(user)))
        click.echo(f"Holds: {', '.join(held)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
