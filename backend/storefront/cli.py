# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/storefront/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init --name "Owner" --email owner@example.com --password "Password123!"
#   Idempotent: creates tables, default store settings and the superadmin account.
#
# User inspection/bootstrap:
# - python -m flask users list [--role admin]
#   List all users with role and active status.
# - python -m flask users create --name "Staff" --email staff@example.com --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
#
# Payments:
# - python -m flask payments reconcile [--dry-run]
#   Repair orders whose payment status disagrees with their latest transaction.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30
#   Delete expired/revoked sessions older than the retention window.
# - python -m flask maintenance cleanup-security-events --retention-days 90
#   Delete security events older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, StoreSetting
from .models.auth import ROLES, ROLE_SUPERADMIN
from .services.auth_service import hash_password, PasswordValidationError
from .services import payment_service
from .services import session_service
from .services import security_service
from .services.settings_service import SETTINGS_KEY, DEFAULT_SETTINGS


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--name', default='Store Owner', show_default=True, help='Superadmin display name')
@click.option('--email', prompt=True, help='Superadmin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Superadmin password')
@with_appcontext
def init_system(name, email, password):
    """
    Initialize the store: tables, default settings and the superadmin.

    Safe to run again; existing rows are left alone.
    """
    click.echo("START Initializing store...")

    db.create_all()
    click.echo("PASS Tables ready")

    if not db.session.query(StoreSetting).filter_by(key=SETTINGS_KEY).first():
        db.session.add(StoreSetting(
            key=SETTINGS_KEY,
            gst_enabled=DEFAULT_SETTINGS.gst_enabled,
            gst_rate=DEFAULT_SETTINGS.gst_rate,
            shipping_enabled=DEFAULT_SETTINGS.shipping_enabled,
            shipping_amount_cents=DEFAULT_SETTINGS.shipping_amount_cents,
        ))
        db.session.commit()
        click.echo("PASS Created default store settings (GST 18%, no shipping)")
    else:
        click.echo("PASS Using existing store settings")

    email = email.strip().lower()
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        click.echo(f"PASS Superadmin already exists: {existing.email} (role {existing.role})")
        return

    try:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password),
            role=ROLE_SUPERADMIN,
            is_active=True,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        return

    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created superadmin: {user.email} (ID: {user.id})")
    click.echo("SECURITY Password securely hashed with bcrypt")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(ROLES)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user.

    The CLI is trusted: any role may be assigned.
    """
    email = email.strip().lower()
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL User '{email}' already exists")
        return

    try:
        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=True,
        )
        db.session.add(user)
        db.session.commit()
        click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{role}'")
        click.echo("SECURITY Password securely hashed with bcrypt")

    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
    except Exception as e:
        db.session.rollback()
        click.echo(f"FAIL Failed to create user: {str(e)}")


@users_group.command('list')
@click.option('--role', type=click.Choice(list(ROLES)), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all users with their roles."""
    query = db.session.query(User)

    if role:
        query = query.filter_by(role=role)

    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<35} {'Active':<8} {'Role'}")
    click.echo("="*90)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name[:24]:<25} {user.email[:34]:<35} {active_str:<8} {user.role}")

    click.echo("="*90 + "\n")


@click.group('payments')
def payments_group():
    """Payment ledger commands."""


@payments_group.command('reconcile')
@click.option('--dry-run', is_flag=True, help='Report mismatches without writing')
@with_appcontext
def reconcile_payments_cli(dry_run):
    """
    Repair orders whose payment_status disagrees with their latest transaction.

    Safe to run repeatedly.
    """
    actions = payment_service.reconcile_payment_state(dry_run=dry_run)

    if not actions:
        click.echo("PASS Order payment status and transactions agree")
        return

    verb = "Would repair" if dry_run else "Repaired"
    for action in actions:
        click.echo(f"{verb} order {action.order_id}: {action.action}")
    click.echo(f"{'DRY RUN' if dry_run else 'PASS'} {len(actions)} order(s)")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired and revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"Deleted {deleted} sessions older than {retention_days} days.")


@maintenance_group.command('cleanup-security-events')
@click.option('--retention-days', type=int, default=90, show_default=True)
@with_appcontext
def cleanup_security_events_cli(retention_days):
    """
    Cleanup old security events.

    Default retention: 90 days.
    """
    deleted = security_service.cleanup_security_events(retention_days=retention_days)
    click.echo(f"Deleted {deleted} security events older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(payments_group)
    app.cli.add_command(maintenance_group)
