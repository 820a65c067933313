# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/cashbox/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Schema:
# - python -m flask db upgrade
#   Apply migrations (preferred for real databases).
# - python -m flask system init-db
#   Create any missing tables directly from the models (dev convenience).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system cleanup-sessions
#   Delete expired/revoked sessions older than 30 days.
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Asha" --email asha@example.com --password "Str0ng!pass"
#   Prints the generated superkey once.
#
# Ledger:
# - python -m flask ledger verify [--user-id 1]
#   Recompute balances from transactions and dues and report drift.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, AccountBalance
from .services import auth_service
from .services import balance_service
from .services import session_service
from .validation import ValidationError, ConflictError, format_money


@click.group('system')
def system_group():
    """System bootstrap and maintenance."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables (idempotent)."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database ready.")


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

    click.echo("PASS Database reset complete.")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired and revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} stale sessions")


@click.group('users')
def users_group():
    """User inspection and bootstrap."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their store profile status."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Store':<15} {'Profile'}")
    click.echo("=" * 80)
    for user in users:
        profile = "complete" if user.profile_complete else "incomplete"
        click.echo(f"{user.id:<5} {user.name:<20} {user.email:<30} {user.store_name or '-':<15} {profile}")
    click.echo("=" * 80 + "\n")


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_user_cli(name, email, password):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.signup(name, email, password)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)
    except ConflictError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.name} ({user.email}) ID {user.id}")
    click.echo(f"SECURITY Superkey (shown once): {user.superkey}")


@click.group('ledger')
def ledger_group():
    """Ledger consistency checks."""


@ledger_group.command('verify')
@click.option('--user-id', type=int, help='Only check this user')
@with_appcontext
def verify_ledger(user_id):
    """Compare stored balances with balances recomputed from source rows."""
    if user_id is not None:
        user_ids = [user_id]
    else:
        user_ids = sorted(
            {row[0] for row in db.session.query(User.id).all()}
            | {row[0] for row in db.session.query(AccountBalance.user_id).all()}
        )

    drift = 0
    for uid in user_ids:
        report = balance_service.verify_balance(uid)
        if report.ok:
            click.echo(
                f"PASS user {uid}: balance {format_money(report.balance_cents)}, "
                f"due {format_money(report.total_due_balance_cents)}"
            )
            continue
        drift += 1
        click.echo(
            f"FAIL user {uid}: balance {format_money(report.balance_cents)} "
            f"(expected {format_money(report.expected_balance_cents)}), "
            f"due {format_money(report.total_due_balance_cents)} "
            f"(expected {format_money(report.expected_total_due_balance_cents)})"
        )

    if drift:
        raise SystemExit(1)
    click.echo(f"DONE {len(user_ids)} users checked, no drift.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(ledger_group)
