# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/techstore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init --username admin --email admin@techstore.local
#   Create tables (if missing) and the first admin account. Idempotent.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Staff accounts:
# - python -m flask users list
#   List staff accounts with role, active flag and granted pages.
# - python -m flask users create --username jane --email jane@techstore.local --role staff
#   Create a staff account (prompts for the password).
# - python -m flask users grant-page jane /admin/pos
#   Allow a staff account to open an admin page.
# - python -m flask users revoke-page jane /admin/pos
# - python -m flask users deactivate jane
#   Disable an account and revoke its sessions.
#
# Maintenance:
# - python -m flask maintenance cleanup-sold-units [--retention-days 4]
#   Delete sold serial units older than the retention window.
# - python -m flask maintenance cleanup-sessions --older-than-days 30
#   Delete expired or revoked session tokens.
#
# Backup:
# - python -m flask backup export --output backup.json [--table products --table sales]
#   Write a JSON backup (default file: techstore-backup-YYYY-MM-DD.json).

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import auth_service, backup_service, maintenance_service, session_service
from .services.auth_service import PasswordValidationError, UserError
from .validation import ValidationError
from .time_utils import today


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--username', default='admin', show_default=True, help='Admin username')
@click.option('--email', default='admin@techstore.local', show_default=True, help='Admin email')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Admin password')
@with_appcontext
def init_system(username, email, password):
    """
    Create all tables and the first admin account.

    Safe to re-run: an existing admin is left untouched.
    """
    click.echo("START Initializing techstore...")
    db.create_all()
    click.echo("PASS Tables ready")

    admin = db.session.query(User).filter_by(role="admin").first()
    if admin:
        click.echo(f"PASS Using existing admin: {admin.username} (ID: {admin.id})")
        return

    try:
        admin = auth_service.create_user(username, email, password, role="admin", full_name="Administrator")
    except (PasswordValidationError, UserError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created admin: {admin.username} (ID: {admin.id})")
    click.echo("SECURITY Keep this password safe; staff accounts are created with 'users create'.")


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
    """Staff account management."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List staff accounts with their pages."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Active':<8} {'Pages'}")
    click.echo("=" * 100)

    for user in users:
        pages = "all" if user.is_admin else (", ".join(auth_service.get_page_permissions(user.id)) or "none")
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<8} {active_str:<8} {pages}")

    click.echo("=" * 100 + "\n")


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', default=None, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(auth_service.VALID_ROLES)), default='staff', show_default=True)
@with_appcontext
def create_user_cli(username, email, full_name, password, role):
    """
    Create a staff or admin account.

    Password must be at least 8 characters with upper case, lower case,
    a digit and a special character.
    """
    try:
        user = auth_service.create_user(username, email, password, role=role, full_name=full_name)
    except (PasswordValidationError, UserError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


def _user_by_username(username: str) -> User:
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")
    return user


@users_group.command('grant-page')
@click.argument('username')
@click.argument('page_path')
@with_appcontext
def grant_page_cli(username, page_path):
    """Allow USERNAME to open PAGE_PATH (e.g. /admin/inventory)."""
    user = _user_by_username(username)
    try:
        auth_service.grant_page_access(user.id, page_path)
    except UserError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {username} can open {page_path}")


@users_group.command('revoke-page')
@click.argument('username')
@click.argument('page_path')
@with_appcontext
def revoke_page_cli(username, page_path):
    user = _user_by_username(username)
    if auth_service.revoke_page_access(user.id, page_path):
        click.echo(f"PASS Revoked {page_path} from {username}")
    else:
        click.echo(f"{username} did not have {page_path}")


@users_group.command('deactivate')
@click.argument('username')
@with_appcontext
def deactivate_user_cli(username):
    """Disable USERNAME and revoke their open sessions."""
    user = _user_by_username(username)
    user.is_active = False
    db.session.commit()
    revoked = session_service.revoke_all_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated {username} ({revoked} session(s) revoked)")


@click.group('maintenance')
def maintenance_group():
    """Housekeeping jobs."""


@maintenance_group.command('cleanup-sold-units')
@click.option('--retention-days', type=int, default=None, help='Defaults to SOLD_UNIT_RETENTION_DAYS')
@with_appcontext
def cleanup_sold_units_cli(retention_days):
    """Delete sold serial units whose sold date is past the retention window."""
    try:
        deleted = maintenance_service.cleanup_sold_units(retention_days=retention_days)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Deleted {deleted} sold serial unit(s).")


@maintenance_group.command('cleanup-sessions')
@click.option('--older-than-days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(older_than_days):
    deleted = session_service.cleanup_expired_sessions(older_than_days=older_than_days)
    click.echo(f"Deleted {deleted} expired or revoked session(s).")


@click.group('backup')
def backup_group():
    """JSON data backup."""


@backup_group.command('export')
@click.option('--table', 'tables', multiple=True, help='Table to include (repeatable; default all)')
@click.option('--output', type=click.Path(dir_okay=False, writable=True), default=None)
@with_appcontext
def export_backup_cli(tables, output):
    try:
        backup = backup_service.build_backup(tables=list(tables) or None)
    except ValidationError as e:
        raise click.ClickException(str(e))

    output = output or backup_service.backup_filename(today())
    with open(output, "w", encoding="utf-8") as fh:
        json.dump(backup, fh, indent=2)

    meta = backup["metadata"]
    click.echo(f"PASS Wrote {meta['total_records']} records from {meta['tables_count']} tables to {output}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(maintenance_group)
    app.cli.add_command(backup_group)
