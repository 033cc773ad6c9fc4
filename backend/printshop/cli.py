# Overview: Flask CLI command groups for bootstrap, inspection, and token issuance.

# backend/printshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@printshop.local]
#   Idempotent bootstrap: tables, default tiers, services, calendar and settings
#   (and an admin user when --admin-email is given).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users and tokens (identity issuance lives outside the API):
# - python -m flask users list [--role STAFF]
# - python -m flask users create --email staff@printshop.local --role STAFF --name "Sam"
# - python -m flask users issue-token --email staff@printshop.local [--ttl-hours 24]
#   Prints a bearer token for the Authorization header.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, UserRole
from .services import session_service, user_service


ROLE_CHOICES = [r.value for r in UserRole]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default=None, help='Create an ADMIN user with this email if missing')
@with_appcontext
def init_system(admin_email):
    """Create tables and seed default catalog, calendar and settings."""
    db.create_all()
    created = user_service.seed_defaults()
    click.echo(
        "PASS Seeded tiers={tiers} services={services} calendar={calendar} settings={settings}".format(**created)
    )

    if admin_email:
        if user_service.find_user_by_email(admin_email):
            click.echo(f"SKIP Admin '{admin_email}' already exists")
        else:
            user = user_service.create_user(admin_email, UserRole.ADMIN, name="Administrator")
            click.echo(f"PASS Created admin #{user.id} {user.email}")


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
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(ROLE_CHOICES, case_sensitive=False), prompt=True, help='Role')
@click.option('--name', default=None, help='Display name')
@click.option('--company', 'company_name', default=None, help='Company name (customers)')
@with_appcontext
def create_user_cli(email, role, name, company_name):
    """Create a user."""
    try:
        user = user_service.create_user(email, UserRole(role.upper()), name=name, company_name=company_name)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user #{user.id} {user.email} ({user.role.value})")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLE_CHOICES, case_sensitive=False), default=None, help='Filter by role')
@with_appcontext
def list_users(role):
    """List users."""
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == UserRole(role.upper()))
    users = query.order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Role':<10} {'Active':<8} {'Name'}")
    click.echo("=" * 80)
    for user in users:
        click.echo(f"{user.id:<5} {user.email:<35} {user.role.value:<10} {str(user.is_active):<8} {user.name or ''}")
    click.echo("=" * 80 + "\n")


@users_group.command('issue-token')
@click.option('--email', prompt=True, help='Email of the user')
@click.option('--ttl-hours', type=int, default=None, help='Token lifetime (defaults to SESSION_TTL_HOURS)')
@with_appcontext
def issue_token(email, ttl_hours):
    """Issue a bearer token. The plaintext token is shown once and never stored."""
    user = user_service.find_user_by_email(email)
    if not user:
        raise click.ClickException(f"User '{email}' not found")
    try:
        session, token = session_service.create_session(user.id, ttl_hours=ttl_hours)
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"Token for {user.email} (expires {session.expires_at.isoformat()}Z):")
    click.echo(token)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
