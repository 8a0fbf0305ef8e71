# Overview: Flask CLI command groups for bootstrap, accounts, and the catalog.

# backend/delivereth/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables (if missing) and seed the default beverage catalog.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask users create --username admin --email admin@delivereth.local --password "Password123!" --type admin
#   Create an account of any type (prompts if options are omitted). Admins can only be created here.
# - python -m flask users list [--type stockist]
#   List accounts, optionally filtered by type.
#
# Catalog:
# - python -m flask catalog seed
#   Insert the default beverages that are not present yet.
# - python -m flask catalog list [--category beer]
#   List beverages with prices.
#
# Security audit:
# - python -m flask security events [--type LOGIN_FAILED] [--user-id 3] [--limit 50]
#   List recent security events (logins, denials, non-participant access), newest first.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, USER_TYPES
from .services.auth_service import create_user, PasswordValidationError, AccountError
from .services.beverage_service import get_beverages_by_category, seed_default_catalog
from .services.security_service import get_security_events
from .time_utils import to_utc_z


def _format_etb(cents: int) -> str:
    return f"{cents // 100}.{cents % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the marketplace database.

    Creates any missing tables and seeds the default beverage catalog.
    Safe to run repeatedly.
    """
    click.echo("START Initializing DeliverEth...")

    db.create_all()
    click.echo("PASS Tables created")

    created = seed_default_catalog()
    if created:
        click.echo(f"PASS Seeded {len(created)} beverages: {', '.join(b.name for b in created)}")
    else:
        click.echo("PASS Catalog already seeded")

    click.echo("\nNext: create an admin with 'python -m flask users create --type admin'")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to seed the catalog.")


@click.group('users')
def users_group():
    """Account management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--type', 'user_type', type=click.Choice(USER_TYPES), prompt=True, help='Account type')
@click.option('--name', default=None, help='Contact name (defaults to username)')
@click.option('--phone', default='', help='Phone number')
@click.option('--business-name', default=None, help='Trading name')
@click.option('--tin', default=None, help='Tax identification number')
@click.option('--address', default=None, help='Business address')
@click.option('--vat-registered', is_flag=True, help='Mark the account as VAT registered')
@with_appcontext
def create_user_cli(username, email, password, user_type, name, phone, business_name, tin, address, vat_registered):
    """
    Create a new account.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(
            username=username,
            password=password,
            email=email,
            name=name or username,
            phone=phone,
            user_type=user_type,
            business_name=business_name,
            tin=tin,
            address=address,
            is_vat_registered=vat_registered,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except AccountError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created {user.user_type} account: {user.username} ({user.email}) ID {user.id}")


@users_group.command('list')
@click.option('--type', 'user_type', type=click.Choice(USER_TYPES), help='Filter by account type')
@with_appcontext
def list_users(user_type):
    """List accounts."""
    query = db.session.query(User)
    if user_type:
        query = query.filter_by(user_type=user_type)

    users = query.order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Username':<20} {'Type':<10} {'Business':<25} {'TIN':<14} {'Active'}")
    click.echo("="*100)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.username:<20} {user.user_type:<10} "
            f"{(user.business_name or '-'):<25} {(user.tin or '-'):<14} {active_str}"
        )

    click.echo("="*100 + "\n")


@click.group('catalog')
def catalog_group():
    """Beverage catalog commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Insert default beverages missing from the catalog."""
    created = seed_default_catalog()
    if not created:
        click.echo("PASS Catalog already up to date")
        return
    for beverage in created:
        click.echo(f"PASS Added {beverage.name} ({beverage.category}) ETB {_format_etb(beverage.unit_price_cents)}")


@catalog_group.command('list')
@click.option('--category', default='all', help='Category name or "all"')
@with_appcontext
def list_catalog(category):
    """List beverages with crate prices."""
    beverages = get_beverages_by_category(category)
    if not beverages:
        click.echo("No beverages found.")
        return

    for b in beverages:
        click.echo(f"{b.id:<4} {b.name:<20} {b.category:<12} ETB {_format_etb(b.unit_price_cents):>8}  x{b.quantity_per_crate}")


@click.group('security')
def security_group():
    """Security audit log commands."""


@security_group.command('events')
@click.option('--user-id', type=int, help='Filter by user ID')
@click.option('--type', 'event_type', help='Filter by event type (e.g. LOGIN_FAILED)')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_security_events(user_id, event_type, limit):
    """List recent security events, newest first."""
    events = get_security_events(user_id=user_id, event_type=event_type, limit=limit)
    if not events:
        click.echo("No security events found.")
        return

    for e in events:
        outcome = "OK  " if e.success else "DENY"
        user = e.user_id if e.user_id is not None else "-"
        click.echo(
            f"{to_utc_z(e.occurred_at)} {outcome} {e.event_type:<22} user={user:<5} "
            f"{e.action or ''} {e.resource or ''} {e.reason or ''}".rstrip()
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(security_group)
