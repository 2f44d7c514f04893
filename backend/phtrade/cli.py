# Overview: Flask CLI command groups for database bootstrap, user accounts and ledger inspection.

# backend/phtrade/cli.py
# Usage (from backend/, with FLASK_APP=wsgi.py):
#
#   flask system init                 create missing tables
#   flask system reset-db --yes       drop + recreate every table (dev only)
#
#   flask users create --username admin --email admin@phtrade.local --role ADMIN
#                                     admins can only be created here
#   flask users list                  id, username, email, role
#
#   flask pharmacies balances 3 --sort-by amount
#                                     standing of pharmacy 3 with every counterpart

import click
from flask.cli import with_appcontext

from .errors import PhTradeError
from .extensions import db
from .services import pharmacy_service, user_service
from .services.dtos import UserInsert


RULE = "=" * 80


@click.group('system')
def system_group():
    """Database bootstrap."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create every table that does not exist yet."""
    click.echo("START Initializing phtrade database...")
    db.create_all()
    click.echo("PASS Tables ready")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Do not ask for confirmation')
@with_appcontext
def reset_db(yes):
    """Drop and recreate the ledger schema. Every user, pharmacy and trade is lost."""
    if not yes:
        click.confirm("WARN Every user, pharmacy and trade record will be deleted. Continue?", abort=True)

    click.echo("DELETE  Dropping ledger tables...")
    db.drop_all()
    click.echo("BUILD  Recreating ledger tables...")
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """Ledger accounts."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Login name (4-55 characters)')
@click.option('--email', prompt=True, help='Unique email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Initial password')
@click.option('--role', type=click.Choice(['REGULAR', 'ADMIN'], case_sensitive=False), default='REGULAR', help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """Create an account; the only way to get an ADMIN."""
    try:
        user = user_service.insert_user(
            UserInsert(username=username, email=email, password=password, role=role.upper())
        )
    except PhTradeError as e:
        raise click.ClickException(f"FAIL {e.message}") from e

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('list')
@with_appcontext
def list_users():
    """Every account, oldest first."""
    accounts = user_service.get_all_users()
    if not accounts:
        click.echo("No users found.")
        return

    click.echo(RULE)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Role'}")
    click.echo(RULE)
    for account in accounts:
        click.echo(f"{account.id:<5} {account.username:<20} {account.email:<35} {account.role}")
    click.echo(RULE)


@click.group('pharmacies')
def pharmacies_group():
    """Ledger inspection per pharmacy."""


@pharmacies_group.command('balances')
@click.argument('pharmacy_id', type=int)
@click.option('--sort-by', type=click.Choice(sorted(pharmacy_service.BALANCE_SORT_KEYS)), default='name')
@with_appcontext
def show_balances(pharmacy_id, sort_by):
    """Balance, trade count and contact label for each counterpart of PHARMACY_ID."""
    try:
        pharmacy = pharmacy_service.get_pharmacy_by_id(pharmacy_id)
        balances = pharmacy_service.get_balance_list(pharmacy_id, sort_by)
    except PhTradeError as e:
        raise click.ClickException(f"FAIL {e.message}") from e

    click.echo(f"Balances of {pharmacy.name} (positive: counterpart gave more)")
    if not balances:
        click.echo("No trades recorded.")
        return

    click.echo(RULE)
    click.echo(f"{'Counterpart':<30} {'Contact':<20} {'Balance':>14} {'Trades':>8}")
    click.echo(RULE)
    for balance in balances:
        click.echo(
            f"{balance.pharmacy_name:<30} {balance.contact_name or '-':<20} "
            f"{balance.amount:>14} {balance.trade_count:>8}"
        )
    click.echo(RULE)


def register_commands(app):
    """Attach the phtrade command groups to `flask`."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(pharmacies_group)
