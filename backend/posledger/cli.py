# Overview: Flask CLI command groups for schema bootstrap and ledger inspection.

# backend/posledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: flask --app posledger <group> <command> [options]
#
# System bootstrap/repair:
# - flask --app posledger system init-db
#   Create all tables that do not exist yet (idempotent).
# - flask --app posledger system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Register inspection:
# - flask --app posledger registers list [--status OPEN]
#   List cash register sessions with their folded balance.
#
# Catalog helpers:
# - flask --app posledger catalog next-code --store "Mini Queen"
#   Show the item code the next created item would receive.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ValidationError
from .models.catalog import STORE_PREFIXES
from .models.registers import REGISTER_CLOSED, REGISTER_OPEN
from .services import cash_service
from .services.code_generator import generate_item_code, generate_order_number


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables. Existing tables and data are left untouched."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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


@click.group('registers')
def registers_group():
    """Cash register inspection commands."""


@registers_group.command('list')
@click.option('--status', type=click.Choice([REGISTER_OPEN, REGISTER_CLOSED]), help='Filter by status')
@with_appcontext
def list_registers_cli(status):
    """
    List cash register sessions.

    OPEN sessions show the live folded balance; CLOSED sessions show the
    expected amount frozen at close.

    Example:
        flask registers list --status OPEN
    """
    registers = cash_service.list_registers(status)

    if not registers:
        click.echo("No registers found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'User':<20} {'Status':<8} {'Opening':>12} {'Balance':>12} {'Difference':>12}")
    click.echo("="*90)

    for register in registers:
        if register.status == REGISTER_OPEN:
            balance = cash_service.current_balance(register)
        else:
            balance = register.expected_amount
        difference = register.difference if register.difference is not None else "-"

        click.echo(
            f"{register.id:<5} {register.user_id:<20} {register.status:<8} "
            f"{register.opening_amount!s:>12} {balance!s:>12} {difference!s:>12}"
        )


@click.group('catalog')
def catalog_group():
    """Catalog code helpers."""


@catalog_group.command('next-code')
@click.option('--store', type=click.Choice(sorted(STORE_PREFIXES)), help='Store for the next item code')
@with_appcontext
def next_code_cli(store):
    """
    Preview the next generated codes. Nothing is reserved.

    Example:
        flask catalog next-code --store Lariche
    """
    try:
        if store:
            click.echo(f"Next item code: {generate_item_code(store)}")
        click.echo(f"Next purchase order number: {generate_order_number()}")
    except ValidationError as e:
        raise click.ClickException(e.message)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(registers_group)
    app.cli.add_command(catalog_group)
