# Overview: Flask CLI command groups for bootstrap and reference data (instruments, catalog).

# backend/salondesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Payment instruments:
# - python -m flask instruments seed
#   Idempotently create the default instruments (cash, PIX, debit, credit).
# - python -m flask instruments list [--all]
#   List instruments with their fee schedules.
# - python -m flask instruments add --name "Visa Credit" --type CREDIT --percentage-fee 3.49 --fixed-fee 0.50 --settlement-days 30
#   Register a new instrument.
#
# Catalog:
# - python -m flask catalog add --kind SERVICE --ref SVC-CUT --name "Haircut" --price 50.00 --duration 45
#   Add a priced catalog entry.
# - python -m flask catalog list [--kind PRODUCT]
#   List catalog entries.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import PaymentInstrument
from .models.catalog import (
    INSTRUMENT_CASH,
    INSTRUMENT_CREDIT,
    INSTRUMENT_DEBIT,
    INSTRUMENT_PIX,
    VALID_INSTRUMENT_TYPES,
    VALID_ITEM_KINDS,
)
from .money import money_str
from .services import catalog_service
from .services.errors import WorkflowError


# name, type, percentage fee, fixed fee
DEFAULT_INSTRUMENTS = [
    ("Cash", INSTRUMENT_CASH, "0", "0"),
    ("PIX", INSTRUMENT_PIX, "0", "0"),
    ("Debit card", INSTRUMENT_DEBIT, "1.99", "0"),
    ("Credit card", INSTRUMENT_CREDIT, "3.49", "0"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask instruments seed' to add payment instruments.")


@click.group('instruments')
def instruments_group():
    """Payment instruments and fee schedules."""


@instruments_group.command('seed')
@with_appcontext
def seed_instruments():
    """Create the default instruments that are missing (by name)."""
    created = 0
    for order, (name, instrument_type, pct, fixed) in enumerate(DEFAULT_INSTRUMENTS):
        if db.session.query(PaymentInstrument).filter_by(name=name).first():
            click.echo(f"SKIP {name} already exists")
            continue
        catalog_service.register_instrument(
            name,
            instrument_type,
            percentage_fee=pct,
            fixed_fee=fixed,
            display_order=order,
            commit=False,
        )
        created += 1
        click.echo(f"PASS Created {name}")
    db.session.commit()
    click.echo(f"PASS {created} instrument(s) created")


@instruments_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive instruments too')
@with_appcontext
def list_instruments_cli(show_all):
    """List payment instruments."""
    instruments = catalog_service.list_instruments(include_inactive=show_all)

    if not instruments:
        click.echo("No payment instruments found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Name':<25} {'Type':<10} {'Fee %':<8} {'Fixed':<8} {'D+':<5} {'Active'}")
    click.echo("="*90)

    for i in instruments:
        active_str = "Yes" if i.is_active else "No"
        click.echo(
            f"{i.id:<5} {i.name:<25} {i.instrument_type:<10} {money_str(i.percentage_fee):<8} "
            f"{money_str(i.fixed_fee):<8} {i.settlement_days:<5} {active_str}"
        )

    click.echo("="*90 + "\n")


@instruments_group.command('add')
@click.option('--name', required=True, help='Display name')
@click.option('--type', 'instrument_type', required=True, type=click.Choice(VALID_INSTRUMENT_TYPES), help='Instrument type')
@click.option('--percentage-fee', default="0", help='Percentage fee (0-100)')
@click.option('--fixed-fee', default="0", help='Fixed fee per payment')
@click.option('--settlement-days', type=int, default=None, help='Days until settlement (default by type)')
@click.option('--card-brand', default=None, help='Card brand (cards only)')
@click.option('--inactive', is_flag=True, help='Create disabled')
@with_appcontext
def add_instrument_cli(name, instrument_type, percentage_fee, fixed_fee, settlement_days, card_brand, inactive):
    """Register a payment instrument."""
    try:
        instrument = catalog_service.register_instrument(
            name,
            instrument_type,
            percentage_fee=percentage_fee,
            fixed_fee=fixed_fee,
            settlement_days=settlement_days,
            card_brand=card_brand,
            is_active=not inactive,
        )
    except WorkflowError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(
        f"PASS Created instrument: {instrument.name} (ID: {instrument.id}, "
        f"{money_str(instrument.percentage_fee)}% + {money_str(instrument.fixed_fee)}, D+{instrument.settlement_days})"
    )


@click.group('catalog')
def catalog_group():
    """Priced services, products and packages."""


@catalog_group.command('add')
@click.option('--kind', required=True, type=click.Choice(VALID_ITEM_KINDS), help='SERVICE, PRODUCT or PACKAGE')
@click.option('--ref', required=True, help='Catalog reference (unique per kind)')
@click.option('--name', required=True, help='Display name')
@click.option('--price', required=True, help='Unit price, e.g. 50.00')
@click.option('--duration', type=int, default=None, help='Duration in minutes (services)')
@with_appcontext
def add_catalog_cli(kind, ref, name, price, duration):
    """Add a catalog entry."""
    try:
        entry = catalog_service.add_catalog_entry(kind, ref, name, price, duration_minutes=duration)
    except WorkflowError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        return

    click.echo(f"PASS Created {entry.kind} {entry.ref}: {entry.name} ({money_str(entry.unit_price)})")


@catalog_group.command('list')
@click.option('--kind', type=click.Choice(VALID_ITEM_KINDS), default=None, help='Filter by kind')
@with_appcontext
def list_catalog_cli(kind):
    """List catalog entries."""
    entries = catalog_service.list_catalog(kind)

    if not entries:
        click.echo("No catalog entries found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'Kind':<10} {'Ref':<15} {'Name':<30} {'Price':<10} {'Min':<5} {'Active'}")
    click.echo("="*80)

    for e in entries:
        active_str = "Yes" if e.is_active else "No"
        click.echo(
            f"{e.kind:<10} {e.ref:<15} {e.name:<30} {money_str(e.unit_price):<10} "
            f"{e.duration_minutes or 0:<5} {active_str}"
        )

    click.echo("="*80 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(instruments_group)
    app.cli.add_command(catalog_group)
