# Overview: Flask CLI command groups for bootstrap and shift inspection.

# backend/duka/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to duka (PowerShell: $env:FLASK_APP="duka").
# - Use: python -m flask <group> <command> [options]
#
# Bootstrap:
# - python -m flask pos init-db
#   Create all tables that do not exist yet (use `flask db upgrade` for migrations).
# - python -m flask pos seed-settings --location-id 1 --store-name "Mama Mboga" --tax-percent 16
#   Create or update the store settings row for a location.
#
# Register inspection:
# - python -m flask registers sessions --status open --limit 20
#   List recent register sessions with optional filters.

import click
from decimal import Decimal
from flask.cli import with_appcontext

from .decorators import get_store
from .extensions import db
from .services import register_service
from .services.record_store import first
from .time_utils import utcnow


@click.group('pos')
def pos_group():
    """Till bootstrap commands."""


@pos_group.command('init-db')
@with_appcontext
def init_db_cli():
    """Create all tables (idempotent)."""
    from . import models  # noqa: F401

    db.create_all()
    click.echo("Database tables created.")


@pos_group.command('seed-settings')
@click.option('--location-id', type=int, help='Location the settings apply to (omit for the default row)')
@click.option('--store-name', required=True, help='Name printed on receipts')
@click.option('--address', default='', help='Store address')
@click.option('--phone', default='', help='Store phone')
@click.option('--currency', default='KES', show_default=True)
@click.option('--tax-percent', type=Decimal, default=Decimal('0'), show_default=True, help='Tax rate as a percentage, e.g. 16')
@click.option('--discount-cap', type=int, help='Max discount percent for cashiers')
@click.option('--footer', help='Receipt footer text')
@with_appcontext
def seed_settings_cli(location_id, store_name, address, phone, currency, tax_percent, discount_cap, footer):
    """
    Create or update store settings for a location.

    Example:
        flask pos seed-settings --location-id 1 --store-name "Duka La Juma" --tax-percent 16
    """
    if tax_percent < 0 or tax_percent > 100:
        raise click.BadParameter("tax percent must be between 0 and 100", param_hint="--tax-percent")
    if discount_cap is not None and not 0 <= discount_cap <= 100:
        raise click.BadParameter("discount cap must be between 0 and 100", param_hint="--discount-cap")

    store = get_store()
    record = {
        "location_id": location_id,
        "store_name": store_name,
        "store_address": address,
        "store_phone": phone,
        "currency": currency,
        "tax_rate": tax_percent,
        "discount_cap_percent": discount_cap,
        "receipt_footer": footer,
        "updated_at": utcnow(),
    }

    existing = first(store.query("store_settings", {"location_id": location_id}, limit=1))
    if existing:
        store.update("store_settings", existing["id"], record)
        click.echo(f"Updated settings {existing['id']} for location {location_id}.")
    else:
        settings_id = store.insert("store_settings", record)
        click.echo(f"Created settings {settings_id} for location {location_id}.")


@click.group('registers')
def registers_group():
    """Register inspection commands."""


@registers_group.command('sessions')
@click.option('--cashier-id', type=int, help='Filter by cashier ID')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max sessions to show')
@with_appcontext
def list_sessions_cli(cashier_id, status, limit):
    """
    List register sessions.

    Example:
        flask registers sessions
        flask registers sessions --cashier-id 1
        flask registers sessions --status open
    """
    store = get_store()
    sessions = register_service.list_sessions(store, cashier_id=cashier_id, status=status, limit=limit)

    if not sessions:
        click.echo("No sessions found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Cashier':<8} {'Status':<8} {'Opened':<20} {'Expected':<12} {'Variance':<12} {'Notes'}")
    click.echo("="*100)

    for session in sessions:
        expected_str = "-"
        if session["expected_cents"] is not None:
            expected_str = f"{session['expected_cents'] / 100:.2f}"

        variance_str = "-"
        if session["variance_cents"] is not None:
            variance_str = f"{session['variance_cents'] / 100:+.2f}"

        notes = session["notes"][:30] if session["notes"] else "-"

        click.echo(f"{session['id']:<5} {session['cashier_id']:<8} {session['status']:<8} "
                  f"{str(session['opened_at'])[:19]:<20} {expected_str:<12} {variance_str:<12} {notes}")

    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(pos_group)
    app.cli.add_command(registers_group)
