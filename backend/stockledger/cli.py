# Overview: Flask CLI command groups for bootstrap and ledger maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "stockledger:create_app".
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use "flask db upgrade" for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Inventory inspection:
# - python -m flask inventory show --product-id 1 --location-id 1
#   Show on-hand, reserved and available quantity for one pair.
# - python -m flask inventory reconcile [--company-id 1]
#   Replay the movement ledger and list pairs whose snapshot disagrees.
#   Exits with status 1 when drift is found.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .services import inventory_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Tables created.")


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


@click.group('inventory')
def inventory_group():
    """Inventory inspection and ledger reconciliation."""


@inventory_group.command('show')
@click.option('--product-id', type=int, required=True)
@click.option('--location-id', type=int, required=True)
@with_appcontext
def show_inventory(product_id, location_id):
    """Show quantity, reserved and available for one product at one location."""
    try:
        summary = inventory_service.get_inventory_summary(product_id, location_id)
    except LedgerError as e:
        raise click.ClickException(str(e))

    click.echo(f"Product {summary['product_id']} ({summary['sku']}) @ location {summary['location_id']}")
    click.echo(f"  quantity:  {summary['quantity']}")
    click.echo(f"  reserved:  {summary['reserved_quantity']}")
    click.echo(f"  available: {summary['available_quantity']}")
    if not summary["tracked"]:
        click.echo("  (no inventory record yet)")


@inventory_group.command('reconcile')
@click.option('--company-id', type=int, default=None, help='Limit to one company')
@with_appcontext
def reconcile(company_id):
    """
    Compare every InventoryRecord with a replay of its movement ledger.

    Read-only: drift is reported, never corrected.
    """
    drift = inventory_service.find_ledger_drift(company_id=company_id)

    if not drift:
        click.echo("PASS Ledger and inventory snapshots agree.")
        return

    click.echo(f"FAIL {len(drift)} inventory record(s) disagree with the ledger:")
    for row in drift:
        click.echo(
            f"  product={row['product_id']} location={row['location_id']} "
            f"recorded={row['recorded_quantity']} ledger={row['ledger_quantity']} "
            f"movements={row['movement_count']}"
        )
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
