# Overview: Flask CLI command groups for schema reset and ledger inspection.

# backend/backoffice/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the package (PowerShell: $env:FLASK_APP="backoffice").
# - Use: python -m flask <group> <command> [options]
#
# System repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Stock ledger inspection:
# - python -m flask ledger reconcile
#   Compare every Stock row against the sum of its ledger rows; exits 1 on mismatch.
# - python -m flask ledger reconcile --product-id <id>
#   Same check for a single product.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.reconciliation_service import reconcile_stock_ledger


@click.group('system')
def system_group():
    """System repair commands."""


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


@click.group('ledger')
def ledger_group():
    """Stock ledger inspection commands."""


@ledger_group.command('reconcile')
@click.option('--product-id', default=None, help='Only check this product')
@with_appcontext
def reconcile_cli(product_id):
    """
    Check that Stock.quantity equals SUM(quantity_change) for every product.

    Example:
        flask ledger reconcile
        flask ledger reconcile --product-id 3f2a...
    """
    mismatches = reconcile_stock_ledger(product_id)

    if not mismatches:
        click.echo("PASS Stock and ledger agree.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'Product':<34} {'Stock':>15} {'Ledger':>15} {'Difference':>15}")
    click.echo("="*90)

    for row in mismatches:
        stock = "missing" if row["stockQuantity"] is None else row["stockQuantity"]
        click.echo(
            f"{row['productId']:<34} {stock!s:>15} {row['ledgerQuantity']!s:>15} {row['difference']!s:>15}"
        )

    click.echo("="*90)
    click.echo(f"FAIL {len(mismatches)} product(s) out of balance.")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(ledger_group)
