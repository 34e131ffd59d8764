# Overview: Flask CLI command groups for bootstrap, inspection, and settlement recovery.

# backend/tokenapp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables and seeds the default vouchers.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Vouchers:
# - python -m flask vouchers seed
#   Insert configured default vouchers that are missing.
# - python -m flask vouchers list [--active-only]
# - python -m flask vouchers set DISKON20K 20000 [--inactive]
#
# Settlement recovery:
# - python -m flask settlement failed
#   List orders parked in VENDING_FAILED.
# - python -m flask settlement retry-vending TRN-U-070624-L-0001
#   Re-trigger vending for a paid order.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import discount_service, settlement_service
from .services.settlement_service import SettlementError, VendingFailure


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables and seed the default vouchers."""
    click.echo("START Initializing token store...")
    db.create_all()
    click.echo("PASS Tables ready")
    created = discount_service.seed_default_vouchers()
    click.echo(f"PASS Seeded {created} voucher(s)")


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
    click.echo("BUILD Recreating schema...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('vouchers')
def vouchers_group():
    """Voucher rule table."""


@vouchers_group.command('seed')
@with_appcontext
def seed_vouchers():
    created = discount_service.seed_default_vouchers()
    click.echo(f"PASS Seeded {created} voucher(s)")


@vouchers_group.command('list')
@click.option('--active-only', is_flag=True, help='Hide inactive vouchers')
@with_appcontext
def list_vouchers(active_only):
    vouchers = discount_service.list_vouchers(active_only=active_only)
    if not vouchers:
        click.echo("No vouchers found")
        return
    for v in vouchers:
        state = "active" if v["is_active"] else "inactive"
        window = f"{v['start_date'] or '-'} .. {v['end_date'] or '-'}"
        click.echo(f"{v['code']:<16} Rp {v['discount_amount']:>10,}  {state:<8} {window}")


@vouchers_group.command('set')
@click.argument('code')
@click.argument('amount', type=int)
@click.option('--description', default=None)
@click.option('--inactive', is_flag=True, help='Store the voucher as inactive')
@with_appcontext
def set_voucher(code, amount, description, inactive):
    """Create or replace a voucher."""
    try:
        voucher = discount_service.upsert_voucher(
            code, amount, description=description, is_active=not inactive,
        )
    except ValueError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {voucher.code} = Rp {voucher.discount_amount:,}")


@click.group('settlement')
def settlement_group():
    """Order settlement inspection and recovery."""


@settlement_group.command('failed')
@click.option('--limit', default=50, show_default=True)
@with_appcontext
def list_failed(limit):
    """List orders waiting for a vending retry."""
    orders = settlement_service.list_orders(status=settlement_service.STATUS_VENDING_FAILED, limit=limit)
    if not orders:
        click.echo("No orders in VENDING_FAILED")
        return
    for o in orders:
        click.echo(
            f"{o.order_id}  {o.service_id}  Rp {o.total_payment:,}  "
            f"attempts={o.vending_attempts}  error={o.last_vending_error}"
        )


@settlement_group.command('retry-vending')
@click.argument('order_id')
@with_appcontext
def retry_vending(order_id):
    """Re-trigger vending for ORDER_ID."""
    try:
        token = settlement_service.retry_vending(order_id)
    except VendingFailure as e:
        raise click.ClickException(f"Vending failed again for {e.order_id}: {e}")
    except SettlementError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {order_id} token: {token.generated_token_code}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(vouchers_group)
    app.cli.add_command(settlement_group)
