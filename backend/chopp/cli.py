# Overview: Flask CLI command groups for database bootstrap, demo data and stock maintenance.

# backend/chopp/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database bootstrap/repair:
# - python -m flask db-admin init
#   Create any missing tables (idempotent).
# - python -m flask db-admin reset --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Demo data:
# - python -m flask demo seed
#   Insert sample products, customers, equipment and staff (skipped if products exist).
#
# Stock maintenance:
# - python -m flask stock reconcile [--product-id 3] [--fix]
#   Replay the movement log and report (or repair) drifted stock counters.

from datetime import timedelta

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product
from .services import catalog_service, directory_service, finance_service
from .time_utils import today


@click.group('db-admin')
def db_admin_group():
    """Database bootstrap and repair commands."""


@db_admin_group.command('init')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@db_admin_group.command('reset')
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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('demo')
def demo_group():
    """Sample data for local development."""


DEMO_PRODUCTS = [
    {"name": "Chopp Pilsen 30L", "category": "chopp", "price_cents": 45000, "cost_price_cents": 30000, "liters": 30.0, "stock_quantity": 10},
    {"name": "Chopp Pilsen 50L", "category": "chopp", "price_cents": 70000, "cost_price_cents": 48000, "liters": 50.0, "stock_quantity": 6},
    {"name": "Chopp IPA 30L", "category": "chopp", "price_cents": 60000, "cost_price_cents": 42000, "liters": 30.0, "stock_quantity": 4},
    {"name": "Copos 300ml (100un)", "category": "acessorio", "price_cents": 2500, "cost_price_cents": 1200, "liters": 0.0, "stock_quantity": 40},
]

DEMO_CUSTOMERS = [
    {"full_name": "Maria Souza", "phone": "11988887777", "address": "Rua das Flores, 120"},
    {"full_name": "Joao Lima", "phone": "11977776666", "address": "Av. Brasil, 900"},
]

DEMO_ASSETS = [
    {"code": "CHP-01", "model": "Chopeira eletrica 2 torneiras"},
    {"code": "CHP-02", "model": "Chopeira gelo 1 torneira"},
]

DEMO_EMPLOYEES = [
    {"name": "Carlos Entregador", "role": "deliverer", "salary_cents": 180000},
]


@demo_group.command('seed')
@with_appcontext
def seed_demo():
    """Insert sample data. Does nothing when the catalog already has products."""
    if db.session.query(Product).count() > 0:
        click.echo("WARN  Products already exist, skipping demo seed")
        return

    for patch in DEMO_PRODUCTS:
        catalog_service.create_product(patch=patch)
    for patch in DEMO_CUSTOMERS:
        directory_service.create_customer(patch=patch)
    for patch in DEMO_ASSETS:
        directory_service.create_asset(patch=patch)
    for patch in DEMO_EMPLOYEES:
        finance_service.create_employee(patch=patch)
    finance_service.create_expense(patch={
        "description": "Gelo para evento",
        "category": "supplies",
        "amount_cents": 3500,
        "date": today() - timedelta(days=1),
    })

    click.echo(
        f"PASS Seeded {len(DEMO_PRODUCTS)} products, {len(DEMO_CUSTOMERS)} customers, "
        f"{len(DEMO_ASSETS)} assets, {len(DEMO_EMPLOYEES)} employees"
    )


@click.group('stock')
def stock_group():
    """Stock counter inspection and repair."""


@stock_group.command('reconcile')
@click.option('--product-id', type=int, default=None, help='Only check this product')
@click.option('--fix', is_flag=True, help='Rewrite drifted counters to the replayed value')
@with_appcontext
def reconcile(product_id, fix):
    """Replay stock movements and compare with each product's counter."""
    report = catalog_service.reconcile_stock(product_id=product_id, fix=fix)
    click.echo(f"Checked {report['checked']} product(s)")
    if not report["drifted"]:
        click.echo("PASS No drift found")
        return
    for row in report["drifted"]:
        click.echo(
            f"WARN  #{row['product_id']} {row['name']}: stored={row['stored']} expected={row['expected']}"
        )
    if report["fixed"]:
        click.echo(f"PASS Fixed {len(report['drifted'])} counter(s)")
    else:
        click.echo("Run again with --fix to repair")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(db_admin_group)
    app.cli.add_command(demo_group)
    app.cli.add_command(stock_group)
