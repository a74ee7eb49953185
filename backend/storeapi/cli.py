# Overview: Flask CLI command groups for bootstrap and demo data.

# backend/storeapi/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create all tables (idempotent). Use `flask db upgrade` for migrated databases.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed
#   Insert a small demo catalog when the products table is empty.

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product


DEMO_CATALOG = [
    {"name": "Ground Coffee", "description": "Medium roast ground coffee, 500g", "category": "Groceries",
     "brand": "Roastery", "quantity": 50, "price": Decimal("1.80"), "points_price": 20},
    {"name": "Green Tea", "description": "Loose leaf green tea, 100g", "category": "Groceries",
     "brand": "Leafline", "quantity": 40, "price": Decimal("4.50"), "points_price": 45},
    {"name": "Ceramic Mug", "description": "White ceramic mug, 350ml", "category": "Kitchen",
     "brand": "Homeware", "quantity": 25, "price": Decimal("8.99"), "points_price": 90},
    {"name": "French Press", "description": "Glass french press, 1 litre", "category": "Kitchen",
     "brand": "Homeware", "quantity": 10, "price": Decimal("24.00"), "points_price": 240},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create all tables that do not exist yet. Existing data is untouched."""
    click.echo("START Initializing storeapi database...")
    db.create_all()
    click.echo("PASS Tables ready.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed' for demo products.")


@click.group('catalog')
def catalog_group():
    """Catalog data commands."""


@catalog_group.command('seed')
@with_appcontext
def seed_catalog():
    """Insert the demo catalog if there are no products yet."""
    existing = db.session.query(Product).count()
    if existing:
        click.echo(f"SKIP Catalog already has {existing} products.")
        return

    for row in DEMO_CATALOG:
        db.session.add(Product(**row))
    db.session.commit()
    click.echo(f"PASS Seeded {len(DEMO_CATALOG)} products.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
