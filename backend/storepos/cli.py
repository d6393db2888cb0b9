# backend/storepos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: demo store 001, register R1, three products with
#   100 units each, the default receipt template, and default users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --username alice --password "secret1" --role cashier --store-code 001
#   Create a user (prompts if options are omitted).

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, Register, Product, InventoryRecord, ReceiptTemplate, User
from .models.auth import ROLES
from .models.tenancy import DEFAULT_RECEIPT_HEADER, DEFAULT_RECEIPT_FOOTER
from .services.auth_service import create_user
from .validation import ValidationError, ConflictError

DEMO_STORE = {
    "code": "001",
    "name": "Demo Superstore",
    "address": "123 Main St, Demo City",
    "phone": "555-123-4567",
}

DEMO_REGISTER = {"code": "R1", "name": "Front Register 1"}

DEMO_PRODUCTS = [
    {"sku": "1001", "barcode": "100000000001", "name": "Whole Milk 1L",
     "category": "Grocery", "price": Decimal("2.99"), "tax_rate": Decimal("5")},
    {"sku": "1002", "barcode": "100000000002", "name": "Bread Loaf",
     "category": "Bakery", "price": Decimal("1.99"), "tax_rate": Decimal("5")},
    {"sku": "1003", "barcode": "100000000003", "name": "AA Batteries (4-pack)",
     "category": "Electronics", "price": Decimal("4.50"), "tax_rate": Decimal("10")},
]

DEMO_STOCK = 100

# (username, password, role, assigned to demo store)
DEFAULT_USERS = [
    ("admin", "admin123", "admin", False),
    ("manager", "manager123", "manager", True),
    ("cashier", "cashier123", "cashier", True),
]


def seed_demo_data(echo=click.echo) -> Store:
    """Create the demo store, catalog and users. Existing rows are left alone."""
    store = db.session.query(Store).filter_by(code=DEMO_STORE["code"]).first()
    if not store:
        store = Store(**DEMO_STORE)
        db.session.add(store)
        db.session.commit()
        echo(f"PASS Created store: {store.code} {store.name} (ID: {store.id})")
    else:
        echo(f"PASS Using existing store: {store.code} (ID: {store.id})")

    register = db.session.query(Register).filter_by(store_id=store.id, code=DEMO_REGISTER["code"]).first()
    if not register:
        register = Register(store_id=store.id, **DEMO_REGISTER)
        db.session.add(register)
        db.session.commit()
        echo(f"PASS Created register: {register.code} (ID: {register.id})")

    for spec in DEMO_PRODUCTS:
        product = db.session.query(Product).filter_by(sku=spec["sku"]).first()
        if product:
            echo(f"WARN  Product '{spec['sku']}' already exists, skipping...")
            continue
        product = Product(active=True, **spec)
        product.inventory_records.append(InventoryRecord(store_id=store.id, quantity=DEMO_STOCK))
        db.session.add(product)
        db.session.commit()
        echo(f"PASS Created product: {product.sku} {product.name} ({DEMO_STOCK} on hand)")

    if not db.session.query(ReceiptTemplate).filter_by(store_id=store.id).first():
        db.session.add(ReceiptTemplate(
            store_id=store.id,
            header=DEFAULT_RECEIPT_HEADER,
            footer=DEFAULT_RECEIPT_FOOTER,
            show_tax_breakdown=True,
        ))
        db.session.commit()
        echo("PASS Created default receipt template")

    for username, password, role, in_store in DEFAULT_USERS:
        if db.session.query(User).filter_by(username=username).first():
            echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username, password, role, store_id=store.id if in_store else None)
            echo(f"PASS Created user: {username} with role '{role}'")
        except (ValidationError, ConflictError) as e:
            echo(f"FAIL Failed to create user '{username}': {e}")

    return store


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the database schema and seed demo data.

    Default credentials: admin/admin123, manager/manager123, cashier/cashier123.
    Change them in production.
    """
    click.echo("START Initializing storepos...")
    db.create_all()
    store = seed_demo_data()

    click.echo("\n" + "=" * 60)
    click.echo("DONE System initialized")
    click.echo("=" * 60)
    click.echo(f"\nStore: {store.name} (ID: {store.id}, Code: {store.code})")
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    for username, password, role, _ in DEFAULT_USERS:
        click.echo(f"   {username:<8} / {password:<11} ({role})")
    click.echo("")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to seed demo data.")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@with_appcontext
def list_users_cmd():
    users = db.session.query(User).order_by(User.username).all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        store = user.store.code if user.store else "-"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<8} store={store:<6} {status}")


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), prompt=True)
@click.option('--store-code', default=None, help='Assign the user to a store by code')
@with_appcontext
def create_user_cmd(username, password, role, store_code):
    store_id = None
    if store_code:
        store = db.session.query(Store).filter_by(code=store_code).first()
        if not store:
            click.echo(f"FAIL Store '{store_code}' not found")
            return
        store_id = store.id

    try:
        user = create_user(username, password, role, store_id=store_id)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}) with role '{user.role}'")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
