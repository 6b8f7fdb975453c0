# Overview: Flask CLI command groups for bootstrap, demo data and user administration.

# backend/smartpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Apply migrations first: python -m flask db upgrade
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: default shop settings and admin/manager/cashier users.
# - python -m flask system seed-demo
#   Demo categories, suppliers and products with opening stock.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with role and active status.
# - python -m flask users create --username jane --full-name "Jane Doe" --password "Password123!" --role cashier
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .errors import PosError
from .extensions import db
from .models import Category, Product, Supplier, User
from .permissions import Role
from .services import auth_service, category_service, products_service
from .services.settings_service import ensure_defaults


DEMO_CATEGORIES = (
    ("Beverages", "Soft drinks, juices, and water"),
    ("Snacks", "Chips, biscuits, and quick bites"),
    ("Dairy", "Milk, yogurt, and dairy products"),
    ("Bakery", "Bread, pastries, and baked goods"),
    ("Groceries", "Rice, sugar, flour, and essentials"),
)

DEMO_SUPPLIERS = (
    ("Lanka Beverages Co.", "Mr. Bandara", "0112345678", "info@lankabev.lk"),
    ("Fresh Dairy Ltd.", "Mrs. Perera", "0117654321", "sales@freshdairy.lk"),
    ("Snack Masters", "Mr. Fernando", "0119876543", "orders@snackmasters.lk"),
)

# (name, barcode, category, supplier, cost cents, price cents, opening stock, reorder level)
DEMO_PRODUCTS = (
    ("Coca Cola 500ml", "8888001001", "Beverages", "Lanka Beverages Co.", 8000, 12000, 150, 20),
    ("Sprite 500ml", "8888001002", "Beverages", "Lanka Beverages Co.", 8000, 12000, 120, 20),
    ("Orange Juice 1L", "8888001003", "Beverages", "Lanka Beverages Co.", 18000, 25000, 80, 15),
    ("Potato Chips 100g", "8888002001", "Snacks", "Snack Masters", 9000, 13000, 60, 15),
    ("Chocolate Biscuits", "8888002002", "Snacks", "Snack Masters", 12000, 16000, 8, 10),
    ("Fresh Milk 1L", "8888003001", "Dairy", "Fresh Dairy Ltd.", 32000, 38000, 40, 10),
    ("Yogurt Cup", "8888003002", "Dairy", "Fresh Dairy Ltd.", 5000, 7000, 0, 10),
    ("Sandwich Bread", "8888004001", "Bakery", None, 14000, 18000, 25, 5),
    ("White Rice 5kg", "8888005001", "Groceries", None, 110000, 135000, 30, 5),
)


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize shop settings and default users.

    Creates:
    - The shop settings row with defaults (if none exists)
    - Users: admin, manager, cashier (see auth_service.DEFAULT_USERS)

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing SmartPOS...")

    settings = ensure_defaults()
    click.echo(f"PASS Shop settings ready: {settings.shop_name}")

    created = auth_service.ensure_default_users()
    for user in created:
        click.echo(f"PASS Created user: {user.username} ({user.role.value})")
    if not created:
        click.echo("PASS Default users already exist")

    click.echo("DONE SmartPOS initialized")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load demo categories, suppliers and products. Skips rows that already exist."""
    ensure_defaults()
    auth_service.ensure_default_users()
    admin = db.session.query(User).filter_by(username="admin").first()

    categories = {}
    for name, description in DEMO_CATEGORIES:
        category = db.session.query(Category).filter_by(name=name).first()
        if category is None:
            category = category_service.create_category({"name": name, "description": description})
            click.echo(f"PASS Created category: {name}")
        categories[name] = category.id

    suppliers = {}
    for name, contact, phone, email in DEMO_SUPPLIERS:
        supplier = db.session.query(Supplier).filter_by(name=name).first()
        if supplier is None:
            supplier = Supplier(name=name, contact_name=contact, phone=phone, email=email, is_active=True)
            db.session.add(supplier)
            db.session.commit()
            click.echo(f"PASS Created supplier: {name}")
        suppliers[name] = supplier.id

    for name, barcode, category, supplier, cost, price, stock, reorder in DEMO_PRODUCTS:
        if db.session.query(Product).filter_by(barcode=barcode).first():
            continue
        try:
            products_service.create_product(
                {
                    "name": name,
                    "barcode": barcode,
                    "category_id": categories[category],
                    "supplier_id": suppliers.get(supplier),
                    "cost_price_cents": cost,
                    "selling_price_cents": price,
                    "stock_quantity": stock,
                    "reorder_level": reorder,
                },
                user_id=admin.id if admin else None,
            )
            click.echo(f"PASS Created product: {name} ({stock} in stock)")
        except PosError as exc:
            click.echo(f"FAIL {name}: {exc.message}")

    click.echo("DONE Demo data loaded")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--full-name', default='', help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([r.value.lower() for r in Role]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(username, full_name, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = auth_service.create_user(username, password, full_name or None, role)
    except PosError as exc:
        click.echo(f"FAIL {exc.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user: {user.username} ({user.role.value})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = auth_service.list_users(include_inactive=True)

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Full name':<30} {'Role':<10} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        click.echo(
            f"{user.id:<5} {user.username:<20} {(user.full_name or ''):<30} "
            f"{user.role.value:<10} {'yes' if user.is_active else 'no'}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
