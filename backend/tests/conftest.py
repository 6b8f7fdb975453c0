"""
Pytest fixtures for SmartPOS backend tests.

Provides test database setup, one user per role, catalog factories and
authenticated header helpers.
"""

import pytest

from smartpos import create_app
from smartpos.config import TestConfig
from smartpos.extensions import db
from smartpos.models import Category, Product, ShopSettings, User
from smartpos.permissions import Role
from smartpos.services import session_service
from smartpos.services.auth_service import hash_password
from smartpos.services.settings_service import ensure_defaults


PASSWORDS = {
    Role.ADMIN: "Admin123!",
    Role.MANAGER: "Manager123!",
    Role.CASHIER: "Cashier123!",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Fresh data for each test; settings row seeded with defaults."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        ensure_defaults()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='session')
def password_hashes():
    """bcrypt is slow by design; hash each role's password once per run."""
    return {role: hash_password(password) for role, password in PASSWORDS.items()}


def _make_user(db_session, password_hashes, username, role, full_name):
    user = User(
        username=username,
        password_hash=password_hashes[role],
        full_name=full_name,
        role=role,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hashes):
    return _make_user(db_session, password_hashes, "admin", Role.ADMIN, "System Administrator")


@pytest.fixture(scope='function')
def manager_user(db_session, password_hashes):
    return _make_user(db_session, password_hashes, "manager", Role.MANAGER, "Store Manager")


@pytest.fixture(scope='function')
def cashier_user(db_session, password_hashes):
    return _make_user(db_session, password_hashes, "cashier", Role.CASHIER, "Front Cashier")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user) -> dict:
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return _headers_for(cashier_user)


@pytest.fixture(scope='function')
def make_category(db_session):
    def _make(name="Beverages", description=None):
        category = Category(name=name, description=description, is_active=True)
        db_session.add(category)
        db_session.commit()
        return category
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    """Insert a product directly (no opening-stock movement)."""
    counter = {"n": 0}

    def _make(
        name=None,
        selling_price_cents=12000,
        cost_price_cents=8000,
        stock_quantity=50,
        reorder_level=10,
        category=None,
        barcode=None,
    ):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            barcode=barcode or f"TEST-{counter['n']:04d}",
            selling_price_cents=selling_price_cents,
            cost_price_cents=cost_price_cents,
            stock_quantity=stock_quantity,
            reorder_level=reorder_level,
            category_id=category.id if category else None,
            is_active=True,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def set_tax(db_session):
    def _set(enabled: bool, rate_bps: int = 0):
        settings = db_session.query(ShopSettings).first()
        settings.tax_enabled = enabled
        settings.tax_rate_bps = rate_bps
        db_session.commit()
    return _set
