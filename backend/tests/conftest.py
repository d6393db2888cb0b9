"""
Pytest fixtures for storepos backend tests.

Provides an in-memory database, demo store/register/products, users for each
role, and bearer auth headers.
"""

from decimal import Decimal

import pytest
from storepos import create_app
from storepos.extensions import db
from storepos.models import Store, Register, Product, InventoryRecord
from storepos.services import auth_service, session_service
from storepos.services.transaction_service import CashierIdentity

TEST_PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PRINT_AGENT_BASE': None,
        'PRINT_AGENT_DISPATCH': 'inline',
        'ALLOW_NEGATIVE_INVENTORY': True,
        'ENFORCE_CUMULATIVE_REFUND_LIMIT': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data (and default config) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        saved = {
            key: app.config[key]
            for key in ('PRINT_AGENT_BASE', 'ALLOW_NEGATIVE_INVENTORY', 'ENFORCE_CUMULATIVE_REFUND_LIMIT')
        }

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config.update(saved)


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(code="001", name="Demo Superstore", address="123 Main St, Demo City",
                  phone="555-123-4567", timezone="UTC")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def other_store(db_session):
    store = Store(code="002", name="Second Store", timezone="UTC")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def register(db_session, store):
    register = Register(store_id=store.id, code="R1", name="Front Register 1")
    db_session.add(register)
    db_session.commit()
    return register


def _make_product(db_session, store, sku, name, price, tax_rate, category=None, barcode=None, quantity=100):
    product = Product(sku=sku, name=name, price=Decimal(price), tax_rate=Decimal(tax_rate),
                      category=category, barcode=barcode, active=True)
    product.inventory_records.append(InventoryRecord(store_id=store.id, quantity=Decimal(quantity)))
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def milk(db_session, store):
    return _make_product(db_session, store, "1001", "Whole Milk 1L", "2.99", "5",
                         category="Grocery", barcode="100000000001")


@pytest.fixture(scope='function')
def bread(db_session, store):
    return _make_product(db_session, store, "1002", "Bread Loaf", "1.99", "5",
                         category="Bakery", barcode="100000000002")


@pytest.fixture(scope='function')
def batteries(db_session, store):
    return _make_product(db_session, store, "1003", "AA Batteries (4-pack)", "4.50", "10",
                         category="Electronics", barcode="100000000003")


def _make_user(username, role, store_id=None):
    # Low bcrypt cost keeps the suite fast
    return auth_service.create_user(username, TEST_PASSWORD, role, store_id=store_id, rounds=4)


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("admin", "admin")


@pytest.fixture(scope='function')
def manager_user(db_session, store):
    return _make_user("manager", "manager", store.id)


@pytest.fixture(scope='function')
def cashier_user(db_session, store):
    return _make_user("cashier", "cashier", store.id)


@pytest.fixture(scope='function')
def cashier(cashier_user):
    return CashierIdentity.from_user(cashier_user)


def _headers_for(user):
    _, token = session_service.create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return _headers_for(cashier_user)
