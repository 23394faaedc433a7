"""
Pytest fixtures for Duka backend tests.

Provides test database setup, record store fixtures (including one that
fails on demand), cashier sessions, and test client.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from duka import create_app
from duka.decorators import SESSIONS_KEY
from duka.errors import StoreError
from duka.extensions import db
from duka.services import register_service
from duka.services.record_store import RecordStore, SqlRecordStore
from duka.services.session_context import CashierSession, SessionRegistry
from duka.services.settings_service import default_profile


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STORE_RETRY_ATTEMPTS': 1,
        'DEFAULT_TAX_RATE_PERCENT': 0,
        'DISCOUNT_CAP_PERCENT': 30,
        'PRIVILEGED_ROLES': ('owner',),
        'REVALIDATE_STOCK_AT_COMMIT': False,
    })

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
    """Create fresh database (and cashier registry) for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        app.extensions[SESSIONS_KEY] = SessionRegistry(app.config['PRIVILEGED_ROLES'])

        yield db.session

        # Cleanup after test
        db.session.rollback()


class FailingRecordStore(RecordStore):
    """
    Wraps a real store and raises StoreError for chosen (operation, table)
    pairs. Everything else passes through.
    """

    def __init__(self, inner: RecordStore):
        self.inner = inner
        self.fail_on: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []

    def fail(self, operation: str, table: str) -> "FailingRecordStore":
        self.fail_on.add((operation, table))
        return self

    def heal(self) -> None:
        self.fail_on.clear()

    def _check(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        if (operation, table) in self.fail_on:
            raise StoreError(table, operation, "injected failure")

    def insert(self, table, record):
        self._check("insert", table)
        return self.inner.insert(table, record)

    def insert_many(self, table, records):
        self._check("insert_many", table)
        return self.inner.insert_many(table, records)

    def update(self, table, record_id, patch):
        self._check("update", table)
        return self.inner.update(table, record_id, patch)

    def delete(self, table, record_id):
        self._check("delete", table)
        return self.inner.delete(table, record_id)

    def get(self, table, record_id):
        self._check("get", table)
        return self.inner.get(table, record_id)

    def query(self, table, filters=None, order_by=None, descending=False, limit=None):
        self._check("query", table)
        return self.inner.query(table, filters, order_by=order_by, descending=descending, limit=limit)


@pytest.fixture(scope='function')
def store(db_session):
    """Record store over the test database."""
    return SqlRecordStore(attempts=1)


@pytest.fixture(scope='function')
def failing_store(store):
    return FailingRecordStore(store)


@pytest.fixture(scope='function')
def cashier(db_session):
    """Cashier session (role: cashier) at location 1."""
    return CashierSession(1, location_id=1, role="cashier", cashier_name="Wanjiku")


@pytest.fixture(scope='function')
def on_shift(store, cashier):
    """The cashier fixture with a shift opened on a 0.00 float."""
    register_service.open_register(cashier, store, 0)
    return cashier


@pytest.fixture(scope='function')
def owner(db_session):
    """Owner session at location 1 (uncapped discounts)."""
    return CashierSession(2, location_id=1, role="owner", cashier_name="Juma")


@pytest.fixture(scope='function')
def profile(app):
    """Store profile with 16% tax."""
    return replace(default_profile(1, app.config), store_name="Test Duka", tax_rate=Decimal("0.16"))


@pytest.fixture(scope='function')
def make_product(store):
    """Factory: insert a product and return its record."""
    def _make(name="Sugar 1kg", price_cents=10000, stock=10, location_id=1, is_active=True):
        product_id = store.insert("products", {
            "location_id": location_id,
            "name": name,
            "selling_price_cents": price_cents,
            "stock_quantity": stock,
            "is_active": is_active,
        })
        return store.get("products", product_id)
    return _make


@pytest.fixture(scope='function')
def make_customer(store):
    """Factory: insert a customer and return its record."""
    def _make(name="Mama Njeri", balance_cents=0, credit_limit_cents=0, location_id=1):
        customer_id = store.insert("customers", {
            "location_id": location_id,
            "name": name,
            "phone": "0700000000",
            "credit_limit_cents": credit_limit_cents,
            "outstanding_balance_cents": balance_cents,
        })
        return store.get("customers", customer_id)
    return _make


@pytest.fixture(scope='function')
def cashier_headers():
    return {"X-Cashier-Id": "1", "X-Location-Id": "1", "X-Cashier-Role": "cashier"}


@pytest.fixture(scope='function')
def owner_headers():
    return {"X-Cashier-Id": "2", "X-Location-Id": "1", "X-Cashier-Role": "owner"}
