"""
Pytest fixtures for stockpos backend tests.

Provides an in-memory application, a freshly reset LedgerStore per test,
engine fixtures and a test client with user headers.
"""

import pytest

from stockpos import create_app, get_store
from stockpos.extensions import db
from stockpos.models import StockLocation, User
from stockpos.services.catalog_service import CatalogService
from stockpos.services.reporting_service import ReportingEngine
from stockpos.services.sales_service import SalesEngine
from stockpos.services.stock_service import StockEngine


TEST_CONFIG = {
    'TESTING': True,
    'SECRET_KEY': 'test',
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'REPORT_TIMEZONE': 'UTC',
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        yield app
        get_store().close()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def store(app):
    """Empty store re-seeded with the default location and admin for each test."""
    store = get_store()
    store.session.rollback()
    store.clear_all_tables()
    store.initialize()

    yield store

    store.cancel_live_queries()
    store.session.rollback()


@pytest.fixture(scope='function')
def stock(store):
    return StockEngine(store)


@pytest.fixture(scope='function')
def sales(store, stock):
    return SalesEngine(store, stock)


@pytest.fixture(scope='function')
def reports(store):
    return ReportingEngine(store)


@pytest.fixture(scope='function')
def catalog(store):
    return CatalogService(store)


@pytest.fixture(scope='function')
def main_location(store):
    """The seeded default location."""
    return store.select(StockLocation)[0]


@pytest.fixture(scope='function')
def back_room(stock):
    return stock.add_location("Back Room")


@pytest.fixture(scope='function')
def admin_user(store):
    return store.session.query(User).filter_by(username="admin").one()


@pytest.fixture(scope='function')
def make_product(catalog):
    """Factory: make_product(sku="P-1", **overrides)."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        payload = {
            "sku": f"SKU-{counter['n']:03d}",
            "name": f"Product {counter['n']}",
            "cost_price_cents": 600,
            "selling_price_cents": 1000,
        }
        payload.update(overrides)
        return catalog.create_product(payload)

    return _make


@pytest.fixture(scope='function')
def stocked_product(make_product, stock, main_location):
    """Product with 10 units at the main location."""
    product = make_product()
    stock.adjust_stock(product.id, main_location.id, 10, reason="Initial stock")
    return product


def sale_item(product, quantity, unit_price_cents=None, **extra):
    """Helper to build a sale item dict."""
    item = {
        "product_id": product.id,
        "quantity": quantity,
        "unit_price_cents": product.selling_price_cents if unit_price_cents is None else unit_price_cents,
    }
    item.update(extra)
    return item


def user_headers(user) -> dict:
    """Helper to create the acting-user header."""
    return {'X-User-Id': str(user.id)}
