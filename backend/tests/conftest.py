"""
Pytest fixtures for techstore backend tests.

Provides an in-memory app, a clean database per test, signed-in admin and
staff clients, and small factories for catalog and purchasing rows.
"""

import pytest

from techstore import create_app
from techstore.extensions import db
from techstore.models import Customer, Supplier
from techstore.services import auth_service, products_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SOLD_UNIT_RETENTION_DAYS': 4,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(autouse=True)
def db_session(app):
    """Fresh data for each test (schema is kept)."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.expunge_all()


@pytest.fixture
def client(app):
    return app.test_client()


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_user(db_session):
    return auth_service.create_user("admin", "admin@techstore.local", PASSWORD, role="admin")


@pytest.fixture
def staff_user(db_session):
    return auth_service.create_user("clerk", "clerk@techstore.local", PASSWORD, role="staff")


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, "clerk"))


@pytest.fixture
def supplier(db_session):
    supplier = Supplier(name="Kampala Electronics Ltd", contact_person="Grace", phone="+256700000001", is_active=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture
def customer(db_session):
    customer = Customer(name="Brian Okello", phone="+256772000111", email="brian@example.com")
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def make_product(db_session):
    """Factory: make_product(name="...", price=..., stock=..., **columns)."""
    counter = {"n": 0}

    def _make(name=None, *, price=1000, stock=0, category="Laptops", **columns):
        counter["n"] += 1
        patch = {
            "name": name or f"Product {counter['n']}",
            "category": category,
            "price": price,
            "is_active": columns.pop("is_active", True),
        }
        patch.update(columns)
        return products_service.create_product(patch=patch, initial_stock=stock)

    return _make
