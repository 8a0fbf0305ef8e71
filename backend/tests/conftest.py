"""
Pytest fixtures for DeliverEth backend tests.

Provides the app on an in-memory database, a per-test table wipe, one
account per role, the seeded beverage catalog and auth header helpers.
"""

import pytest

from delivereth import create_app
from delivereth.extensions import db
from delivereth.services.auth_service import create_user
from delivereth.services.beverage_service import seed_default_catalog


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MATCHING_SEED': 42,
        'VAT_RATE_BPS': 1500,
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
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(username, user_type, **extra):
    defaults = {
        "email": f"{username}@delivereth.test",
        "name": username.replace("_", " ").title(),
        "phone": "+251911000000",
    }
    defaults.update(extra)
    return create_user(username=username, password=PASSWORD, user_type=user_type, **defaults)


@pytest.fixture(scope='function')
def business_user(db_session):
    """Business customer with a TIN."""
    return _make_user(
        "bole_cafe", "business",
        business_name="Bole Cafe",
        tin="0012345678",
        address="Bole Road, Addis Ababa",
        is_vat_registered=True,
    )


@pytest.fixture(scope='function')
def other_business(db_session):
    """Second business customer, never a party to business_user's orders."""
    return _make_user("piassa_bar", "business", business_name="Piassa Bar", tin="0011111111")


@pytest.fixture(scope='function')
def stockist_user(db_session):
    """VAT-registered stockist with a TIN."""
    return _make_user(
        "kazanchis_depot", "stockist",
        business_name="Kazanchis Depot",
        tin="0098765432",
        address="Kazanchis, Addis Ababa",
        is_vat_registered=True,
    )


@pytest.fixture(scope='function')
def other_stockist(db_session):
    return _make_user("megenagna_stock", "stockist", business_name="Megenagna Stock", tin="0087654321")


@pytest.fixture(scope='function')
def vansales_user(db_session):
    return _make_user("van_agent", "vansales")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user("admin", "admin")


@pytest.fixture(scope='function')
def catalog(db_session):
    """The six default beverages, in insertion order."""
    return seed_default_catalog()


@pytest.fixture(scope='function')
def heineken(catalog):
    """Heineken Beer, 265.00 ETB per crate."""
    return next(b for b in catalog if b.name == "Heineken Beer")


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def business_headers(client, business_user):
    return auth_headers(get_auth_token(client, business_user.username))


@pytest.fixture(scope='function')
def other_business_headers(client, other_business):
    return auth_headers(get_auth_token(client, other_business.username))


@pytest.fixture(scope='function')
def stockist_headers(client, stockist_user):
    return auth_headers(get_auth_token(client, stockist_user.username))


@pytest.fixture(scope='function')
def other_stockist_headers(client, other_stockist):
    return auth_headers(get_auth_token(client, other_stockist.username))


@pytest.fixture(scope='function')
def vansales_headers(client, vansales_user):
    return auth_headers(get_auth_token(client, vansales_user.username))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


def place_order(client, headers, items, **extra) -> dict:
    """POST /api/orders and return the created order dict."""
    body = {"delivery_address": "Bole Road, Addis Ababa", "items": items}
    body.update(extra)
    resp = client.post('/api/orders', json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["order"]


def set_status(client, headers, order_id: int, status: str, **extra):
    body = {"status": status}
    body.update(extra)
    return client.patch(f'/api/orders/{order_id}/status', json=body, headers=headers)


def deliver_order(client, headers, order_id: int, stockist_id: int) -> None:
    """Walk an order from placed to delivered."""
    assert set_status(client, headers, order_id, "matched", stockist_id=stockist_id).status_code == 200
    assert set_status(client, headers, order_id, "accepted").status_code == 200
    assert set_status(client, headers, order_id, "delivering").status_code == 200
    assert set_status(client, headers, order_id, "delivered").status_code == 200
