"""
Pytest fixtures for ManufactureERP backend tests.

Provides test database setup, per-role users, session headers and
materials with a known opening balance.
"""

from decimal import Decimal

import pytest
from manuerp import create_app
from manuerp.extensions import db
from manuerp.services import auth_service, material_service, token_service


TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'JWT_SECRET': 'test-signing-secret-with-at-least-32-bytes',
        'BCRYPT_ROUNDS': 4,
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


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory for verified, active users of any role."""
    def _make_user(role, email=None, *, name=None, password=TEST_PASSWORD, is_verified=True, is_active=True):
        user = auth_service.create_user(
            name=name or f"{role.title()} User",
            email=email or f"{role}@erp.test",
            password=password,
            role=role,
            is_verified=is_verified,
        )
        if not is_active:
            user.is_active = False
            db_session.commit()
        return user
    return _make_user


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin")


@pytest.fixture(scope='function')
def manager_user(make_user):
    return make_user("manager")


@pytest.fixture(scope='function')
def operator_user(make_user):
    return make_user("operator")


@pytest.fixture(scope='function')
def inventory_user(make_user):
    return make_user("inventory")


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return headers_for(manager_user)


@pytest.fixture(scope='function')
def operator_headers(operator_user):
    return headers_for(operator_user)


@pytest.fixture(scope='function')
def inventory_headers(inventory_user):
    return headers_for(inventory_user)


@pytest.fixture(scope='function')
def make_material(db_session, admin_user):
    """Factory for materials; opening stock is recorded through the ledger."""
    def _make_material(code="STL-001", *, stock=0, name="Steel sheet", category="raw-material", unit="kg"):
        return material_service.create_material(
            {
                "code": code,
                "name": name,
                "category": category,
                "unit": unit,
                "unit_cost": Decimal("12.50"),
                "stock_quantity": Decimal(str(stock)),
            },
            actor_id=admin_user.id,
        )
    return _make_material


@pytest.fixture(scope='function')
def material(make_material):
    """Material with zero stock and no ledger history."""
    return make_material()


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def headers_for(user) -> dict:
    """Session headers without going through the login route."""
    return auth_headers(token_service.issue_session_token(user))


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
