"""
Pytest fixtures for cashbox backend tests.

Provides test database setup, users with store profiles, session tokens,
and receipt payload builders.
"""

import pytest

from cashbox import create_app
from cashbox.extensions import db
from cashbox.models import User
from cashbox.services import session_service
from cashbox.services.auth_service import hash_password


PASSWORD = "Password123!"

# bcrypt at cost 12 is slow; hash once for every fixture user
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
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
        # Clear all data but keep schema (Core deletes skip the ledger guards)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(db_session, *, name, email, superkey, store_name=None, store_contact=None) -> User:
    user = User(
        name=name,
        email=email,
        superkey=superkey,
        password_hash=PASSWORD_HASH,
        store_name=store_name,
        store_address="12 Market Road, Pune" if store_name else None,
        store_contact=store_contact,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def user(db_session):
    """Store owner with a complete profile (receipt prefix SRE-)."""
    return make_user(
        db_session,
        name="Ravi",
        email="ravi@sunrise.example",
        superkey="AB12C",
        store_name="Sunrise Store",
        store_contact="9876543210",
    )


@pytest.fixture(scope='function')
def other_user(db_session):
    """Second, unrelated store owner."""
    return make_user(
        db_session,
        name="Meera",
        email="meera@lotus.example",
        superkey="ZZ99Q",
        store_name="Lotus Mart",
        store_contact="9123456780",
    )


@pytest.fixture(scope='function')
def headers(user):
    _, token = session_service.create_session(user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def other_headers(other_user):
    _, token = session_service.create_session(other_user.id)
    return auth_headers(token)


@pytest.fixture
def receipt_payload():
    """Factory for receipt payloads; keyword arguments override top-level fields."""
    counter = {"n": 0}

    def build(**overrides):
        counter["n"] += 1
        payload = {
            "receiptNumber": f"SRE-{counter['n']:05d}",
            "date": "2026-01-15",
            "customerName": "Asha",
            "customerContact": "9000000001",
            "customerCountryCode": "+91",
            "paymentType": "cash",
            "paymentStatus": "full",
            "items": [{"description": "Widget", "quantity": 3, "price": 50}],
        }
        payload.update(overrides)
        return payload

    return build


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
