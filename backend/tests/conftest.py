"""
Pytest fixtures for phtrade backend tests.

Provides test database setup, the alice/bob pharmacy scenario, and test client.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from phtrade import create_app
from phtrade.extensions import db
from phtrade.models import RoleType
from phtrade.services import pharmacy_service, trade_record_service, user_service
from phtrade.services.dtos import PharmacyInsert, TradeRecordInsert, UserInsert
from phtrade.time_utils import utcnow


PASSWORD = "secret-pass"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'DEFAULT_PAGE_SIZE': 10,
        'RECENT_TRADES_LIMIT': 5,
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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(username: str, role: RoleType = RoleType.REGULAR):
    return user_service.insert_user(
        UserInsert(username=username, password=PASSWORD, email=f"{username}@example.com", role=role.value)
    )


def _make_pharmacy(name: str, owner_id: int):
    return pharmacy_service.create_pharmacy(PharmacyInsert(name=name), owner_id)


def _make_record(giver_id: int, receiver_id: int, recorder_id: int, amount="100.00", days_ago: int = 1,
                description: str = "Antibiotics"):
    return trade_record_service.create_trade_record(
        TradeRecordInsert(
            description=description,
            amount=Decimal(amount),
            transaction_date=utcnow() - timedelta(days=days_ago),
            giver_pharmacy_id=giver_id,
            receiver_pharmacy_id=receiver_id,
        ),
        recorder_id,
    )


@pytest.fixture(scope='function')
def alice(db_session):
    return _make_user("alice")


@pytest.fixture(scope='function')
def bob(db_session):
    return _make_user("bob")


@pytest.fixture(scope='function')
def mallory(db_session):
    """Regular user owning nothing."""
    return _make_user("mallory")


@pytest.fixture(scope='function')
def admin(db_session):
    return _make_user("admin", RoleType.ADMIN)


@pytest.fixture(scope='function')
def pharmacy_a(alice):
    return _make_pharmacy("Pharmacy A", alice.id)


@pytest.fixture(scope='function')
def pharmacy_b(bob):
    return _make_pharmacy("Pharmacy B", bob.id)


def _get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def _auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def make_user(db_session):
    return _make_user


@pytest.fixture(scope='function')
def make_pharmacy(db_session):
    return _make_pharmacy


@pytest.fixture(scope='function')
def make_record(db_session):
    return _make_record


@pytest.fixture(scope='function')
def login(client):
    """login("alice") -> Authorization headers for that user."""
    def _login(username: str, password: str = PASSWORD) -> dict:
        token = _get_auth_token(client, username, password)
        assert token, f"login failed for {username}"
        return _auth_headers(token)
    return _login
