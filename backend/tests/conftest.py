"""
Pytest fixtures for bookstore backend tests.

Provides test database setup, users in every role, books, and the test client.
"""

from decimal import Decimal

import pytest
from bookstore import create_app
from bookstore.extensions import db
from bookstore.models import Book, User, UserRole, UserStatus
from bookstore.services.auth_service import hash_password


DEFAULT_PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'JWT_ACCESS_SECRET': 'test-access-secret-0123456789abcdef0123',
    'JWT_REFRESH_SECRET': 'test-refresh-secret-0123456789abcdef012',
    'ACCESS_TOKEN_TTL': '15m',
    'REFRESH_TOKEN_TTL': '7d',
    'BCRYPT_ROUNDS': 4,
    'LOG_LEVEL': 'WARNING',
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(dict(TEST_CONFIG))

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def file_app(tmp_path):
    """
    App on a file-backed SQLite database.

    Threads get their own connections here, so writers really contend for
    the database lock (the in-memory app shares one connection).
    """
    config = dict(TEST_CONFIG)
    config['SQLALCHEMY_DATABASE_URI'] = f"sqlite:///{tmp_path / 'race.db'}"
    config['SQLALCHEMY_ENGINE_OPTIONS'] = {'connect_args': {'timeout': 30}}
    app = create_app(config)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


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


def make_user(
    db_session,
    email: str,
    role: UserRole = UserRole.USER,
    status: UserStatus = UserStatus.ACTIVE,
    name: str = "Test User",
    password: str = DEFAULT_PASSWORD,
) -> User:
    user = User(
        email=email,
        name=name,
        password_hash=hash_password(password),
        role=role,
        status=status,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_book(db_session, title: str = "Dune", price: str = "20", stock: int = 10) -> Book:
    book = Book(title=title, price=Decimal(price), stock=stock)
    db_session.add(book)
    db_session.commit()
    return book


@pytest.fixture(scope='function')
def user(db_session):
    """Plain customer account."""
    return make_user(db_session, "user@example.com", name="Reader One")


@pytest.fixture(scope='function')
def other_user(db_session):
    return make_user(db_session, "other@example.com", name="Reader Two")


@pytest.fixture(scope='function')
def curator(db_session):
    return make_user(db_session, "curator@example.com", role=UserRole.CURATOR, name="Curator")


@pytest.fixture(scope='function')
def admin(db_session):
    return make_user(db_session, "admin@example.com", role=UserRole.ADMIN, name="Admin")


@pytest.fixture(scope='function')
def book(db_session):
    """Book with price 20 and 10 units in stock."""
    return make_book(db_session)


def get_auth_token(client, email: str, password: str = DEFAULT_PASSWORD) -> str:
    """Helper to get an access token for a user."""
    response = client.post('/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json['payload']['accessToken']
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def user_headers(client, user):
    return auth_headers(get_auth_token(client, user.email))


@pytest.fixture(scope='function')
def other_user_headers(client, other_user):
    return auth_headers(get_auth_token(client, other_user.email))


@pytest.fixture(scope='function')
def curator_headers(client, curator):
    return auth_headers(get_auth_token(client, curator.email))


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, admin.email))
