"""
Shared test fixtures.

Sets up an isolated test database so tests never touch
the real database. Tables are created before each test and
dropped after it, so no test data persists.
"""

import os

# Settings are read once at import time. Keep the rate limits
# out of the way of ordinary tests; the rate limit tests lower
# them explicitly.
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000")
os.environ.setdefault("TRANSACTION_RATE_LIMIT", "1000")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pyotp  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from transaction_auth.main import app  # noqa: E402
from transaction_auth.models.base import Base, Database, get_db  # noqa: E402
from transaction_auth.models.enums import Role  # noqa: E402
from tests.factories import create_user  # noqa: E402


# SQLite for tests, no external database needed.
TEST_DATABASE_URL = "sqlite:///./test.db"

database = Database(TEST_DATABASE_URL)
engine = database.engine
TestSessionLocal = database.SessionLocal


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    We override the get_db dependency so the FastAPI app
    uses our test session instead of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def user(db_session):
    return create_user(db_session)


@pytest.fixture
def approver(db_session):
    return create_user(db_session, email="bob@example.com", role=Role.APPROVER)


@pytest.fixture
def admin(db_session):
    return create_user(db_session, email="root@example.com", role=Role.ADMIN)


@pytest.fixture
def totp_secret():
    return pyotp.random_base32()


@pytest.fixture
def session_factory():
    """Open extra sessions to act as a second concurrent request."""
    return TestSessionLocal
