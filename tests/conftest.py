"""Pytest configuration and fixtures."""

import os

# Settings are read at import time; keep tests off any real database and SMTP server
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("CAPTCHA_BACKEND", "memory")
os.environ.pop("SMTP_HOST", None)
os.environ.pop("ADMIN_EMAIL", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from stayease import models  # noqa: E402, F401
from stayease.database import Base, get_db  # noqa: E402
from stayease.main import app  # noqa: E402

# Use TEST_DATABASE_URL for PostgreSQL, SQLite otherwise
SQLALCHEMY_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///./test.db")

connect_args = {"check_same_thread": False} if "sqlite" in SQLALCHEMY_DATABASE_URL else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_PASSWORD = "testpass123"


class AuthHeaders(dict):
    """Dict subclass that also stores the user's id and email."""

    def __init__(self, *args, user_id: int | None = None, email: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.user_id = user_id
        self.email = email


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database schema once at the start of the test session."""
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(scope="function", autouse=True)
def db():
    """Create a fresh database session for each test with cleanup."""
    session = TestingSessionLocal()

    yield session

    # Clean up all data after test
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()


@pytest.fixture(scope="function")
def client(db):
    """Create a test client with database override."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def solve_captcha(client: TestClient, purpose: str = "login") -> tuple[str, str]:
    """Issue a captcha through the API and read its answer from the in-memory store."""
    response = client.get("/api/captcha", params={"purpose": purpose})
    assert response.status_code == 200
    captcha_id = response.json()["captcha_id"]
    store = client.app.state.captcha_service.store
    return captcha_id, store._challenges[captcha_id].text


def login(client: TestClient, email: str, password: str = TEST_PASSWORD):
    """Log in with a freshly solved captcha."""
    captcha_id, captcha_text = solve_captcha(client)
    return client.post(
        "/api/auth/login",
        json={
            "email": email,
            "password": password,
            "captcha_id": captcha_id,
            "captcha_text": captcha_text,
        },
    )


@pytest.fixture
def registered_user(client):
    """Register a user directly and return the response body."""
    response = client.post(
        "/api/auth/register",
        json={"name": "Test User", "email": "test@example.com", "password": TEST_PASSWORD},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def auth_headers(registered_user):
    """Bearer headers for the registered user."""
    return AuthHeaders(
        {"Authorization": f"Bearer {registered_user['access_token']}"},
        user_id=registered_user["user"]["id"],
        email=registered_user["user"]["email"],
    )
