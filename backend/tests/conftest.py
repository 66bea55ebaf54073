"""
Pytest configuration and fixtures for the test suite.
"""
import os
import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

# Set test environment before importing app
os.environ["ENV"] = "development"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-testing-purposes-only-32chars"
os.environ["SEED_INITIAL_DATA"] = "false"
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite:///./test.db")

from chat_backend.main import app
from chat_backend.db.base import Base
from chat_backend.db.session import SessionLocal, engine
from chat_backend.core.deps import get_db
from chat_backend.models.channel import Channel
from chat_backend.models.user import User
from chat_backend.services.auth import get_password_hash, issue_session_token


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""

    def override_get_db_with_session():
        """Return the test database session."""
        yield db

    app.dependency_overrides[get_db] = override_get_db_with_session
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def make_user(db: Session, username: str, password: str) -> User:
    user = User(username=username, password_hash=get_password_hash(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_channel(db: Session, name: str) -> Channel:
    channel = Channel(name=name)
    db.add(channel)
    db.commit()
    db.refresh(channel)
    return channel


def token_for(user: User) -> str:
    return issue_session_token(str(user.id), user.username)


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    return make_user(db, "alice", "AlicePassword1")


@pytest.fixture
def other_user(db: Session) -> User:
    """Create another test user."""
    return make_user(db, "bob", "BobPassword1")


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Create authentication headers for test user."""
    return {"Authorization": f"Bearer {token_for(test_user)}"}


@pytest.fixture
def general(db: Session) -> Channel:
    return make_channel(db, "general")


@pytest.fixture
def random_channel(db: Session) -> Channel:
    return make_channel(db, "random")
