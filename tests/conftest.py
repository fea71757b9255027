"""
Test configuration and fixtures for the meal ingestion backend.

- Function-scoped database: a fresh in-memory SQLite database per test
  (override with TEST_DATABASE_URL), so services can commit and roll back
  exactly as in production
- TestClient with database dependency override
- Authenticated client fixtures
- Mock Claude service and temporary upload directories
"""

import os
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.models import User, Session as UserSession
from app.services.file_service import FileService
from app.services.rate_limiter import analysis_rate_limiter
from tests.factories import create_session, create_user


# =============================================================================
# Database Fixtures
# =============================================================================


def get_test_database_url() -> str:
    """TEST_DATABASE_URL if set, otherwise a private in-memory SQLite database."""
    return os.environ.get("TEST_DATABASE_URL", "sqlite://")


@pytest.fixture
def test_engine():
    """
    Create a database engine with all tables for one test.

    Tables are created at the start and dropped at the end.
    """
    database_url = get_test_database_url()

    if database_url.startswith("sqlite"):
        # One shared connection so the TestClient thread sees the same database
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url)

    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    """Provide a database session on the per-test database."""
    session = session_factory()

    yield session

    session.close()


# =============================================================================
# Rate Limit Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_analysis_rate_limiter():
    """Start every test with an empty analysis request window."""
    analysis_rate_limiter.reset()
    yield
    analysis_rate_limiter.reset()


# =============================================================================
# File Fixtures
# =============================================================================


@pytest.fixture
def file_service_tmp(tmp_path) -> FileService:
    """FileService writing uploads and stored images under tmp_path."""
    return FileService(
        upload_dir=str(tmp_path / "uploads"),
        temp_dir=str(tmp_path / "upload_tmp"),
    )


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_claude_service(monkeypatch, file_service_tmp):
    """
    Mock Claude service wired into the API's ingestion pipeline.

    Returns a mock service that can be configured per test. The pipeline's
    file service is redirected to a temporary directory at the same time.
    """
    from app.api import meals as meals_api
    from tests.fixtures.mocks import MockClaudeService

    mock_service = MockClaudeService()

    monkeypatch.setattr(meals_api.ingestion_service, "claude_service", mock_service)
    monkeypatch.setattr(meals_api.ingestion_service, "file_service", file_service_tmp)

    return mock_service


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """
    TestClient with database dependency override.

    The database session is injected into the app's get_db dependency.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Authentication Fixtures
# =============================================================================


@pytest.fixture
def test_user(db: Session) -> User:
    """Create a test user."""
    return create_user(db, email="testuser@example.com", name="Test User")


@pytest.fixture
def other_user(db: Session) -> User:
    """Create a second user for ownership checks."""
    return create_user(db, email="other@example.com")


@pytest.fixture
def test_session(db: Session, test_user: User) -> UserSession:
    """Create a session token for the test user."""
    return create_session(db, test_user)


@pytest.fixture
def auth_client(
    client: TestClient, test_session: UserSession, mock_claude_service
) -> TestClient:
    """
    Authenticated TestClient for the test user.

    Sends the session token as a Bearer token. The AI service is mocked.
    """
    client.headers["Authorization"] = f"Bearer {test_session.token}"
    return client


# =============================================================================
# pytest markers
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m not slow')"
    )
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
