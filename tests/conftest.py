"""Shared pytest fixtures for the API test suites."""

from collections.abc import Generator
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tenant_api.core.config import AppSettings  # noqa: E402
from tenant_api.db.base import get_db_session  # noqa: E402
from tenant_api.db.models import Base  # noqa: E402
from tenant_api.main import create_app  # noqa: E402


@pytest.fixture
def dev_settings() -> AppSettings:
    """Settings for a non-production environment."""
    return AppSettings(environment="local", api_version="1.0")


@pytest.fixture
def prod_settings() -> AppSettings:
    """Settings for the production environment."""
    return AppSettings(environment="production", api_version="1.0")


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    """Provide sessions bound to a fresh in-memory SQLite schema."""
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=Session)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def client(session_factory: sessionmaker, dev_settings: AppSettings) -> Generator[TestClient, None, None]:
    """Provide an API test client backed by the in-memory database."""
    app = create_app(dev_settings)

    def _session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = _session_override

    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
