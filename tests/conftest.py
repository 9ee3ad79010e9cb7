"""Shared test fixtures for the paysettle tests.

Uses a SQLite file database so tests run without PostgreSQL.
"""

from __future__ import annotations

import os

# Override settings before importing anything from app: the module-level
# ``engine`` in app.core.database would otherwise point at PostgreSQL, and
# the background sweeper must not run against the test database.
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["SWEEPER_ENABLED"] = "false"

import pytest
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.database import Base, build_engine, get_db
from app.main import app
from app.services.ledger.seed import seed_tenant_accounts

# Use SQLite file-based database for tests (no PostgreSQL needed)
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_config(**overrides) -> Settings:
    """Settings with test defaults; only the fields under test need overriding."""
    defaults = {
        "database_url": TEST_DATABASE_URL,
        "test_database_url": TEST_DATABASE_URL,
        "sweeper_enabled": False,
    }
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def config() -> Settings:
    return make_config()


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def tenant_accounts(db_session):
    """Default chart of accounts for tenant ``merchant-1``, keyed by code."""
    accounts = seed_tenant_accounts(db_session, "merchant-1")
    return {account.code: account for account in accounts}


@pytest.fixture(scope="function")
def client(db_session):
    """FastAPI test client with overridden DB dependency."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
