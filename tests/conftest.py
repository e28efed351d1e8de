"""Shared pytest fixtures for backend tests."""

import os
import uuid

# Autosave throttling needs Redis; tests run without it.
os.environ.setdefault("AUTOSAVE_RATE_LIMIT_RPM", "0")
os.environ.setdefault("NARRATIVE_SERVICE_URL", "")
os.environ.setdefault("CONTENT_SERVICE_URL", "")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from progress_engine.core.security import Identity, create_identity_token
from progress_engine.db.models import RoleEnum
from progress_engine.db.session import Base, get_db
from progress_engine.main import app
from progress_engine.services.students import get_or_create_student


# Use an in-memory SQLite database for testing with static pool
SQLALCHEMY_TEST_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool to keep connection alive
    echo=False,
)
TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)

# Create all tables once at startup
Base.metadata.create_all(bind=engine)


@pytest.fixture(scope="function")
def db():
    """Get a fresh DB session for each test."""
    session = TestSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def client(db: Session):
    """FastAPI test client with overridden DB dependency."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ── Identity helpers ──────────────────────────────────────────────────────────


@pytest.fixture
def tenant_id() -> uuid.UUID:
    """Every test gets its own tenant so rows never collide across tests."""
    return uuid.uuid4()


def _make_identity(tenant_id: uuid.UUID, role: RoleEnum = RoleEnum.STUDENT) -> Identity:
    return Identity(tenant_id=tenant_id, user_id=uuid.uuid4(), role=role)


@pytest.fixture
def identity_factory(tenant_id: uuid.UUID):
    """Build identities for any role; defaults to the test's tenant."""

    def _factory(role: RoleEnum = RoleEnum.STUDENT, tenant: uuid.UUID | None = None) -> Identity:
        return _make_identity(tenant or tenant_id, role)

    return _factory


@pytest.fixture
def auth():
    """Bearer headers for an identity."""

    def _auth(identity: Identity) -> dict:
        return {"Authorization": f"Bearer {create_identity_token(identity)}"}

    return _auth


@pytest.fixture
def student_identity(tenant_id: uuid.UUID) -> Identity:
    return _make_identity(tenant_id)


@pytest.fixture
def student(db: Session, student_identity: Identity):
    """A provisioned student profile with its first grade journey."""
    return get_or_create_student(db, student_identity)
