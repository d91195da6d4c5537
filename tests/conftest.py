"""Pytest configuration and shared fixtures.

Every test gets its own in-memory SQLite database with the full schema. The
API client shares the test's session, so rows created through factories are
visible to requests and vice versa.
"""

import os

os.environ.setdefault("APPFORGE_DATABASE_URL", "sqlite://")
os.environ.setdefault("APPFORGE_SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from appforge.core.security import create_access_token
from appforge.db.base import Base
import appforge.db.models  # noqa: F401
from appforge.db.seed import initialize_rbac
from tests import factories


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Session configured like ``SessionLocal``."""
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def system_roles(db_session):
    """Seeded catalog and system roles, keyed like ``DEFAULT_ROLES``."""
    roles = initialize_rbac(db_session)
    db_session.commit()
    return roles


# ---------------------------------------------------------------------------
# Factory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def org_factory(db_session):
    def _create(**kwargs):
        return factories.create_organization(db_session, **kwargs)
    return _create


@pytest.fixture
def user_factory(db_session):
    def _create(**kwargs):
        return factories.create_user(db_session, **kwargs)
    return _create


@pytest.fixture
def role_factory(db_session):
    def _create(**kwargs):
        return factories.create_role(db_session, **kwargs)
    return _create


@pytest.fixture
def group_factory(db_session):
    def _create(**kwargs):
        return factories.create_group(db_session, **kwargs)
    return _create


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@pytest.fixture
def client(db_session):
    from appforge.api.main import app
    from appforge.api.deps import get_db

    def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build bearer headers for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
def admin_user(db_session, system_roles):
    """A user holding Administrator globally."""
    user = factories.create_user(db_session, email="admin@example.com", name="Admin")
    factories.assign_role(db_session, user, system_roles["administrator"])
    db_session.commit()
    return user


@pytest.fixture
def admin_headers(admin_user, auth_headers):
    return auth_headers(admin_user)
