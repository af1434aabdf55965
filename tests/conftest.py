"""
Test configuration and fixtures.

Provides:
- In-memory SQLite schema, emptied after each test
- Users for each role and bearer-token minting
- HTTPX AsyncClient per role with the DB dependency overridden
"""
import base64
import os
import uuid
from typing import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

# Settings are read at import time
os.environ["ENV"] = "test"
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret-for-unit-tests"
os.environ["FERNET_KEY"] = base64.urlsafe_b64encode(b"0" * 32).decode()
os.environ["MICROSOFT_CLIENT_ID"] = "test-client-id"
os.environ["MICROSOFT_CLIENT_SECRET"] = "test-client-secret"

from wealth_crm.core.deps import get_db
from wealth_crm.core.security import create_access_token
from wealth_crm.db.base import Base
from wealth_crm.db.enums import Role
from wealth_crm.db.models import User
from wealth_crm.db.session import SessionLocal, engine
from wealth_crm.main import app
from wealth_crm.services import outlook_service


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="session", autouse=True)
def _schema() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Session for one test.

    App code commits freely; every table is emptied afterwards.
    """
    session = SessionLocal()
    yield session
    session.rollback()
    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()
    session.close()
    outlook_service._sync_in_progress.clear()


def _create_user(db: Session, role: Role, name: str) -> User:
    user = User(
        id=uuid.uuid4(),
        email=f"{name}-{uuid.uuid4().hex[:8]}@firm.test",
        display_name=name.title(),
        role=role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db: Session) -> User:
    return _create_user(db, Role.ADMIN, "admin")


@pytest.fixture(scope="function")
def manager_user(db: Session) -> User:
    return _create_user(db, Role.MANAGER, "manager")


@pytest.fixture(scope="function")
def advisor_user(db: Session) -> User:
    return _create_user(db, Role.ADVISOR, "advisor")


@pytest.fixture(scope="function")
def operations_user(db: Session) -> User:
    return _create_user(db, Role.OPERATIONS, "operations")


# =============================================================================
# Auth Fixtures
# =============================================================================

def auth_headers(user: User) -> dict[str, str]:
    """Bearer header for a user."""
    token = create_access_token(user.id, user.role, user.token_version)
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# Client Fixtures
# =============================================================================

def _client(db: Session, headers: dict[str, str] | None = None) -> AsyncClient:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    return AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=headers or {},
    )


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client."""
    async with _client(db) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def admin_client(db: Session, admin_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with _client(db, auth_headers(admin_user)) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def manager_client(db: Session, manager_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with _client(db, auth_headers(manager_user)) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def advisor_client(db: Session, advisor_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with _client(db, auth_headers(advisor_user)) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def operations_client(db: Session, operations_user: User) -> AsyncGenerator[AsyncClient, None]:
    async with _client(db, auth_headers(operations_user)) as c:
        yield c
    app.dependency_overrides.clear()
