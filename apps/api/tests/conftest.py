"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, tables created and dropped per test
- Identity-provider credential minting (HS256 JWTs)
- HTTPX AsyncClient fixtures for citizens and staff
"""
import os
import time
import uuid
from dataclasses import dataclass
from typing import AsyncGenerator, Generator

# Configure before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "dev"
os.environ["IDENTITY_JWT_SECRET"] = "test-identity-secret"
os.environ["FAMILY_REGISTRY_URL"] = ""

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.cookies import ADMIN_COOKIE
from portal.core.deps import get_db
from portal.db.base import Base
from portal.db.enums import AdminRole, ApplicationStatus
from portal.db.models import AdminUser, Application, Citizen, CitizenSession
from portal.db.session import SessionLocal, engine
from portal.main import app
from portal.services import admin_auth_service


TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test on the shared in-memory connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# =============================================================================
# Identity credentials
# =============================================================================

def make_identity_token(
    phone: str,
    *,
    sub: str | None = None,
    secret: str | None = None,
    expires_in: int = 3600,
) -> str:
    """Mint an identity-provider access token the portal will accept."""
    now = int(time.time())
    payload = {
        "sub": sub or f"auth-{uuid.uuid4().hex[:12]}",
        "phone": phone,
        "aud": settings.IDENTITY_JWT_AUDIENCE,
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret or settings.IDENTITY_JWT_SECRET, algorithm="HS256")


@pytest.fixture
def identity_token():
    return make_identity_token


# =============================================================================
# Domain fixtures
# =============================================================================

@pytest.fixture
def citizen(db: Session) -> Citizen:
    row = Citizen(
        phone="9876543210",
        identity_document_id="JA-1001",
        name="Asha Devi",
        name_hi="आशा देवी",
        is_verified=True,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def citizen_session(db: Session, citizen: Citizen) -> CitizenSession:
    row = CitizenSession(
        citizen_id=citizen.id,
        identity_document_id=citizen.identity_document_id,
        device_id="device-1",
        language="hi",
        is_active=True,
        metadata_={"type": "login"},
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def draft_application(db: Session, citizen_session: CitizenSession) -> Application:
    row = Application(
        service_id="old-age-pension",
        session_id=citizen_session.id,
        citizen_id=citizen_session.citizen_id,
        identity_document_id=citizen_session.identity_document_id,
        status=ApplicationStatus.DRAFT.value,
        current_step=0,
        metadata_={"service_code": "OAP", "service_name_en": "Old Age Pension"},
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def make_admin(db: Session, role: AdminRole, email: str | None = None) -> AdminUser:
    return admin_auth_service.create_admin(
        db,
        email=email or f"{role.value}-{uuid.uuid4().hex[:6]}@portal.test",
        password=TEST_PASSWORD,
        role=role.value,
        name=role.value.title(),
    )


@pytest.fixture
def clerk(db: Session) -> AdminUser:
    return make_admin(db, AdminRole.CLERK)


@pytest.fixture
def viewer(db: Session) -> AdminUser:
    return make_admin(db, AdminRole.VIEW_ONLY)


@pytest.fixture
def admin_factory(db: Session):
    """Create staff accounts of any role with the shared test password."""
    def factory(role: AdminRole, email: str | None = None) -> AdminUser:
        return make_admin(db, role, email)

    return factory


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def citizen_client(
    db: Session,
    citizen_session: CitizenSession,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient carrying a linked citizen session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={"session_id": str(citizen_session.id), "citizen_id": str(citizen_session.citizen_id)},
    ) as c:
        yield c

    app.dependency_overrides.clear()


@dataclass
class AdminAuth:
    user: AdminUser
    token: str


def admin_login(db: Session, user: AdminUser) -> AdminAuth:
    result = admin_auth_service.login(db, user.email, TEST_PASSWORD)
    return AdminAuth(user=result.user, token=result.token)


@pytest.fixture(scope="function")
def admin_client_factory(db: Session):
    """Build AsyncClients logged in as a given staff member."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    def factory(user: AdminUser) -> AsyncClient:
        auth = admin_login(db, user)
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies={ADMIN_COOKIE: auth.token},
        )

    yield factory

    app.dependency_overrides.clear()
