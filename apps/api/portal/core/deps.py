"""FastAPI dependencies for store access and the two principal domains.

Citizen and staff principals are resolved by separate functions from
separate bearer cookies; neither ever falls back to the other.
"""

from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.cookies import ADMIN_COOKIE, SESSION_COOKIE
from portal.core.errors import ForbiddenError, UnauthorizedError
from portal.db.models import AdminUser, CitizenSession
from portal.db.session import SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Citizen domain
# =============================================================================


def get_optional_citizen_session(
    request: Request,
    db: Session = Depends(get_db),
) -> CitizenSession | None:
    """Active citizen session for the presented bearer, if any."""
    from portal.services import session_service

    return session_service.get_active_session(db, request.cookies.get(SESSION_COOKIE))


def get_citizen_session(
    session: CitizenSession | None = Depends(get_optional_citizen_session),
) -> CitizenSession:
    """
    Raises:
        UnauthorizedError: no bearer, unknown bearer or deactivated session
    """
    if session is None:
        raise UnauthorizedError("No valid session")
    return session


def get_linked_citizen_session(
    session: CitizenSession = Depends(get_citizen_session),
) -> CitizenSession:
    """Citizen session that is bound to a verified citizen."""
    if session.citizen_id is None:
        raise UnauthorizedError("Not logged in")
    return session


# =============================================================================
# Staff domain
# =============================================================================


def get_current_admin(request: Request, db: Session = Depends(get_db)) -> AdminUser:
    """
    Resolve the staff principal from the admin bearer.

    Raises:
        UnauthorizedError: missing, unknown or expired admin session
    """
    from portal.services import admin_auth_service

    admin = admin_auth_service.get_current_admin(db, request.cookies.get(ADMIN_COOKIE))
    if admin is None:
        raise UnauthorizedError("Unauthorized")
    return admin


def require_admin_roles(allowed_roles):
    """
    Dependency factory for role-based authorization.

    Uses enum values (not strings) to prevent drift.

    Usage:
        @router.get("/x", dependencies=[Depends(require_admin_roles(ROLES_CAN_VIEW_AUDIT))])
    """
    allowed = {role.value for role in allowed_roles}

    def dependency(admin: AdminUser = Depends(get_current_admin)) -> AdminUser:
        if admin.role not in allowed:
            raise ForbiddenError(f"Role '{admin.role}' not authorized for this action")
        return admin

    return dependency


# =============================================================================
# Collaborators
# =============================================================================


def get_registry_client():
    """Family registry client; overridden in tests."""
    from portal.services.registry_service import FamilyRegistryClient

    return FamilyRegistryClient()


def get_client_ip(request: Request) -> str | None:
    """Client IP, honouring X-Forwarded-For only behind a trusted proxy."""
    if settings.TRUST_PROXY_HEADERS:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
