"""
Admin session manager.

Staff sessions are server-side rows keyed by the SHA-256 of an opaque
random token. Expiry is enforced on every read; ``purge_expired_sessions``
only reclaims space.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from portal.core.security import generate_admin_token, hash_ip, hash_password, hash_token, verify_password
from portal.db.enums import AdminRole
from portal.db.models import AdminSession, AdminUser
from portal.utils.normalization import normalize_email

logger = logging.getLogger(__name__)


@dataclass
class AdminLogin:
    """Successful login: the raw token is only ever held here."""

    user: AdminUser
    token: str
    expires_at: datetime


def login(
    db: Session,
    email: str | None,
    password: str | None,
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> AdminLogin:
    """
    Authenticate a staff member and open a session.

    Raises:
        ValidationError: email or password missing
        UnauthorizedError: no active admin with these credentials
    """
    normalized = normalize_email(email)
    if not normalized or not password:
        raise ValidationError("Email and password required")

    user = db.execute(
        select(AdminUser).where(AdminUser.email == normalized, AdminUser.is_active.is_(True))
    ).scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("Admin login failed", extra={"email_domain": normalized.split("@")[-1]})
        raise UnauthorizedError("Invalid credentials")

    token = generate_admin_token()
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=settings.ADMIN_SESSION_HOURS)
    db.add(
        AdminSession(
            admin_id=user.id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            ip_hash=hash_ip(ip_address),
            user_agent=(user_agent or "")[:500] or None,
        )
    )
    user.last_login = now
    db.commit()
    db.refresh(user)

    logger.info("Admin logged in", extra={"admin_id": str(user.id), "role": user.role})
    return AdminLogin(user=user, token=token, expires_at=expires_at)


def get_current_admin(db: Session, token: str | None) -> AdminUser | None:
    """
    Resolve a staff bearer token.

    Returns None for a missing token, an unknown token, an expired session
    or a deactivated admin.
    """
    if not token:
        return None
    now = datetime.now(timezone.utc)
    return db.execute(
        select(AdminUser)
        .join(AdminSession, AdminSession.admin_id == AdminUser.id)
        .where(
            AdminSession.token_hash == hash_token(token),
            AdminSession.expires_at > now,
            AdminUser.is_active.is_(True),
        )
    ).scalar_one_or_none()


def logout(db: Session, token: str | None) -> bool:
    """Delete the session row; True if one existed."""
    if not token:
        return False
    result = db.execute(delete(AdminSession).where(AdminSession.token_hash == hash_token(token)))
    db.commit()
    return result.rowcount > 0


def purge_expired_sessions(db: Session, *, now: datetime | None = None) -> int:
    """Remove expired session rows; returns the number removed."""
    now = now or datetime.now(timezone.utc)
    result = db.execute(delete(AdminSession).where(AdminSession.expires_at <= now))
    db.commit()
    return result.rowcount


# =============================================================================
# Account management (operator CLI)
# =============================================================================


def create_admin(
    db: Session,
    *,
    email: str,
    password: str,
    role: str = AdminRole.VIEW_ONLY.value,
    name: str | None = None,
) -> AdminUser:
    """
    Raises:
        ValidationError: bad email, short password or unknown role
        ConflictError: email already registered
    """
    normalized = normalize_email(email)
    if not normalized or "@" not in normalized:
        raise ValidationError("Invalid email")
    if not password or len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if not AdminRole.has_value(role):
        raise ValidationError(f"Unknown role: {role}")

    user = AdminUser(
        email=normalized,
        password_hash=hash_password(password),
        role=role,
        name=name,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Admin already exists")
    db.refresh(user)
    return user


def deactivate_admin(db: Session, email: str) -> AdminUser:
    """Disable an account and revoke all of its sessions."""
    user = db.execute(
        select(AdminUser).where(AdminUser.email == normalize_email(email))
    ).scalar_one_or_none()
    if user is None:
        raise NotFoundError("Admin not found")
    db.execute(update(AdminUser).where(AdminUser.id == user.id).values(is_active=False))
    db.execute(delete(AdminSession).where(AdminSession.admin_id == user.id))
    db.commit()
    db.refresh(user)
    return user


def count_sessions(db: Session, admin_id: UUID) -> int:
    return db.execute(
        select(func.count(AdminSession.id)).where(AdminSession.admin_id == admin_id)
    ).scalar_one()
