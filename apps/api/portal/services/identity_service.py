"""
Identity linker - binds citizen sessions to verified identities.

Credentials come from the phone-OTP identity provider and are verified by
``portal.core.security.verify_identity_credential``. A session is linked to
at most one citizen; logging in as a citizen always issues a fresh session
row instead of rebinding an existing one.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import (
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from portal.core.security import DEMO_CREDENTIAL, verify_identity_credential
from portal.core.structured_logging import build_log_context
from portal.db.models import Citizen, CitizenSession
from portal.services import session_service
from portal.utils.normalization import mask_phone, normalize_phone

logger = logging.getLogger(__name__)


SESSION_TYPE_GUEST = "guest"
SESSION_TYPE_LOGIN = "login"
SESSION_TYPE_REGISTER = "register"
SESSION_TYPE_DEMO = "demo"
SESSION_TYPE_DEMO_PRE_REG = "demo_pre_reg"


@dataclass
class IdentityResult:
    """Outcome of an identity operation."""

    session: CitizenSession | None
    citizen: Citizen | None = None
    is_new_user: bool = False

    @property
    def citizen_id(self) -> UUID | None:
        return self.citizen.id if self.citizen else None


# =============================================================================
# Lookups
# =============================================================================


def get_citizen_by_phone(db: Session, phone: str | None) -> Citizen | None:
    normalized = normalize_phone(phone)
    if not normalized:
        return None
    return db.execute(select(Citizen).where(Citizen.phone == normalized)).scalar_one_or_none()


def get_citizen(db: Session, citizen_id: UUID | None) -> Citizen | None:
    if citizen_id is None:
        return None
    return db.get(Citizen, citizen_id)


# =============================================================================
# Internals
# =============================================================================


def _carry_over(presented: CitizenSession | None) -> dict:
    """Fields inherited from the anonymous session being replaced."""
    if presented is None:
        return {}
    return {"language": presented.language, "device_id": presented.device_id}


def _retire(db: Session, presented: CitizenSession | None, replacement: CitizenSession) -> None:
    if presented is not None and presented.is_active and presented.id != replacement.id:
        session_service.deactivate_session(db, presented)


def _bind_new_session(
    db: Session,
    citizen: Citizen,
    *,
    presented: CitizenSession | None,
    auth_user_id: str | None,
    session_type: str,
    device_id: str | None = None,
) -> CitizenSession:
    """Issue a session bound to ``citizen`` and retire the presented one."""
    carried = _carry_over(presented)
    session = session_service.create_session(
        db,
        device_id=device_id or carried.get("device_id"),
        metadata={"type": session_type},
        language=carried.get("language"),
        citizen_id=citizen.id,
        identity_document_id=citizen.identity_document_id,
        auth_user_id=auth_user_id,
    )
    _retire(db, presented, session)
    session_service.touch_last_login(db, citizen.id)
    db.refresh(citizen)
    return session


# =============================================================================
# Register / login
# =============================================================================


def register_or_login(
    db: Session,
    *,
    phone: str | None,
    identity_document_id: str | None,
    name: str | None,
    access_token: str | None,
    name_hi: str | None = None,
    presented: CitizenSession | None = None,
    device_id: str | None = None,
) -> IdentityResult:
    """
    Register a citizen, or log in an existing one with the same phone.

    Raises:
        ValidationError: phone, identity document or credential missing
        UnauthorizedError: credential cannot be verified
        ForbiddenError: verified phone differs from the submitted phone
    """
    normalized = normalize_phone(phone)
    if not normalized or not identity_document_id or not access_token:
        raise ValidationError("Missing required fields")

    identity = verify_identity_credential(access_token, claimed_phone=normalized)
    if identity.phone != normalized:
        logger.warning(
            "Registration phone mismatch",
            extra={"phone": mask_phone(normalized), "auth_user_id": identity.auth_user_id},
        )
        raise ForbiddenError("Phone number mismatch")

    citizen = get_citizen_by_phone(db, normalized)
    if citizen is not None:
        if not citizen.identity_document_id:
            citizen.identity_document_id = identity_document_id
            db.commit()
        session = _bind_new_session(
            db,
            citizen,
            presented=presented,
            auth_user_id=identity.auth_user_id,
            session_type=SESSION_TYPE_LOGIN,
            device_id=device_id,
        )
        logger.info("Existing citizen logged in via register", extra=build_log_context(citizen_id=citizen.id))
        return IdentityResult(session=session, citizen=citizen, is_new_user=False)

    citizen = Citizen(
        phone=normalized,
        identity_document_id=identity_document_id,
        name=name,
        name_hi=name_hi,
        is_verified=True,
        last_login=datetime.now(timezone.utc),
    )
    db.add(citizen)
    try:
        db.commit()
        is_new = True
    except IntegrityError:
        # Lost a race with a concurrent registration for the same phone.
        db.rollback()
        citizen = get_citizen_by_phone(db, normalized)
        if citizen is None:
            raise
        is_new = False
    db.refresh(citizen)

    session = _bind_new_session(
        db,
        citizen,
        presented=presented,
        auth_user_id=identity.auth_user_id,
        session_type=SESSION_TYPE_REGISTER if is_new else SESSION_TYPE_LOGIN,
        device_id=device_id,
    )
    logger.info(
        "Citizen registered (new=%s)", is_new, extra=build_log_context(citizen_id=citizen.id)
    )
    return IdentityResult(session=session, citizen=citizen, is_new_user=is_new)


def login(
    db: Session,
    *,
    access_token: str | None,
    presented: CitizenSession | None = None,
    device_id: str | None = None,
) -> IdentityResult:
    """
    Log in with a verified credential.

    Unknown phones are not registered here; the result carries
    ``is_new_user`` so the client can continue to registration.
    """
    identity = verify_identity_credential(access_token)
    if not identity.phone:
        raise UnauthorizedError("Credential carries no phone")

    citizen = get_citizen_by_phone(db, identity.phone)
    if citizen is None:
        return IdentityResult(session=None, is_new_user=True)

    session = _bind_new_session(
        db,
        citizen,
        presented=presented,
        auth_user_id=identity.auth_user_id,
        session_type=SESSION_TYPE_LOGIN,
        device_id=device_id,
    )
    return IdentityResult(session=session, citizen=citizen)


def demo_login(
    db: Session,
    *,
    phone: str | None,
    presented: CitizenSession | None = None,
    device_id: str | None = None,
) -> IdentityResult:
    """
    Demo login by phone alone; only when DEMO_AUTH_ENABLED.

    Unknown phones get an unlinked pre-registration session.
    """
    if not settings.DEMO_AUTH_ENABLED:
        raise ForbiddenError("Demo login disabled")
    if not normalize_phone(phone):
        raise ValidationError("Phone required for demo")

    identity = verify_identity_credential(DEMO_CREDENTIAL, claimed_phone=phone)
    citizen = get_citizen_by_phone(db, identity.phone)
    if citizen is not None:
        session = _bind_new_session(
            db,
            citizen,
            presented=presented,
            auth_user_id=identity.auth_user_id,
            session_type=SESSION_TYPE_DEMO,
            device_id=device_id,
        )
        return IdentityResult(session=session, citizen=citizen)

    carried = _carry_over(presented)
    session = session_service.create_session(
        db,
        device_id=device_id or carried.get("device_id"),
        metadata={"type": SESSION_TYPE_DEMO_PRE_REG, "phone_hint": mask_phone(identity.phone)},
        language=carried.get("language"),
        auth_user_id=identity.auth_user_id,
    )
    _retire(db, presented, session)
    return IdentityResult(session=session, is_new_user=True)


def guest_session(db: Session, *, device_id: str | None = None) -> IdentityResult:
    """Fresh anonymous session."""
    session = session_service.create_session(
        db, device_id=device_id, metadata={"type": SESSION_TYPE_GUEST}
    )
    return IdentityResult(session=session)


# =============================================================================
# Link an existing anonymous session
# =============================================================================


def link_session(
    db: Session,
    *,
    session_id: str | None,
    access_token: str | None,
) -> IdentityResult:
    """
    Bind a verified identity to the presented anonymous session.

    The session's ``citizen_id`` is only filled while it is still null, so a
    concurrent or repeated link can never replace a different citizen.

    Raises:
        ValidationError: no session bearer presented
        UnauthorizedError: credential cannot be verified
        NotFoundError: session unknown or inactive
        ForbiddenError: session bound to a citizen the identity does not resolve to
    """
    if not session_id:
        raise ValidationError("No session")

    identity = verify_identity_credential(access_token)

    session = session_service.get_active_session(db, session_id)
    if session is None:
        raise NotFoundError("Session not found")

    citizen = get_citizen_by_phone(db, identity.phone)
    if session.citizen_id is not None and (citizen is None or session.citizen_id != citizen.id):
        raise ForbiddenError("Session already linked to another citizen")

    # The provider identity may only land on an unbound session or one
    # already bound to the same citizen.
    owner_guard = CitizenSession.citizen_id.is_(None)
    if citizen is not None:
        owner_guard = or_(owner_guard, CitizenSession.citizen_id == citizen.id)
    db.execute(
        update(CitizenSession)
        .where(CitizenSession.id == session.id, owner_guard)
        .values(auth_user_id=identity.auth_user_id)
    )

    if citizen is not None:
        db.execute(
            update(CitizenSession)
            .where(CitizenSession.id == session.id, CitizenSession.citizen_id.is_(None))
            .values(
                citizen_id=citizen.id,
                identity_document_id=citizen.identity_document_id,
            )
        )
    db.commit()
    db.refresh(session)

    if citizen is not None and session.citizen_id == citizen.id:
        session_service.touch_last_login(db, citizen.id)

    logger.info(
        "Session linked",
        extra=build_log_context(session_id=session.id, citizen_id=session.citizen_id),
    )
    return IdentityResult(session=session, citizen=get_citizen(db, session.citizen_id))
