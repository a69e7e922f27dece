"""Citizen session repository."""

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.errors import InternalError, NotFoundError, ValidationError
from portal.core.structured_logging import build_log_context
from portal.db.enums import DEFAULT_LANGUAGE, Language
from portal.db.models import Citizen, CitizenSession

logger = logging.getLogger(__name__)


def parse_session_id(raw: str | UUID | None) -> UUID | None:
    """Bearer string -> UUID, or None when absent or malformed."""
    if raw is None or isinstance(raw, UUID):
        return raw
    try:
        return UUID(str(raw))
    except ValueError:
        return None


def create_session(
    db: Session,
    device_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    *,
    language: str | None = None,
    citizen_id: UUID | None = None,
    identity_document_id: str | None = None,
    auth_user_id: str | None = None,
) -> CitizenSession:
    """
    Create a new active session.

    The returned row's id is the bearer token the caller hands back to the
    client.

    Raises:
        InternalError: store unavailable
    """
    session = CitizenSession(
        device_id=device_id,
        metadata_=metadata or {},
        language=language or DEFAULT_LANGUAGE.value,
        citizen_id=citizen_id,
        identity_document_id=identity_document_id,
        auth_user_id=auth_user_id,
        is_active=True,
    )
    db.add(session)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Session creation failed")
        raise InternalError("Failed to create session")
    db.refresh(session)
    logger.info("Citizen session created", extra=build_log_context(session_id=session.id))
    return session


def get_session(db: Session, session_id: str | UUID | None) -> CitizenSession | None:
    """Look up a session by bearer, active or not."""
    parsed = parse_session_id(session_id)
    if parsed is None:
        return None
    return db.get(CitizenSession, parsed)


def get_active_session(db: Session, session_id: str | UUID | None) -> CitizenSession | None:
    """Look up a session by bearer; deactivated sessions count as missing."""
    session = get_session(db, session_id)
    if session is None or not session.is_active:
        return None
    return session


def validate_language(language: str | None) -> str:
    """
    Raises:
        ValidationError: language not in {hi, en}
    """
    if not language or not Language.has_value(language):
        raise ValidationError("Invalid language")
    return language


def set_language(db: Session, session_id: str | UUID | None, language: str | None) -> str:
    """
    Record the session's language preference.

    Raises:
        ValidationError: language not in {hi, en}
        NotFoundError: session unknown or inactive
    """
    language = validate_language(language)

    session = get_active_session(db, session_id)
    if session is None:
        raise NotFoundError("Session not found")

    session.language = language
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Language update failed", extra=build_log_context(session_id=session.id))
        raise InternalError("Failed to update language")
    return language


def touch_last_login(db: Session, citizen_id: UUID) -> None:
    """Refresh ``last_login`` on a citizen; no-op for unknown ids."""
    db.execute(
        update(Citizen)
        .where(Citizen.id == citizen_id)
        .values(last_login=datetime.now(timezone.utc))
    )
    db.commit()


def deactivate_session(db: Session, session: CitizenSession) -> None:
    """Mark a session inactive; it can no longer authenticate anything."""
    if not session.is_active:
        return
    session.is_active = False
    db.commit()
    logger.info("Citizen session deactivated", extra=build_log_context(session_id=session.id))


def list_sessions_for_citizen(db: Session, citizen_id: UUID) -> list[CitizenSession]:
    return list(
        db.execute(
            select(CitizenSession)
            .where(CitizenSession.citizen_id == citizen_id)
            .order_by(CitizenSession.created_at.desc())
        ).scalars()
    )
