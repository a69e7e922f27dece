"""Consent recorder - append-only ConsentLog rows."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from portal.core.security import hash_ip
from portal.db.enums import ConsentType, default_purposes
from portal.db.models import Application, ConsentLog

logger = logging.getLogger(__name__)


def _parse_consent_type(value: str | None, default: ConsentType) -> ConsentType:
    if value is None:
        return default
    if not ConsentType.has_value(value):
        raise ValidationError("Invalid consent type")
    return ConsentType(value)


def _insert(db: Session, log: ConsentLog) -> ConsentLog:
    db.add(log)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Consent insert failed",
            extra={"consent_type": log.consent_type, "application_id": str(log.application_id)},
        )
        raise InternalError("Failed to record consent")
    db.refresh(log)
    return log


def record_consent(
    db: Session,
    *,
    consent_type: ConsentType,
    session_id: UUID | None = None,
    application_id: UUID | None = None,
    consent_id: UUID | None = None,
    purpose_hi: str | None = None,
    purpose_en: str | None = None,
    language: str | None = None,
    data_snapshot: dict[str, Any] | None = None,
    ui_confirmation: bool = True,
    voice_confirmation: bool = False,
    client_ip: str | None = None,
) -> ConsentLog:
    """
    Append one consent event.

    ``consent_id`` lets a client name the row ahead of time; replaying the
    same id for the same scope returns the existing row instead of writing
    a second one.

    Raises:
        ValidationError: neither a session nor an application in scope
        ConflictError: ``consent_id`` already used for a different scope
        InternalError: store failure
    """
    if session_id is None and application_id is None:
        raise ValidationError("Consent requires a session or an application")

    if consent_id is not None:
        existing = db.get(ConsentLog, consent_id)
        if existing is not None:
            if existing.application_id == application_id and existing.consent_type == consent_type.value:
                return existing
            raise ConflictError("Consent id already used")

    default_hi, default_en = default_purposes(consent_type)
    purpose_hi = purpose_hi or default_hi
    purpose_en = purpose_en or default_en

    log = ConsentLog(
        session_id=session_id,
        application_id=application_id,
        consent_type=consent_type.value,
        purpose=purpose_en if language == "en" else purpose_hi,
        purpose_hi=purpose_hi,
        purpose_en=purpose_en,
        data_snapshot=data_snapshot or {},
        ui_confirmation=ui_confirmation,
        voice_confirmation=voice_confirmation,
        ip_hash=hash_ip(client_ip),
    )
    if consent_id is not None:
        log.id = consent_id
    log = _insert(db, log)
    logger.info(
        "Consent recorded",
        extra={"consent_id": str(log.id), "consent_type": log.consent_type},
    )
    return log


def record_session_consent(
    db: Session,
    *,
    session_id: UUID,
    consent_type: str | None = None,
    language: str | None = None,
    data_snapshot: dict[str, Any] | None = None,
    client_ip: str | None = None,
) -> ConsentLog:
    """Onboarding consent scoped to a session."""
    return record_consent(
        db,
        consent_type=_parse_consent_type(consent_type, ConsentType.SESSION),
        session_id=session_id,
        language=language,
        data_snapshot=data_snapshot,
        client_ip=client_ip,
    )


def record_application_consent(
    db: Session,
    *,
    application_id: UUID | None,
    session_id: UUID | None = None,
    consent_id: UUID | None = None,
    consent_type: str | None = None,
    purpose_hi: str | None = None,
    purpose_en: str | None = None,
    language: str | None = None,
    data_snapshot: dict[str, Any] | None = None,
    voice_confirmation: bool = False,
    client_ip: str | None = None,
) -> ConsentLog:
    """
    Consent scoped to an application (submission by default).

    Raises:
        ValidationError: application id missing
        NotFoundError: application unknown
    """
    if application_id is None:
        raise ValidationError("application_id is required")
    if db.get(Application, application_id) is None:
        raise NotFoundError("Application not found")

    return record_consent(
        db,
        consent_type=_parse_consent_type(consent_type, ConsentType.SUBMISSION),
        session_id=session_id,
        application_id=application_id,
        consent_id=consent_id,
        purpose_hi=purpose_hi,
        purpose_en=purpose_en,
        language=language,
        data_snapshot=data_snapshot,
        voice_confirmation=voice_confirmation,
        client_ip=client_ip,
    )


def list_consents(
    db: Session,
    *,
    session_id: UUID | None = None,
    application_id: UUID | None = None,
) -> list[ConsentLog]:
    """Consent events in a scope, oldest first."""
    query = select(ConsentLog)
    if session_id is not None:
        query = query.where(ConsentLog.session_id == session_id)
    if application_id is not None:
        query = query.where(ConsentLog.application_id == application_id)
    return list(db.execute(query.order_by(ConsentLog.confirmed_at.asc())).scalars())
