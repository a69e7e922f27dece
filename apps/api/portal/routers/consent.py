"""Consent capture endpoints."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.cookies import set_consent_cookie
from portal.core.deps import get_citizen_session, get_client_ip, get_db
from portal.core.errors import InternalError
from portal.db.models import CitizenSession
from portal.schemas.consent import (
    ApplicationConsentRequest,
    ConsentRecorded,
    SessionConsentRequest,
)
from portal.services import application_service, consent_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/consent", tags=["consent"])


@router.post("/session", response_model=ConsentRecorded)
def session_consent(
    request: Request,
    response: Response,
    body: SessionConsentRequest | None = None,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """
    Record onboarding consent and set the consent marker.

    With CONSENT_FAIL_OPEN a store failure still sets the marker and
    reports ``persisted: false``.
    """
    body = body or SessionConsentRequest()
    try:
        log = consent_service.record_session_consent(
            db,
            session_id=session.id,
            consent_type=body.consent_type,
            language=session.language,
            data_snapshot=body.data_snapshot,
            client_ip=get_client_ip(request),
        )
    except InternalError:
        if not settings.CONSENT_FAIL_OPEN:
            raise
        logger.warning("Session consent not persisted; failing open", extra={"session_id": str(session.id)})
        set_consent_cookie(response)
        return ConsentRecorded(consent_id=None, persisted=False)

    set_consent_cookie(response)
    return ConsentRecorded(consent_id=log.id)


@router.post("/application", response_model=ConsentRecorded)
def application_consent(
    request: Request,
    body: ApplicationConsentRequest,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """Record consent scoped to one of the caller's applications."""
    if body.application_id is not None:
        application = application_service.get_application(db, body.application_id)
        application_service.assert_session_access(application, session)

    log = consent_service.record_application_consent(
        db,
        application_id=body.application_id,
        session_id=session.id,
        consent_id=body.consent_id,
        consent_type=body.consent_type,
        purpose_hi=body.purpose_hi,
        purpose_en=body.purpose_en,
        language=session.language,
        data_snapshot=body.data_snapshot,
        voice_confirmation=body.voice_confirmation,
        client_ip=get_client_ip(request),
    )
    return ConsentRecorded(consent_id=log.id)
