"""Citizen status tracking by submission id."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from portal.core.deps import get_citizen_session, get_db
from portal.db.enums import STATUS_LABELS_HI
from portal.db.models import CitizenSession
from portal.schemas.application import StatusLookupRead, TimelineEntry
from portal.services import application_service

router = APIRouter(prefix="/services", tags=["services"])


@router.get("/status", response_model=StatusLookupRead)
def track_status(
    id: str | None = Query(None, max_length=64),
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """
    Status and timeline for a submission id or application id.

    Applications owned by someone else are reported as not found.
    """
    application = application_service.find_by_tracking_id(db, id)
    application_service.assert_session_access(application, session)

    envelope = application_service.get_metadata(application)
    return StatusLookupRead(
        application_id=application.id,
        submission_id=application.submission_id,
        service_id=application.service_id,
        service_code=envelope.service_code,
        service_name_hi=envelope.service_name_hi,
        service_name_en=envelope.service_name_en,
        status=application.status,
        status_hi=STATUS_LABELS_HI.get(application.status, application.status),
        applicant_name=envelope.applicant_name,
        submitted_at=application.submitted_at,
        last_updated=application.updated_at,
        current_step=application.current_step,
        timeline=[
            TimelineEntry(**entry)
            for entry in application_service.build_timeline(db, application)
        ],
    )
