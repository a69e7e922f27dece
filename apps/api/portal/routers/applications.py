"""Citizen application endpoints: read, submit, steps, snapshots, timeline."""

from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from portal.core.deps import get_citizen_session, get_db
from portal.db.models import Application, CitizenSession
from portal.schemas.application import (
    ApplicationCreate,
    ApplicationMetadata,
    ApplicationRead,
    SnapshotRead,
    StatusEventRead,
    StepRead,
    StepUpsert,
    SubmitRequest,
    SubmitResponse,
)
from portal.services import application_service

router = APIRouter(prefix="/applications", tags=["applications"])


def to_read(db: Session, application: Application) -> ApplicationRead:
    return ApplicationRead(
        id=application.id,
        submission_id=application.submission_id,
        service_id=application.service_id,
        identity_document_id=application.identity_document_id,
        status=application.status,
        current_step=application.current_step,
        metadata=ApplicationMetadata.from_bag(application.metadata_),
        submitted_at=application.submitted_at,
        created_at=application.created_at,
        updated_at=application.updated_at,
        steps=[StepRead.model_validate(s) for s in application_service.get_steps(db, application.id)],
    )


def _owned(db: Session, application_id: UUID, session: CitizenSession) -> Application:
    application = application_service.get_application(db, application_id)
    application_service.assert_session_access(application, session)
    return application


@router.post("", response_model=ApplicationRead, status_code=201)
def create_application(
    body: ApplicationCreate,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """Open a draft for a catalogue service."""
    application = application_service.create_draft(
        db,
        service_id=body.service_id,
        session=session,
        identity_document_id=body.identity_document_id,
        metadata=body.metadata,
    )
    return to_read(db, application)


@router.get("/{application_id}", response_model=ApplicationRead)
def get_application(
    application_id: UUID,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    return to_read(db, _owned(db, application_id, session))


@router.get("/{application_id}/events", response_model=list[StatusEventRead])
def get_events(
    application_id: UUID,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """Status timeline, oldest first."""
    _owned(db, application_id, session)
    return application_service.list_events(db, application_id)


@router.post("/{application_id}/submit", response_model=SubmitResponse)
def submit_application(
    application_id: UUID,
    body: SubmitRequest | None = Body(None),
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    """A missing body is the same as a missing consent id."""
    consent_id = body.consent_id if body is not None else None
    application = application_service.submit(db, application_id, consent_id, session=session)
    return SubmitResponse(submission_id=application.submission_id, status=application.status)


@router.post("/{application_id}/steps", response_model=StepRead)
def save_step(
    application_id: UUID,
    body: StepUpsert,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    return application_service.save_step(
        db,
        application_id,
        step_number=body.step_number,
        step_identifier=body.step_identifier,
        user_response=body.user_response,
        question_text_hi=body.question_text_hi,
        question_text_en=body.question_text_en,
        data=body.data,
        session=session,
    )


@router.get("/{application_id}/steps", response_model=list[StepRead])
def get_steps(
    application_id: UUID,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    _owned(db, application_id, session)
    return application_service.get_steps(db, application_id)


@router.post("/{application_id}/snapshot", response_model=SnapshotRead, status_code=201)
def snapshot_application(
    application_id: UUID,
    session: CitizenSession = Depends(get_citizen_session),
    db: Session = Depends(get_db),
):
    return application_service.snapshot(db, application_id, session=session)
