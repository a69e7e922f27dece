"""
Application lifecycle - submission, staff transitions, steps and snapshots.

Every status change is a conditional ``UPDATE ... WHERE status = :expected``;
a zero rowcount means another request got there first and is reported as
a conflict, never retried. The StatusEvent for a transition is appended
after the status commit and its failure does not undo the transition.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from portal.core.config import settings
from portal.core.errors import (
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from portal.core.structured_logging import build_log_context
from portal.db.enums import (
    ADMIN_SETTABLE_STATUSES,
    ROLES_CAN_SET_STATUS,
    AdminRole,
    ApplicationStatus,
    STATUS_LABELS_HI,
    can_transition,
)
from portal.db.models import (
    AdminUser,
    Application,
    ApplicationSnapshot,
    ApplicationStep,
    CitizenSession,
    StatusEvent,
)
from portal.schemas.application import ApplicationMetadata
from portal.services import audit_service, status_events

logger = logging.getLogger(__name__)


# =============================================================================
# Submission ids
# =============================================================================


def generate_submission_id(now: datetime | None = None) -> str:
    """``EM<YYYY><MM><5 random digits>``, e.g. EM20260412345."""
    now = now or datetime.now(timezone.utc)
    return f"{settings.SUBMISSION_ID_PREFIX}{now.year:04d}{now.month:02d}{secrets.randbelow(100000):05d}"


# =============================================================================
# Reads
# =============================================================================


def get_application(db: Session, application_id: UUID) -> Application:
    """
    Raises:
        NotFoundError: unknown id
    """
    application = db.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application not found")
    return application


def get_metadata(application: Application) -> ApplicationMetadata:
    return ApplicationMetadata.from_bag(application.metadata_)


def assert_session_access(application: Application, session: CitizenSession) -> None:
    """
    Citizens may only act on their own applications.

    An application is theirs when it was opened in this session or belongs
    to the citizen the session is linked to.

    Raises:
        NotFoundError: application belongs to someone else
    """
    if application.session_id == session.id:
        return
    if session.citizen_id is not None and application.citizen_id == session.citizen_id:
        return
    if (
        session.identity_document_id
        and application.identity_document_id == session.identity_document_id
    ):
        return
    raise NotFoundError("Application not found")


# =============================================================================
# Draft creation
# =============================================================================


def create_draft(
    db: Session,
    *,
    service_id: str | None,
    session: CitizenSession | None = None,
    identity_document_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> Application:
    """
    Open a new draft application.

    Raises:
        ValidationError: service id missing
    """
    if not service_id:
        raise ValidationError("service_id is required")

    envelope = ApplicationMetadata.from_bag(metadata)
    application = Application(
        service_id=service_id,
        session_id=session.id if session else None,
        citizen_id=session.citizen_id if session else None,
        identity_document_id=identity_document_id
        or (session.identity_document_id if session else None),
        status=ApplicationStatus.DRAFT.value,
        current_step=0,
        metadata_=envelope.to_bag(),
    )
    db.add(application)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Draft creation failed")
        raise InternalError("Failed to create application")
    db.refresh(application)
    return application


# =============================================================================
# Transitions
# =============================================================================


def submit(
    db: Session,
    application_id: UUID,
    consent_id: str | None,
    *,
    session: CitizenSession | None = None,
) -> Application:
    """
    Move a draft to ``submitted`` and assign its submission id.

    The write is guarded by ``status = draft`` so concurrent duplicate
    submits see zero rows and fail without touching the first one.

    The StatusEvent is appended after the status commit, in its own
    transaction. If that append fails the application stays submitted with
    no ``submitted`` event. The failure is logged and not retried.

    Raises:
        ValidationError: consent id missing
        NotFoundError: unknown application
        ConflictError: application is not a draft
        InternalError: store failure, including a submission-id collision
    """
    if not consent_id:
        raise ValidationError("Consent ID required")

    application = get_application(db, application_id)
    if session is not None:
        assert_session_access(application, session)

    envelope = get_metadata(application)
    envelope.consent_id = str(consent_id)
    if session is not None:
        envelope.submitted_via_session = str(session.id)

    submission_id = generate_submission_id()
    now = datetime.now(timezone.utc)

    try:
        result = db.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.status == ApplicationStatus.DRAFT.value,
            )
            .values(
                {
                    Application.status: ApplicationStatus.SUBMITTED.value,
                    Application.submission_id: submission_id,
                    Application.submitted_at: now,
                    Application.updated_at: now,
                    Application.metadata_: envelope.to_bag(),
                }
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            raise ConflictError("Application not in draft status")
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.exception(
            "Submission id collision",
            extra={"application_id": str(application_id), "submission_id": submission_id},
        )
        raise InternalError("Failed to submit application")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Submit failed", extra={"application_id": str(application_id)})
        raise InternalError("Failed to submit application")

    db.refresh(application)
    logger.info(
        "Application submitted %s",
        submission_id,
        extra=build_log_context(
            application_id=application_id,
            session_id=session.id if session is not None else None,
        ),
    )

    event = audit_service.record_status_event(
        db,
        application_id=application.id,
        previous_status=ApplicationStatus.DRAFT.value,
        new_status=ApplicationStatus.SUBMITTED.value,
        changed_by=None,
        remarks="Application submitted",
        details={"submission_id": submission_id, "consent_id": str(consent_id)},
    )
    status_events.push_status_event(event)
    return application


def admin_set_status(
    db: Session,
    application_id: UUID,
    new_status: str | None,
    actor: AdminUser,
    remarks: str | None = None,
) -> tuple[Application, str]:
    """
    Staff transition to one of the review statuses.

    The current status is read first so the audit row carries the real
    previous status; the write is then conditional on that value.

    Returns:
        (application, previous_status)

    Raises:
        ForbiddenError: actor role may not write
        ValidationError: target status outside the staff-settable set
        NotFoundError: unknown application
        ConflictError: transition not allowed from the current status, or
            the status changed between read and write
    """
    if not AdminRole.has_value(actor.role) or AdminRole(actor.role) not in ROLES_CAN_SET_STATUS:
        raise ForbiddenError("Insufficient permissions")

    if not new_status or not ApplicationStatus.has_value(new_status):
        raise ValidationError("Invalid status")
    target = ApplicationStatus(new_status)
    if target not in ADMIN_SETTABLE_STATUSES:
        raise ValidationError("Invalid status")

    application = get_application(db, application_id)
    previous_status = application.status
    if not can_transition(previous_status, target.value):
        raise ConflictError(f"Cannot change status from {previous_status} to {target.value}")

    now = datetime.now(timezone.utc)
    try:
        result = db.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.status == previous_status,
            )
            .values(status=target.value, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.rollback()
            raise ConflictError("Application status changed concurrently")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Status update failed", extra={"application_id": str(application_id)})
        raise InternalError("Failed to update status")

    db.refresh(application)
    logger.info(
        "Application status changed %s -> %s",
        previous_status,
        target.value,
        extra=build_log_context(application_id=application_id, admin_id=actor.id),
    )

    event = audit_service.record_status_event(
        db,
        application_id=application.id,
        previous_status=previous_status,
        new_status=target.value,
        changed_by=actor.id,
        remarks=remarks,
        details={"role": actor.role},
    )
    status_events.push_status_event(event)
    return application, previous_status


# =============================================================================
# Steps
# =============================================================================


def _upsert_insert(db: Session):
    if db.get_bind().dialect.name == "postgresql":
        return pg_insert
    return sqlite_insert


def save_step(
    db: Session,
    application_id: UUID,
    *,
    step_number: int | None,
    step_identifier: str | None,
    user_response: str | None = None,
    question_text_hi: str | None = None,
    question_text_en: str | None = None,
    data: dict[str, Any] | None = None,
    session: CitizenSession | None = None,
) -> ApplicationStep:
    """
    Upsert one step by ``(application_id, step_identifier)`` and advance
    ``current_step`` to ``step_number``.

    A repeated identifier replaces the answer and keeps the question text
    recorded when the step was first saved.

    Raises:
        ValidationError: step number or identifier missing
        NotFoundError: unknown application
        ConflictError: application is no longer a draft
    """
    if step_number is None or not step_identifier:
        raise ValidationError("step_number and step_identifier are required")

    application = get_application(db, application_id)
    if session is not None:
        assert_session_access(application, session)
    if application.status != ApplicationStatus.DRAFT.value:
        raise ConflictError("Application not in draft status")

    now = datetime.now(timezone.utc)
    insert = _upsert_insert(db)
    stmt = insert(ApplicationStep).values(
        application_id=application_id,
        step_number=step_number,
        step_identifier=step_identifier,
        question_text_hi=question_text_hi,
        question_text_en=question_text_en,
        user_response=user_response,
        data=data or {},
        completed_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["application_id", "step_identifier"],
        set_={
            "step_number": stmt.excluded.step_number,
            "user_response": stmt.excluded.user_response,
            "data": stmt.excluded.data,
            "completed_at": stmt.excluded.completed_at,
        },
    )
    try:
        db.execute(stmt)
        db.execute(
            update(Application)
            .where(Application.id == application_id)
            .values(current_step=step_number, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Step save failed", extra={"application_id": str(application_id)})
        raise InternalError("Failed to save step")

    db.expire_all()
    return db.execute(
        select(ApplicationStep).where(
            ApplicationStep.application_id == application_id,
            ApplicationStep.step_identifier == step_identifier,
        )
    ).scalar_one()


def get_steps(db: Session, application_id: UUID) -> list[ApplicationStep]:
    """Steps ordered by step number."""
    return list(
        db.execute(
            select(ApplicationStep)
            .where(ApplicationStep.application_id == application_id)
            .order_by(ApplicationStep.step_number.asc())
        ).scalars()
    )


# =============================================================================
# Snapshots
# =============================================================================


def _serialize_application(application: Application) -> dict[str, Any]:
    return {
        "id": str(application.id),
        "submission_id": application.submission_id,
        "service_id": application.service_id,
        "identity_document_id": application.identity_document_id,
        "status": application.status,
        "current_step": application.current_step,
        "metadata": dict(application.metadata_ or {}),
        "submitted_at": application.submitted_at.isoformat() if application.submitted_at else None,
        "created_at": application.created_at.isoformat() if application.created_at else None,
        "updated_at": application.updated_at.isoformat() if application.updated_at else None,
    }


def _serialize_step(step: ApplicationStep) -> dict[str, Any]:
    return {
        "step_number": step.step_number,
        "step_identifier": step.step_identifier,
        "question_text_hi": step.question_text_hi,
        "question_text_en": step.question_text_en,
        "user_response": step.user_response,
        "data": dict(step.data or {}),
        "completed_at": step.completed_at.isoformat() if step.completed_at else None,
    }


def snapshot(
    db: Session,
    application_id: UUID,
    *,
    session: CitizenSession | None = None,
) -> ApplicationSnapshot:
    """
    Freeze a deep copy of the application and its steps.

    Additive only: the live application row is never modified.
    """
    application = get_application(db, application_id)
    if session is not None:
        assert_session_access(application, session)

    frozen_at = datetime.now(timezone.utc)
    envelope = get_metadata(application)
    record = ApplicationSnapshot(
        application_id=application.id,
        frozen_at=frozen_at,
        snapshot={
            "application": _serialize_application(application),
            "service": {
                "id": application.service_id,
                "code": envelope.service_code,
                "name_hi": envelope.service_name_hi,
                "name_en": envelope.service_name_en,
            },
            "steps": [_serialize_step(step) for step in get_steps(db, application.id)],
            "frozen_at": frozen_at.isoformat(),
        },
    )
    db.add(record)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Snapshot failed", extra={"application_id": str(application_id)})
        raise InternalError("Failed to create snapshot")
    db.refresh(record)
    return record


def list_events(db: Session, application_id: UUID) -> list[StatusEvent]:
    """Timeline for an application, oldest first."""
    get_application(db, application_id)
    return audit_service.list_status_events(db, application_id)


# =============================================================================
# Tracking lookup
# =============================================================================


def find_by_tracking_id(db: Session, tracking_id: str | None) -> Application:
    """
    Resolve the id a citizen types into the tracker.

    That is the submission id once submitted, or the application UUID for a
    draft that has none yet. Submission ids are matched case-insensitively.

    Raises:
        ValidationError: no id given
        NotFoundError: nothing matches
    """
    tracking_id = (tracking_id or "").strip()
    if not tracking_id:
        raise ValidationError("Application ID required")

    try:
        application = db.get(Application, UUID(tracking_id))
    except ValueError:
        application = db.execute(
            select(Application).where(Application.submission_id == tracking_id.upper())
        ).scalar_one_or_none()

    if application is None:
        raise NotFoundError("Application not found")
    return application


def build_timeline(db: Session, application: Application) -> list[dict[str, Any]]:
    """
    One entry per status event, oldest first.

    Only the latest event that reached the live status is ``current``; an
    application that went back to a status it held before shows the earlier
    visit as ``completed``.
    """
    events = audit_service.list_status_events(db, application.id)
    current_index = None
    for index, event in enumerate(events):
        if event.new_status == application.status:
            current_index = index

    timeline = []
    for index, event in enumerate(events):
        details = event.details or {}
        timeline.append(
            {
                "sequence": event.sequence,
                "new_status": event.new_status,
                "status": "current" if index == current_index else "completed",
                "title_en": event.new_status.replace("_", " ").upper(),
                "title_hi": details.get("title_hi")
                or STATUS_LABELS_HI.get(event.new_status, event.new_status),
                "date": event.created_at,
                "description": details.get("description") or event.remarks or "",
            }
        )
    return timeline
