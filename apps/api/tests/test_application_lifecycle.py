"""Tests for the application lifecycle: submit, steps, snapshots, envelope."""

import re
import uuid
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from portal.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from portal.db.enums import can_transition
from portal.db.models import Application, ApplicationSnapshot, ApplicationStep, CitizenSession
from portal.schemas.application import ApplicationMetadata
from portal.services import application_service, audit_service


SUBMISSION_ID = re.compile(r"^EM\d{4}\d{2}\d{5}$")


# =============================================================================
# Transition table
# =============================================================================

def test_transition_table():
    assert can_transition("draft", "submitted")
    assert can_transition("submitted", "needs_info")
    assert can_transition("needs_info", "in_process")
    assert can_transition("in_process", "approved")
    assert not can_transition("draft", "approved")
    assert not can_transition("approved", "rejected")
    assert not can_transition("rejected", "in_process")
    assert not can_transition("submitted", "draft")
    assert not can_transition("bogus", "submitted")


def test_submission_id_shape():
    value = application_service.generate_submission_id(datetime(2026, 3, 9, tzinfo=timezone.utc))
    assert SUBMISSION_ID.match(value)
    assert value.startswith("EM202603")


# =============================================================================
# submit
# =============================================================================

def test_submit_assigns_submission_id_and_records_event(db, draft_application):
    consent_id = str(uuid.uuid4())
    application = application_service.submit(db, draft_application.id, consent_id)

    assert application.status == "submitted"
    assert SUBMISSION_ID.match(application.submission_id)
    assert application.submitted_at is not None
    assert application_service.get_metadata(application).consent_id == consent_id

    events = audit_service.list_status_events(db, application.id)
    assert [(e.previous_status, e.new_status, e.changed_by) for e in events] == [
        ("draft", "submitted", None)
    ]


def test_submit_requires_consent(db, draft_application):
    with pytest.raises(ValidationError):
        application_service.submit(db, draft_application.id, None)
    db.refresh(draft_application)
    assert draft_application.status == "draft"


def test_submit_unknown_application(db):
    with pytest.raises(NotFoundError):
        application_service.submit(db, uuid.uuid4(), "consent")


def test_second_submit_conflicts_and_keeps_submission_id(db, draft_application):
    first = application_service.submit(db, draft_application.id, "c-1")
    submission_id = first.submission_id

    with pytest.raises(ConflictError, match="not in draft status"):
        application_service.submit(db, draft_application.id, "c-2")

    db.refresh(draft_application)
    assert draft_application.submission_id == submission_id
    assert audit_service.count_status_events(db, draft_application.id) == 1


def test_submit_guard_is_on_the_store(db, draft_application):
    """A submit racing a committed submit sees zero rows and fails."""
    db.execute(
        update(Application)
        .where(Application.id == draft_application.id)
        .values(status="submitted", submission_id="EM20260100001")
    )
    db.commit()

    with pytest.raises(ConflictError):
        application_service.submit(db, draft_application.id, "c-3")

    row = db.execute(
        select(Application.submission_id).where(Application.id == draft_application.id)
    ).scalar_one()
    assert row == "EM20260100001"


def test_submission_id_collision_is_not_retried(db, draft_application, citizen_session, monkeypatch):
    other = Application(
        service_id="ration-card",
        session_id=citizen_session.id,
        status="submitted",
        submission_id="EM20260112345",
    )
    db.add(other)
    db.commit()

    monkeypatch.setattr(application_service, "generate_submission_id", lambda now=None: "EM20260112345")
    with pytest.raises(InternalError):
        application_service.submit(db, draft_application.id, "c-4")

    db.refresh(draft_application)
    assert draft_application.status == "draft"
    assert draft_application.submission_id is None


def test_audit_failure_does_not_block_submit(db, draft_application, monkeypatch):
    def fail(*args, **kwargs):
        raise SQLAlchemyError("audit store unavailable")

    monkeypatch.setattr(audit_service, "append_status_event", fail)
    application = application_service.submit(db, draft_application.id, "c-5")

    assert application.status == "submitted"
    assert audit_service.list_status_events(db, application.id) == []

    # The committed transition is not reverted by the failed append
    db.expire_all()
    stored = application_service.get_application(db, application.id)
    assert stored.status == "submitted"
    assert stored.submission_id == application.submission_id


def test_submit_from_foreign_session_is_not_found(db, draft_application):
    stranger = CitizenSession(language="hi", is_active=True)
    db.add(stranger)
    db.commit()
    with pytest.raises(NotFoundError):
        application_service.submit(db, draft_application.id, "c-6", session=stranger)


# =============================================================================
# Steps
# =============================================================================

def test_save_step_upserts_by_identifier(db, draft_application):
    application_service.save_step(
        db,
        draft_application.id,
        step_number=1,
        step_identifier="personal",
        question_text_hi="आपका नाम क्या है?",
        question_text_en="What is your name?",
        user_response="first",
    )
    application_service.save_step(
        db,
        draft_application.id,
        step_number=2,
        step_identifier="address",
        question_text_en="Where do you live?",
        user_response="Jaipur",
    )
    updated = application_service.save_step(
        db,
        draft_application.id,
        step_number=1,
        step_identifier="personal",
        user_response="second",
    )

    assert updated.user_response == "second"
    # Question text recorded on the first save survives a re-answer
    assert updated.question_text_en == "What is your name?"
    assert updated.question_text_hi == "आपका नाम क्या है?"
    steps = application_service.get_steps(db, draft_application.id)
    assert [(s.step_number, s.step_identifier) for s in steps] == [(1, "personal"), (2, "address")]
    assert [s.user_response for s in steps] == ["second", "Jaipur"]
    assert len(db.execute(select(ApplicationStep)).scalars().all()) == 2

    db.refresh(draft_application)
    assert draft_application.current_step == 1


def test_save_step_keeps_structured_data_alongside_answer(db, draft_application):
    step = application_service.save_step(
        db,
        draft_application.id,
        step_number=1,
        step_identifier="personal",
        user_response="67",
        data={"age": 67},
    )
    assert step.user_response == "67"
    assert step.data == {"age": 67}


def test_save_step_requires_fields(db, draft_application):
    with pytest.raises(ValidationError):
        application_service.save_step(db, draft_application.id, step_number=None, step_identifier="x")


def test_save_step_after_submit_conflicts(db, draft_application):
    application_service.submit(db, draft_application.id, "c-7")
    with pytest.raises(ConflictError):
        application_service.save_step(db, draft_application.id, step_number=3, step_identifier="late")


# =============================================================================
# Snapshots
# =============================================================================

def test_snapshot_freezes_application_and_steps(db, draft_application):
    application_service.save_step(
        db, draft_application.id, step_number=1, step_identifier="personal", user_response="67"
    )
    record = application_service.snapshot(db, draft_application.id)

    assert record.snapshot["application"]["status"] == "draft"
    assert record.snapshot["service"]["code"] == "OAP"
    assert record.snapshot["steps"][0]["user_response"] == "67"
    assert record.frozen_at is not None

    # Later changes do not leak into the frozen copy
    application_service.save_step(
        db, draft_application.id, step_number=1, step_identifier="personal", user_response="68"
    )
    db.expire_all()
    frozen = db.get(ApplicationSnapshot, record.id)
    assert frozen.snapshot["steps"][0]["user_response"] == "67"


def test_snapshot_does_not_touch_live_row(db, draft_application):
    before = draft_application.updated_at
    application_service.snapshot(db, draft_application.id)
    db.refresh(draft_application)
    assert draft_application.updated_at == before
    assert draft_application.status == "draft"


# =============================================================================
# Metadata envelope
# =============================================================================

def test_metadata_envelope_keeps_unknown_keys():
    envelope = ApplicationMetadata.from_bag(
        {"service_code": "OAP", "bank_ifsc": "SBIN0001", "extensions": {"legacy": 1}}
    )
    assert envelope.version == 1
    assert envelope.service_code == "OAP"
    assert envelope.extensions == {"legacy": 1, "bank_ifsc": "SBIN0001"}

    bag = envelope.to_bag()
    assert bag["extensions"]["bank_ifsc"] == "SBIN0001"
    assert ApplicationMetadata.from_bag(bag) == envelope


def test_metadata_envelope_from_empty():
    envelope = ApplicationMetadata.from_bag(None)
    assert envelope.consent_id is None
    assert envelope.extensions == {}


# =============================================================================
# Endpoints
# =============================================================================

@pytest.mark.asyncio
async def test_submit_endpoint(citizen_client: AsyncClient, draft_application):
    response = await citizen_client.post(
        f"/applications/{draft_application.id}/submit", json={"consent_id": "consent-1"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "submitted"
    assert SUBMISSION_ID.match(body["submission_id"])

    again = await citizen_client.post(
        f"/applications/{draft_application.id}/submit", json={"consent_id": "consent-1"}
    )
    assert again.status_code == 400
    assert again.json() == {"detail": "Application not in draft status"}


@pytest.mark.asyncio
async def test_submit_endpoint_missing_consent(citizen_client: AsyncClient, draft_application):
    response = await citizen_client.post(f"/applications/{draft_application.id}/submit", json={})
    assert response.status_code == 400
    assert response.json() == {"detail": "Consent ID required"}


@pytest.mark.asyncio
async def test_submit_endpoint_without_body_is_missing_consent(
    citizen_client: AsyncClient, draft_application
):
    response = await citizen_client.post(f"/applications/{draft_application.id}/submit")
    assert response.status_code == 400
    assert response.json() == {"detail": "Consent ID required"}


@pytest.mark.asyncio
async def test_submit_endpoint_requires_session(client: AsyncClient, draft_application):
    response = await client.post(
        f"/applications/{draft_application.id}/submit", json={"consent_id": "c"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_steps_endpoints(citizen_client: AsyncClient, draft_application):
    for number, identifier, answer in [(2, "address", "Jaipur"), (1, "personal", "first")]:
        response = await citizen_client.post(
            f"/applications/{draft_application.id}/steps",
            json={
                "step_number": number,
                "step_identifier": identifier,
                "question_text_hi": f"प्रश्न {number}",
                "question_text_en": f"Question {number}",
                "user_response": answer,
            },
        )
        assert response.status_code == 200
        assert response.json()["user_response"] == answer

    response = await citizen_client.post(
        f"/applications/{draft_application.id}/steps",
        json={"step_number": 1, "step_identifier": "personal", "user_response": "second"},
    )
    assert response.status_code == 200
    assert response.json()["user_response"] == "second"
    assert response.json()["question_text_en"] == "Question 1"

    response = await citizen_client.get(f"/applications/{draft_application.id}/steps")
    steps = response.json()
    assert [s["step_identifier"] for s in steps] == ["personal", "address"]
    assert [s["user_response"] for s in steps] == ["second", "Jaipur"]
    assert steps[0]["question_text_hi"] == "प्रश्न 1"


@pytest.mark.asyncio
async def test_create_read_and_timeline(citizen_client: AsyncClient):
    created = await citizen_client.post(
        "/applications",
        json={"service_id": "widow-pension", "metadata": {"service_code": "WP", "ward": "12"}},
    )
    assert created.status_code == 201
    application_id = created.json()["id"]
    assert created.json()["metadata"]["extensions"] == {"ward": "12"}

    await citizen_client.post(f"/applications/{application_id}/submit", json={"consent_id": "c"})

    read = await citizen_client.get(f"/applications/{application_id}")
    assert read.json()["status"] == "submitted"

    events = await citizen_client.get(f"/applications/{application_id}/events")
    assert [e["new_status"] for e in events.json()] == ["submitted"]


@pytest.mark.asyncio
async def test_snapshot_endpoint(citizen_client: AsyncClient, draft_application):
    response = await citizen_client.post(f"/applications/{draft_application.id}/snapshot")
    assert response.status_code == 201
    assert response.json()["snapshot"]["application"]["id"] == str(draft_application.id)
