"""Tests for the citizen status tracker."""

import pytest
from httpx import AsyncClient

from portal.core.errors import NotFoundError, ValidationError
from portal.services import application_service, session_service


# =============================================================================
# Lookup
# =============================================================================

def test_find_by_submission_id(db, draft_application):
    submitted = application_service.submit(db, draft_application.id, "c-1")

    found = application_service.find_by_tracking_id(db, submitted.submission_id.lower())
    assert found.id == draft_application.id


def test_find_by_application_uuid(db, draft_application):
    found = application_service.find_by_tracking_id(db, str(draft_application.id))
    assert found.id == draft_application.id


@pytest.mark.parametrize("tracking_id", [None, "", "   "])
def test_find_requires_an_id(db, tracking_id):
    with pytest.raises(ValidationError):
        application_service.find_by_tracking_id(db, tracking_id)


@pytest.mark.parametrize("tracking_id", ["EM202601999999", "00000000-0000-0000-0000-000000000000"])
def test_find_unknown_id(db, tracking_id):
    with pytest.raises(NotFoundError):
        application_service.find_by_tracking_id(db, tracking_id)


# =============================================================================
# Timeline
# =============================================================================

def test_timeline_marks_only_latest_visit_current(db, draft_application, clerk):
    application_service.submit(db, draft_application.id, "c-2")
    application_service.admin_set_status(db, draft_application.id, "in_process", clerk)
    application_service.admin_set_status(
        db, draft_application.id, "needs_info", clerk, remarks="Upload bank passbook"
    )
    application_service.admin_set_status(db, draft_application.id, "in_process", clerk)

    db.refresh(draft_application)
    timeline = application_service.build_timeline(db, draft_application)

    assert [entry["new_status"] for entry in timeline] == [
        "submitted",
        "in_process",
        "needs_info",
        "in_process",
    ]
    assert [entry["status"] for entry in timeline] == [
        "completed",
        "completed",
        "completed",
        "current",
    ]
    assert timeline[1]["title_en"] == "IN PROCESS"
    assert timeline[1]["title_hi"] == "प्रक्रियाधीन"
    assert timeline[2]["description"] == "Upload bank passbook"


def test_timeline_of_a_draft_is_empty(db, draft_application):
    assert application_service.build_timeline(db, draft_application) == []


# =============================================================================
# GET /services/status
# =============================================================================

@pytest.mark.asyncio
async def test_status_endpoint_by_submission_id(citizen_client: AsyncClient, db, draft_application):
    submitted = application_service.submit(db, draft_application.id, "c-3")

    response = await citizen_client.get("/services/status", params={"id": submitted.submission_id})

    assert response.status_code == 200
    body = response.json()
    assert body["application_id"] == str(draft_application.id)
    assert body["submission_id"] == submitted.submission_id
    assert body["service_code"] == "OAP"
    assert body["service_name_en"] == "Old Age Pension"
    assert body["status"] == "submitted"
    assert body["status_hi"] == "जमा किया गया"
    assert body["submitted_at"] is not None
    assert len(body["timeline"]) == 1
    assert body["timeline"][0]["status"] == "current"
    assert body["timeline"][0]["title_en"] == "SUBMITTED"


@pytest.mark.asyncio
async def test_status_endpoint_requires_id(citizen_client: AsyncClient):
    response = await citizen_client.get("/services/status")
    assert response.status_code == 400
    assert response.json() == {"detail": "Application ID required"}


@pytest.mark.asyncio
async def test_status_endpoint_unknown_id(citizen_client: AsyncClient):
    response = await citizen_client.get("/services/status", params={"id": "EM202601000000"})
    assert response.status_code == 404
    assert response.json() == {"detail": "Application not found"}


@pytest.mark.asyncio
async def test_status_endpoint_hides_other_citizens_applications(
    client: AsyncClient, db, draft_application
):
    submitted = application_service.submit(db, draft_application.id, "c-4")
    stranger = session_service.create_session(db)
    client.cookies.set("session_id", str(stranger.id))

    response = await client.get("/services/status", params={"id": submitted.submission_id})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_status_endpoint_requires_session(client: AsyncClient, draft_application):
    response = await client.get("/services/status", params={"id": str(draft_application.id)})
    assert response.status_code == 401
