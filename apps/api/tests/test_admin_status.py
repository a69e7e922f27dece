"""Tests for staff status transitions and the admin review endpoints."""

import uuid

import pytest
from sqlalchemy.orm import Session

from portal.core.errors import ConflictError, ForbiddenError, ValidationError
from portal.db.enums import AdminRole
from portal.services import application_service, audit_service


@pytest.fixture
def submitted_application(db: Session, draft_application):
    return application_service.submit(db, draft_application.id, "consent-1")


# =============================================================================
# Service
# =============================================================================

def test_clerk_requests_more_information(db, submitted_application, clerk):
    application, previous = application_service.admin_set_status(
        db, submitted_application.id, "needs_info", clerk, remarks="missing document"
    )

    assert previous == "submitted"
    assert application.status == "needs_info"

    events = audit_service.list_status_events(db, application.id)
    last = events[-1]
    assert last.previous_status == "submitted"
    assert last.new_status == "needs_info"
    assert last.changed_by == clerk.id
    assert last.remarks == "missing document"
    assert last.details == {"role": "clerk"}
    assert [e.sequence for e in events] == [1, 2]


def test_view_only_cannot_change_status(db, submitted_application, viewer):
    with pytest.raises(ForbiddenError):
        application_service.admin_set_status(db, submitted_application.id, "approved", viewer)

    db.refresh(submitted_application)
    assert submitted_application.status == "submitted"
    assert audit_service.count_status_events(db, submitted_application.id) == 1


@pytest.mark.parametrize("status", ["draft", "submitted", "archived", "", None])
def test_status_outside_review_set_is_rejected(db, submitted_application, clerk, status):
    with pytest.raises(ValidationError, match="Invalid status"):
        application_service.admin_set_status(db, submitted_application.id, status, clerk)


def test_terminal_status_is_final(db, submitted_application, clerk):
    application_service.admin_set_status(db, submitted_application.id, "approved", clerk)
    with pytest.raises(ConflictError):
        application_service.admin_set_status(db, submitted_application.id, "rejected", clerk)


def test_draft_cannot_be_reviewed(db, draft_application, clerk):
    with pytest.raises(ConflictError):
        application_service.admin_set_status(db, draft_application.id, "approved", clerk)


def test_full_review_path(db, submitted_application, admin_factory):
    officer = admin_factory(AdminRole.OFFICER)
    for status in ["in_process", "needs_info", "in_process", "approved"]:
        application_service.admin_set_status(db, submitted_application.id, status, officer)

    events = audit_service.list_status_events(db, submitted_application.id)
    assert [e.new_status for e in events] == [
        "submitted", "in_process", "needs_info", "in_process", "approved"
    ]
    assert audit_service.verify_status_chain(db, submitted_application.id).valid


# =============================================================================
# Endpoints
# =============================================================================

@pytest.mark.asyncio
async def test_status_endpoint(admin_client_factory, submitted_application, clerk):
    async with admin_client_factory(clerk) as client:
        response = await client.post(
            f"/admin/applications/{submitted_application.id}/status",
            json={"status": "needs_info", "remarks": "missing document"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "application_id": str(submitted_application.id),
            "previous_status": "submitted",
            "status": "needs_info",
        }

        events = await client.get(f"/admin/applications/{submitted_application.id}/events")
        assert [e["new_status"] for e in events.json()] == ["submitted", "needs_info"]
        assert events.json()[-1]["changed_by"] == str(clerk.id)


@pytest.mark.asyncio
async def test_status_endpoint_forbidden_for_view_only(admin_client_factory, submitted_application, viewer):
    async with admin_client_factory(viewer) as client:
        response = await client.post(
            f"/admin/applications/{submitted_application.id}/status",
            json={"status": "approved"},
        )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_status_endpoint_invalid_status(admin_client_factory, submitted_application, clerk):
    async with admin_client_factory(clerk) as client:
        response = await client.post(
            f"/admin/applications/{submitted_application.id}/status",
            json={"status": "archived"},
        )
    assert response.status_code == 400
    assert response.json() == {"detail": "Invalid status"}


@pytest.mark.asyncio
async def test_status_endpoint_requires_admin(client, submitted_application):
    response = await client.post(
        f"/admin/applications/{submitted_application.id}/status",
        json={"status": "approved"},
    )
    assert response.status_code == 401
    assert response.json() == {"detail": "Unauthorized"}


@pytest.mark.asyncio
async def test_status_endpoint_unknown_application(admin_client_factory, clerk):
    async with admin_client_factory(clerk) as client:
        response = await client.post(
            f"/admin/applications/{uuid.uuid4()}/status",
            json={"status": "approved"},
        )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_audit_endpoint_open_to_view_only(admin_client_factory, submitted_application, viewer):
    async with admin_client_factory(viewer) as client:
        response = await client.get(f"/admin/applications/{submitted_application.id}/audit")
        assert response.status_code == 200
        assert response.json()["valid"] is True
        assert response.json()["events_checked"] == 1

        detail = await client.get(f"/admin/applications/{submitted_application.id}")
        assert detail.json()["status"] == "submitted"
