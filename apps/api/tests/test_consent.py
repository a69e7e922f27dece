"""Tests for the consent recorder."""

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy.exc import IntegrityError

from portal.core.config import settings
from portal.core.errors import ConflictError, InternalError, NotFoundError, ValidationError
from portal.db.models import ConsentLog
from portal.db.models._common import ImmutableRowError
from portal.services import consent_service


def test_session_consent_uses_default_purposes(db, citizen_session):
    log = consent_service.record_session_consent(db, session_id=citizen_session.id, language="hi")
    assert log.consent_type == "session"
    assert log.purpose_hi == "सत्र सहमति"
    assert log.purpose_en == "Session consent"
    assert log.purpose == "सत्र सहमति"
    assert log.application_id is None


def test_consent_requires_a_scope(db):
    with pytest.raises(ValidationError):
        consent_service.record_consent(db, consent_type=consent_service.ConsentType.SESSION)


def test_scope_rule_is_enforced_by_the_table(db):
    db.add(ConsentLog(consent_type="session", purpose="x"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_unknown_consent_type_rejected(db, citizen_session):
    with pytest.raises(ValidationError):
        consent_service.record_session_consent(
            db, session_id=citizen_session.id, consent_type="marketing"
        )


def test_consent_rows_are_immutable(db, citizen_session):
    log = consent_service.record_session_consent(db, session_id=citizen_session.id)
    log.purpose = "rewritten"
    with pytest.raises(ImmutableRowError):
        db.commit()
    db.rollback()


def test_application_consent_defaults_to_submission(db, draft_application, citizen_session):
    log = consent_service.record_application_consent(
        db, application_id=draft_application.id, session_id=citizen_session.id
    )
    assert log.consent_type == "submission"
    assert log.purpose_en == "Application submission consent"


def test_application_consent_unknown_application(db):
    with pytest.raises(NotFoundError):
        consent_service.record_application_consent(db, application_id=uuid.uuid4())


def test_client_supplied_consent_id_is_idempotent(db, draft_application, citizen_session):
    consent_id = uuid.uuid4()
    first = consent_service.record_application_consent(
        db, application_id=draft_application.id, session_id=citizen_session.id, consent_id=consent_id
    )
    again = consent_service.record_application_consent(
        db, application_id=draft_application.id, session_id=citizen_session.id, consent_id=consent_id
    )
    assert first.id == again.id == consent_id
    assert len(consent_service.list_consents(db, application_id=draft_application.id)) == 1


def test_consent_id_reused_for_other_scope_conflicts(db, draft_application, citizen_session):
    consent_id = uuid.uuid4()
    consent_service.record_application_consent(
        db, application_id=draft_application.id, consent_id=consent_id
    )
    with pytest.raises(ConflictError):
        consent_service.record_application_consent(
            db, application_id=draft_application.id, consent_id=consent_id, consent_type="data_share"
        )


def test_client_ip_is_hashed(db, citizen_session):
    log = consent_service.record_session_consent(
        db, session_id=citizen_session.id, client_ip="203.0.113.9"
    )
    assert log.ip_hash
    assert "203.0.113.9" not in log.ip_hash


# =============================================================================
# Endpoints
# =============================================================================

@pytest.mark.asyncio
async def test_session_consent_sets_marker(citizen_client: AsyncClient, citizen_session, db):
    response = await citizen_client.post("/consent/session", json={})
    assert response.status_code == 200
    assert response.json()["persisted"] is True
    assert response.cookies.get("consent") == "true"
    assert len(consent_service.list_consents(db, session_id=citizen_session.id)) == 1


@pytest.mark.asyncio
async def test_session_consent_requires_session(client: AsyncClient):
    response = await client.post("/consent/session", json={})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_session_consent_fails_closed_by_default(citizen_client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "CONSENT_FAIL_OPEN", False)
    monkeypatch.setattr(consent_service, "_insert", _store_down)
    response = await citizen_client.post("/consent/session", json={})
    assert response.status_code == 500
    assert "consent" not in response.cookies


@pytest.mark.asyncio
async def test_session_consent_fail_open(citizen_client: AsyncClient, monkeypatch):
    monkeypatch.setattr(settings, "CONSENT_FAIL_OPEN", True)
    monkeypatch.setattr(consent_service, "_insert", _store_down)
    response = await citizen_client.post("/consent/session", json={})
    assert response.status_code == 200
    assert response.json() == {"success": True, "consent_id": None, "persisted": False}
    assert response.cookies.get("consent") == "true"


def _store_down(db, log):
    raise InternalError("Failed to record consent")


@pytest.mark.asyncio
async def test_application_consent_endpoint(citizen_client: AsyncClient, draft_application):
    consent_id = str(uuid.uuid4())
    response = await citizen_client.post(
        "/consent/application",
        json={"application_id": str(draft_application.id), "consent_id": consent_id},
    )
    assert response.status_code == 200
    assert response.json()["consent_id"] == consent_id
