"""Tests for the application status websocket endpoint."""

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from portal.core.cookies import ADMIN_COOKIE, SESSION_COOKIE
from portal.main import app
from portal.routers import websocket as websocket_router
from portal.services import session_service

from conftest import admin_login


def _connect(client: TestClient, application_id, cookie: str | None = None):
    headers = {"cookie": cookie} if cookie else {}
    return client.websocket_connect(f"/ws/applications/{application_id}", headers=headers)


def test_owner_session_can_subscribe(db, citizen_session, draft_application):
    client = TestClient(app)
    with _connect(client, draft_application.id, f"{SESSION_COOKIE}={citizen_session.id}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_staff_session_can_subscribe(db, clerk, draft_application):
    auth = admin_login(db, clerk)
    client = TestClient(app)
    with _connect(client, draft_application.id, f"{ADMIN_COOKIE}={auth.token}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"


def test_anonymous_subscription_is_closed(db, draft_application):
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with _connect(client, draft_application.id) as ws:
            ws.receive_text()
    assert exc.value.code == 4001


def test_foreign_session_is_closed(db, draft_application):
    stranger = session_service.create_session(db)
    client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc:
        with _connect(client, draft_application.id, f"{SESSION_COOKIE}={stranger.id}") as ws:
            ws.receive_text()
    assert exc.value.code == 4001


def test_authorization_runs_off_the_event_loop(db, citizen_session, draft_application, monkeypatch):
    real_authorized = websocket_router._authorized
    loops_seen = []

    def authorized(websocket, application_id):
        try:
            asyncio.get_running_loop()
            loops_seen.append(True)
        except RuntimeError:
            loops_seen.append(False)
        return real_authorized(websocket, application_id)

    monkeypatch.setattr(websocket_router, "_authorized", authorized)
    client = TestClient(app)
    with _connect(client, draft_application.id, f"{SESSION_COOKIE}={citizen_session.id}") as ws:
        ws.send_text("ping")
        assert ws.receive_text() == "pong"

    assert loops_seen == [False]
