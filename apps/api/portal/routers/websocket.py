"""
WebSocket router for application status updates.

A client subscribes to one application and receives each newly appended
StatusEvent as ``{"type": "status_event", "data": {...}}``. Either a
citizen session that owns the application or any staff session may
subscribe.
"""

from uuid import UUID

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from portal.core.cookies import ADMIN_COOKIE, SESSION_COOKIE
from portal.core.errors import NotFoundError
from portal.core.websocket import manager
from portal.db.session import SessionLocal
from portal.services import admin_auth_service, application_service, session_service

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _authorized(websocket: WebSocket, application_id: UUID) -> bool:
    db = SessionLocal()
    try:
        if admin_auth_service.get_current_admin(db, websocket.cookies.get(ADMIN_COOKIE)):
            application_service.get_application(db, application_id)
            return True
        session = session_service.get_active_session(db, websocket.cookies.get(SESSION_COOKIE))
        if session is None:
            return False
        application = application_service.get_application(db, application_id)
        application_service.assert_session_access(application, session)
        return True
    except NotFoundError:
        return False
    finally:
        db.close()


@router.websocket("/applications/{application_id}")
async def websocket_application_status(websocket: WebSocket, application_id: UUID):
    # Store lookups are blocking; keep them off the event loop.
    if not await anyio.to_thread.run_sync(_authorized, websocket, application_id):
        await websocket.close(code=4001, reason="Authentication required")
        return

    await manager.connect(websocket, application_id)

    try:
        # Keep connection alive, handle incoming messages (heartbeat/pings)
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    finally:
        await manager.disconnect(websocket, application_id)
