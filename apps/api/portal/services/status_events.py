"""Status event push facade.

Fans newly appended StatusEvents out to websocket subscribers of the
application. Delivery is best-effort and never affects the transition.

Transitions commit from sync code: FastAPI threadpool handlers, the CLI and
tests. Sends are handed to the event loop serving the request when there is
one, and run on a short-lived loop otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

import anyio

from portal.core.structured_logging import build_log_context
from portal.core.websocket import manager
from portal.db.models import StatusEvent

logger = logging.getLogger(__name__)

PUSH_TIMEOUT_SECONDS = 5


def serialize_event(event: StatusEvent) -> dict:
    return {
        "id": str(event.id),
        "application_id": str(event.application_id),
        "sequence": event.sequence,
        "previous_status": event.previous_status,
        "new_status": event.new_status,
        "changed_by": str(event.changed_by) if event.changed_by else None,
        "remarks": event.remarks,
        "created_at": event.created_at.isoformat() if event.created_at else None,
    }


def _deliver(application_id: UUID, message: dict) -> int:
    """
    Send ``message`` to the application's subscribers from sync code.

    Raises:
        TimeoutError: subscribers did not drain within PUSH_TIMEOUT_SECONDS
        RuntimeError: called on a thread that is already running a loop
    """

    async def _send() -> int:
        with anyio.fail_after(PUSH_TIMEOUT_SECONDS):
            return await manager.send_to_application(application_id, message)

    try:
        # Request worker thread: run on the loop that owns the sockets.
        return anyio.from_thread.run(_send)
    except RuntimeError:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return anyio.run(_send)
        raise RuntimeError("status push called from async context; await the manager instead")


def push_status_event(event: StatusEvent | None) -> int:
    """Send ``event`` to connected subscribers; returns deliveries."""
    if event is None or not manager.has_subscribers(event.application_id):
        return 0
    message = {"type": "status_event", "data": serialize_event(event)}
    try:
        return _deliver(event.application_id, message)
    except Exception:
        logger.exception(
            "Status event push failed",
            extra=build_log_context(application_id=event.application_id),
        )
        return 0
