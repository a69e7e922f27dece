"""
WebSocket connection manager for realtime application status.

Clients subscribe per application id; every appended status event is
pushed to all sockets subscribed to that application.
"""

from typing import Dict, Set
from uuid import UUID
import asyncio
import json
import logging

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket subscriptions keyed by application id."""

    def __init__(self):
        # application_id -> set of subscribed WebSocket connections
        self._subscriptions: Dict[UUID, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, application_id: UUID):
        """Accept and register a subscription."""
        await websocket.accept()
        async with self._lock:
            self._subscriptions.setdefault(application_id, set()).add(websocket)

    async def disconnect(self, websocket: WebSocket, application_id: UUID):
        """Remove a subscription."""
        async with self._lock:
            sockets = self._subscriptions.get(application_id)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self._subscriptions[application_id]

    async def send_to_application(self, application_id: UUID, message: dict) -> int:
        """Send a message to every subscriber of an application. Returns deliveries."""
        async with self._lock:
            connections = self._subscriptions.get(application_id, set()).copy()

        if not connections:
            return 0

        data = json.dumps(message, default=str)
        closed = []
        delivered = 0

        for ws in connections:
            try:
                await ws.send_text(data)
                delivered += 1
            except Exception:
                closed.append(ws)

        if closed:
            logger.debug(
                "Dropping %d closed subscriptions for application %s",
                len(closed),
                application_id,
            )
            async with self._lock:
                sockets = self._subscriptions.get(application_id)
                if sockets is not None:
                    for ws in closed:
                        sockets.discard(ws)
                    if not sockets:
                        del self._subscriptions[application_id]

        return delivered

    def has_subscribers(self, application_id: UUID) -> bool:
        """True when at least one socket watches this application."""
        return bool(self._subscriptions.get(application_id))

    def get_subscriber_count(self, application_id: UUID) -> int:
        """Number of sockets watching an application."""
        return len(self._subscriptions.get(application_id, set()))

    def get_total_connections(self) -> int:
        """Total number of active subscriptions across all applications."""
        return sum(len(conns) for conns in self._subscriptions.values())


# Singleton instance
manager = ConnectionManager()
