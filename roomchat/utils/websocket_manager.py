import asyncio
import json
import uuid
from typing import Dict, Optional
from uuid import UUID

from fastapi import WebSocket

from ..core.log_config import get_logger
from .session_registry import SessionRegistry

logger = get_logger("websocket")


def build_event(event_type: str, data: dict) -> str:
    """Serializes a server-originated event into the wire envelope."""
    return json.dumps({"type": event_type, "data": data}, default=str)


class WebsocketManager:
    """
    Owns the live WebSocket objects and fans events out to them.

    Room audiences always come from the SessionRegistry at send time. Delivery
    is best-effort: a socket that fails to receive is logged and skipped, and
    its cleanup is left to the normal disconnect path. This class is designed
    to be a singleton instance within the FastAPI application.
    """

    def __init__(self, registry: SessionRegistry):
        self.registry = registry
        self.active_connections: Dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, connection_id: Optional[str] = None) -> str:
        """Accepts a new WebSocket connection and returns its connection id."""
        await websocket.accept()
        connection_id = connection_id or uuid.uuid4().hex
        self.active_connections[connection_id] = websocket
        logger.debug(f"Connection {connection_id} accepted.")
        return connection_id

    def disconnect(self, connection_id: str):
        self.active_connections.pop(connection_id, None)
        logger.debug(f"Connection {connection_id} released.")

    async def close(self):
        """Closes every socket still open, used at shutdown."""
        sockets = list(self.active_connections.items())
        self.active_connections.clear()
        for connection_id, websocket in sockets:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Closing connection {connection_id} failed: {e}")
        logger.info("WebsocketManager resources closed.")

    async def to_connection(self, connection_id: str, event_type: str, data: dict):
        await self._send(connection_id, build_event(event_type, data))

    async def to_room(self, room_id: UUID, event_type: str, data: dict):
        """Delivers an event to every connection currently in the room."""
        await self._fan_out(self.registry.sessions_in_room(room_id), build_event(event_type, data))

    async def to_room_except(self, room_id: UUID, exclude_connection_id: str, event_type: str, data: dict):
        """Same as to_room, minus the connection that caused the event."""
        targets = self.registry.sessions_in_room(room_id)
        targets.discard(exclude_connection_id)
        await self._fan_out(targets, build_event(event_type, data))

    async def _fan_out(self, connection_ids, message: str):
        if not connection_ids:
            return
        await asyncio.gather(*(self._send(cid, message) for cid in connection_ids))

    async def _send(self, connection_id: str, message: str):
        """Sends a message directly to a websocket connected to this process."""
        websocket = self.active_connections.get(connection_id)
        if websocket is None:
            return
        try:
            await websocket.send_text(message)
        except Exception as e:
            logger.debug(f"Dropping event for connection {connection_id}: {e}")
