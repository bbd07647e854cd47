"""
In-memory connection manager for chat WebSocket: connection ids, targeted sends and broadcast.
"""
import json
import logging
import uuid
from typing import Any, Dict, Iterable, List, Optional

from fastapi import WebSocket

from app.chat.event_router import Emit

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live WebSocket connections by connection id and delivers router output."""

    def __init__(self) -> None:
        # connection_id -> WebSocket
        self._connections: Dict[str, WebSocket] = {}

    def connect(self, websocket: WebSocket) -> str:
        """Register an accepted socket and assign its connection id."""
        connection_id = uuid.uuid4().hex
        self._connections[connection_id] = websocket
        logger.info("Connection %s opened (%d live)", connection_id, len(self._connections))
        return connection_id

    def disconnect(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.info("Connection %s closed (%d live)", connection_id, len(self._connections))

    def connection_ids(self) -> List[str]:
        return list(self._connections)

    async def send(self, connection_id: str, event: str, payload: Any) -> None:
        """Send one event. Unknown ids are a no-op; a failed send drops the socket."""
        websocket = self._connections.get(connection_id)
        if websocket is None:
            logger.debug("No live connection %s for %s", connection_id, event)
            return
        msg = json.dumps({"event": event, "payload": payload}, default=str)
        try:
            await websocket.send_text(msg)
        except Exception as e:
            logger.warning("Send of %s to %s failed: %s", event, connection_id, e)
            self.disconnect(connection_id)

    async def broadcast(self, event: str, payload: Any, exclude: Optional[str] = None) -> None:
        """Send to every live connection except exclude."""
        for connection_id in self.connection_ids():
            if connection_id == exclude:
                continue
            await self.send(connection_id, event, payload)

    async def deliver(self, emits: Iterable[Emit]) -> None:
        """Send router output in order."""
        for emit in emits:
            if emit.to is None:
                await self.broadcast(emit.event, emit.payload, exclude=emit.exclude)
                continue
            for connection_id in emit.to:
                if connection_id == emit.exclude:
                    continue
                await self.send(connection_id, emit.event, emit.payload)
