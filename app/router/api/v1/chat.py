"""
Chat WebSocket: one socket per client, JSON frames {"event": ..., "payload": ...}.
"""
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.chat.connection_manager import ConnectionManager
from app.chat.event_router import EventRouter
from app.core.dependencies import get_connection_manager, get_event_router

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def websocket_chat(
    websocket: WebSocket,
    event_router: EventRouter = Depends(get_event_router),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Real-time chat. Inbound and outbound events use the same frame shape."""
    await websocket.accept()
    connection_id = manager.connect(websocket)
    await manager.deliver(event_router.connect(connection_id))
    try:
        while True:
            data = await websocket.receive_text()
            try:
                obj = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Dropped non-JSON frame from %s", connection_id)
                continue
            if not isinstance(obj, dict) or not isinstance(obj.get("event"), str):
                logger.warning("Dropped frame without event name from %s", connection_id)
                continue
            emits = event_router.dispatch(connection_id, obj["event"], obj.get("payload"))
            await manager.deliver(emits)
    except WebSocketDisconnect:
        logger.debug("Client %s disconnected", connection_id)
    except Exception as e:
        logger.warning("WebSocket %s closed: %s", connection_id, e)
    finally:
        manager.disconnect(connection_id)
        await manager.deliver(event_router.disconnect(connection_id))
