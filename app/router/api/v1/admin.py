"""
Admin API: chat enable/disable toggle. Changes are pushed to every socket as configChanged.
"""
import logging

from fastapi import APIRouter, Depends

from app.chat.connection_manager import ConnectionManager
from app.chat.event_router import EventRouter
from app.core.dependencies import get_connection_manager, get_event_router
from app.schema.chat import ChatToggleBody, ChatToggleResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/chat-toggle", response_model=ChatToggleResponse)
async def get_chat_toggle(event_router: EventRouter = Depends(get_event_router)):
    """Current toggle state."""
    return ChatToggleResponse(disabled=not event_router.config.chat_enabled)


@router.post("/chat-toggle", response_model=ChatToggleResponse)
async def update_chat_toggle(
    body: ChatToggleBody,
    event_router: EventRouter = Depends(get_event_router),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Enable or disable chat for everyone."""
    await manager.deliver(event_router.set_chat_enabled(not body.disabled))
    return ChatToggleResponse(disabled=not event_router.config.chat_enabled)
