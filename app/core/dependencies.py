"""
FastAPI dependencies: chat state owned by the application instance.
"""
from starlette.requests import HTTPConnection

from app.chat.connection_manager import ConnectionManager
from app.chat.event_router import EventRouter
from app.service.upload_service import UploadService


def get_event_router(conn: HTTPConnection) -> EventRouter:
    """Router built in the lifespan handler (see main.py)."""
    return conn.app.state.event_router


def get_connection_manager(conn: HTTPConnection) -> ConnectionManager:
    return conn.app.state.connection_manager


def get_upload_service() -> UploadService:
    return UploadService()
