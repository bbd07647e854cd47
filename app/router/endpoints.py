"""
API Router - all endpoints.
"""
from fastapi import APIRouter
from app.router.api.v1 import admin, chat, uploads

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    chat.router,
    prefix="/chat",
    tags=["Chat"],
)

api_router.include_router(
    uploads.router,
    prefix="/uploads",
    tags=["Uploads"],
)

api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"],
)
