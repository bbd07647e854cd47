"""
Meeting Chat Backend Application Entry Point.
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from app.chat.connection_manager import ConnectionManager
from app.chat.event_router import build_router
from app.chat.store import build_store
from app.core.config import settings
from app.core.exceptions import AppException, app_exception_handler
from app.router.endpoints import api_router
import logging
import uvicorn

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting application...")

    store = build_store(settings)
    try:
        # Connection ids from a previous process are meaningless
        store.clear()
        logger.info(f"Membership store ready ({settings.CHAT_STORE_BACKEND})")
    except Exception as e:
        logger.error(f"Membership store initialization failed: {e}")
        raise
    app.state.event_router = build_router(store)
    app.state.connection_manager = ConnectionManager()

    # Ensure upload directory exists for chat attachments
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)

app.add_exception_handler(AppException, app_exception_handler)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(api_router)

# Serve uploaded attachments at /uploads/... (directory must exist before mount)
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health")
async def health():
    return {"status": "ok"}

@app.get("/")
async def root():
    return {"message": "Welcome to the Meeting Chat API!"}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
