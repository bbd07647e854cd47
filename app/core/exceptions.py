"""
HTTP exceptions. Rendered as {"error": message} by the handler registered in main.py.
"""
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class AppException(HTTPException):
    """Base for errors surfaced to the calling client only."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = "Bad request"

    def __init__(self, message: str | None = None):
        super().__init__(status_code=self.status_code, detail=message or self.message)


class NoFileUploaded(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    message = "No file uploaded"


class FileTooLarge(AppException):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = "File too large"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
