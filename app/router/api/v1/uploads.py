"""
Uploads API: chat attachments. The returned fileUrl is then sent with the sendMedia event.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from app.core.config import settings
from app.core.dependencies import get_upload_service
from app.core.exceptions import FileTooLarge, NoFileUploaded
from app.schema.chat import UploadResponse
from app.service.upload_service import UploadService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=UploadResponse)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    upload_service: UploadService = Depends(get_upload_service),
):
    """Store one file (multipart field 'file'). Errors go to the caller only."""
    if file is None or not file.filename:
        raise NoFileUploaded()
    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_BYTES:
        logger.warning(f"Rejected upload {file.filename!r}: {len(content)} bytes")
        raise FileTooLarge()
    file_url, filename = upload_service.store(file.filename, content, file.content_type)
    return UploadResponse(file_url=file_url, filename=filename)
