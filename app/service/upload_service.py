"""
Upload service: stores one chat attachment and returns where clients can fetch it.
"""
import logging
import os
import time
from typing import Optional, Tuple

import boto3

from app.core.config import settings

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads"
S3_KEY_PREFIX = "chat"


def _stored_name(filename: str) -> str:
    """<ms timestamp>-<original basename>; path components are stripped."""
    base = os.path.basename(filename.replace("\\", "/")) or "file"
    return f"{int(time.time() * 1000)}-{base}"


def _ensure_upload_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


class UploadService:
    """Writes to S3 when S3_BUCKET_NAME is set, else to UPLOAD_DIR (served at /uploads)."""

    def __init__(self, upload_dir: Optional[str] = None, use_s3: Optional[bool] = None, s3_client=None):
        self.upload_dir = upload_dir or settings.UPLOAD_DIR
        self.use_s3 = settings.use_s3 if use_s3 is None else use_s3
        self._s3_client = s3_client

    @property
    def s3_client(self):
        if self._s3_client is None:
            self._s3_client = boto3.client("s3", region_name=settings.s3_region)
        return self._s3_client

    def _put_s3(self, stored: str, content: bytes, content_type: Optional[str]) -> str:
        """Bucket policy grants public read; no ACL is set on the object."""
        key = f"{S3_KEY_PREFIX}/{stored}"
        self.s3_client.put_object(
            Bucket=settings.S3_BUCKET_NAME,
            Key=key,
            Body=content,
            ContentType=content_type or "application/octet-stream",
        )
        return f"https://{settings.S3_BUCKET_NAME}.s3.{settings.s3_region}.amazonaws.com/{key}"

    def _write_local(self, stored: str, content: bytes) -> str:
        _ensure_upload_dir(self.upload_dir)
        with open(os.path.join(self.upload_dir, stored), "wb") as f:
            f.write(content)
        return f"{UPLOAD_URL_PREFIX}/{stored}"

    def store(self, filename: str, content: bytes, content_type: Optional[str]) -> Tuple[str, str]:
        """Returns (file_url, original filename)."""
        stored = _stored_name(filename)
        if self.use_s3:
            file_url = self._put_s3(stored, content, content_type)
        else:
            file_url = self._write_local(stored, content)
        logger.info(f"Stored upload {filename!r} -> {file_url}")
        return file_url, filename
