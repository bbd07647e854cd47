"""
Unit tests for the upload service backends.
"""

import os
import tempfile
import unittest
from unittest.mock import MagicMock, patch

from app.core.config import settings
from app.service.upload_service import UploadService


class TestUploadService(unittest.TestCase):

    def test_local_write(self):
        with tempfile.TemporaryDirectory() as tmp:
            service = UploadService(upload_dir=os.path.join(tmp, "nested"), use_s3=False)
            file_url, filename = service.store("cat.png", b"\x89PNG", "image/png")
            self.assertEqual(filename, "cat.png")
            stored = file_url.rsplit("/", 1)[1]
            with open(os.path.join(tmp, "nested", stored), "rb") as f:
                self.assertEqual(f.read(), b"\x89PNG")

    @patch.object(settings, "S3_REGION", "us-east-1")
    @patch.object(settings, "S3_BUCKET_NAME", "bucket")
    def test_s3_put_returns_public_url(self):
        client = MagicMock()
        service = UploadService(use_s3=True, s3_client=client)
        file_url, filename = service.store("notes.txt", b"hello", None)
        kwargs = client.put_object.call_args.kwargs
        self.assertEqual(kwargs["Bucket"], "bucket")
        self.assertTrue(kwargs["Key"].startswith("chat/"))
        self.assertTrue(kwargs["Key"].endswith("-notes.txt"))
        self.assertEqual(kwargs["Body"], b"hello")
        self.assertEqual(kwargs["ContentType"], "application/octet-stream")
        self.assertEqual(file_url, f"https://bucket.s3.us-east-1.amazonaws.com/{kwargs['Key']}")
        self.assertEqual(filename, "notes.txt")


if __name__ == "__main__":
    unittest.main()
