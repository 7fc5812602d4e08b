import logging
import os
import time
import uuid
from typing import Optional

from supabase import AsyncClient

from app.config import settings
from app.core.exceptions import AccessDeniedError, ConfigurationError, TransientFetchError

logger = logging.getLogger(__name__)


def _status_of(error: Exception) -> Optional[int]:
    """Best-effort HTTP status from a storage3 exception."""
    for candidate in (getattr(error, "status", None), getattr(error, "status_code", None)):
        if candidate is not None:
            try:
                return int(candidate)
            except (TypeError, ValueError):
                pass
    if error.args and isinstance(error.args[0], dict):
        raw = error.args[0].get("statusCode") or error.args[0].get("status")
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None
    return None


class ImageStorage:
    def __init__(self, supabase: AsyncClient, bucket_name: Optional[str] = None):
        self.supabase = supabase
        self.bucket_name = bucket_name or settings.storage_bucket
        if not self.bucket_name:
            raise ConfigurationError("Storage bucket name must be configured", resource="STORAGE_BUCKET")

    @staticmethod
    def make_path(filename: str) -> str:
        ext = os.path.splitext(filename)[1].lstrip(".").lower() or "bin"
        return f"{uuid.uuid4().hex[:12]}_{int(time.time() * 1000)}.{ext}"

    async def upload_file(self, file_content: bytes, filename: str, content_type: str = "application/octet-stream") -> str:
        """Upload an image and return its public URL"""
        path = self.make_path(filename)
        bucket = self.supabase.storage.from_(self.bucket_name)
        try:
            await bucket.upload(
                path,
                file_content,
                file_options={"content-type": content_type, "cache-control": "3600", "upsert": "false"},
            )
        except Exception as e:
            status = _status_of(e)
            logger.error(f"Upload to bucket {self.bucket_name} failed (status {status}): {e}")
            if status == 404:
                raise ConfigurationError(
                    f'Storage bucket "{self.bucket_name}" not found. Create it with a public-read policy.',
                    resource=self.bucket_name,
                )
            if status == 403:
                raise AccessDeniedError(f'Permission denied uploading to bucket "{self.bucket_name}"')
            raise TransientFetchError(f"Failed to upload to storage: {e}")

        public_url = await bucket.get_public_url(path)
        if not public_url:
            raise TransientFetchError(f'Uploaded "{path}" but failed to obtain its public URL')
        logger.info(f"Uploaded image {path} to bucket {self.bucket_name}")
        return public_url
