"""
Blob storage for logos and profile images.

``put(path, data, content_type) -> url``. With BLOB_STORAGE_URL configured the
bytes are uploaded over HTTP (bounded by EXTERNAL_API_TIMEOUT); otherwise
they are written under LOCAL_UPLOAD_DIR and served from ``/uploads``.
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Optional

import requests

from core.config import settings
from core.exceptions import ExternalCapabilityError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/svg+xml": "svg",
}
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class BlobStorage:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        local_dir: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.base_url = base_url if base_url is not None else settings.BLOB_STORAGE_URL
        self.token = token if token is not None else settings.BLOB_STORAGE_TOKEN
        self.local_dir = Path(local_dir or settings.LOCAL_UPLOAD_DIR)
        self.timeout = timeout or settings.EXTERNAL_API_TIMEOUT

    def put(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        if self.base_url:
            return self._put_remote(path, data, content_type)
        return self._put_local(path, data)

    def _put_remote(self, path: str, data: bytes, content_type: str) -> str:
        url = f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        headers = {"Content-Type": content_type}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            r = requests.put(url, data=data, headers=headers, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            logger.error(
                f"Blob upload failed for {path}: {e}",
                extra={"extra_fields": {"event": "blob_upload_failed", "path": path}},
            )
            raise ExternalCapabilityError("File upload failed", error_code="UPLOAD_FAILED") from e
        try:
            payload = r.json()
        except ValueError:
            payload = {}
        return payload.get("url") or url

    def _put_local(self, path: str, data: bytes) -> str:
        target = self.local_dir / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Local upload failed for {path}: {e}")
            raise ExternalCapabilityError("File upload failed", error_code="UPLOAD_FAILED") from e
        return f"/uploads/{path}"


def store_image(prefix: str, owner_id: uuid.UUID, data: bytes, content_type: Optional[str]) -> str:
    """Validate an uploaded image and store it under ``prefix/owner_id``."""
    ext = ALLOWED_IMAGE_TYPES.get((content_type or "").lower())
    if not ext:
        raise ValidationError("Unsupported image type", error_code="INVALID_FILE_TYPE")
    if not data:
        raise ValidationError("Empty file", error_code="INVALID_FILE")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValidationError("File too large (max 5MB)", error_code="FILE_TOO_LARGE")
    path = f"{prefix}/{owner_id}/{uuid.uuid4().hex}.{ext}"
    return blob_storage.put(path, data, content_type)


blob_storage = BlobStorage()
