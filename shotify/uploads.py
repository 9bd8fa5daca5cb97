"""
Image uploads: validation, storage-key derivation and delegation to storage.

Keys follow ``uploads/<userID>/<YYYYMMDD>-<8 hex>.<ext>``. The user-id prefix
is the only ownership record an upload has.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import BinaryIO, Callable

from shotify.errors import InvalidArgumentError, NotFoundError, UpstreamError
from shotify.models import UploadResult
from shotify.storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def file_extension(filename: str) -> str:
    """
    Suffix from the last dot of the final path element, dot included.

    A dot-leading name such as ``.png`` is all extension.
    """
    base = (filename or "").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    return base[dot:] if dot >= 0 else ""


def is_valid_image_type(filename: str) -> bool:
    return file_extension(filename).lower() in CONTENT_TYPES


def content_type_for(ext: str) -> str:
    return CONTENT_TYPES.get(ext.lower(), DEFAULT_CONTENT_TYPE)


def user_prefix(user_id: str) -> str:
    return f"uploads/{user_id}/"


class UploadService:
    def __init__(
        self,
        storage: StorageClient,
        max_bytes: int = MAX_UPLOAD_BYTES,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.storage = storage
        self.max_bytes = max_bytes
        self.clock = clock

    def build_key(self, user_id: str, filename: str) -> str:
        ext = file_extension(filename)
        stamp = self.clock().strftime("%Y%m%d")
        return f"{user_prefix(user_id)}{stamp}-{secrets.token_hex(4)}{ext}"

    def upload_image(
        self, user_id: str, filename: str, stream: BinaryIO, size: int
    ) -> UploadResult:
        if not is_valid_image_type(filename):
            raise InvalidArgumentError(
                "invalid file type: only PNG, JPG, JPEG, WebP allowed",
                message="Upload failed",
            )
        if size > self.max_bytes:
            raise InvalidArgumentError(
                f"file too large: max {self.max_bytes // (1024 * 1024)}MB allowed",
                message="Upload failed",
            )

        key = self.build_key(user_id, filename)
        content_type = content_type_for(file_extension(filename))
        try:
            url = self.storage.put_object(key, stream, content_type)
        except StorageError as exc:
            logger.error("Upload of %s failed: %s", key, exc)
            raise UpstreamError(
                "failed to upload image", message="Upload failed"
            ) from exc

        logger.info("Stored %s (%d bytes, %s)", key, size, content_type)
        return UploadResult(url=url, key=key, filename=filename, size=size)

    def _require_owned_key(self, user_id: str, key: str) -> str:
        if not key or not key.startswith(user_prefix(user_id)) or ".." in key:
            raise NotFoundError("image not found", message="Image not found")
        return key

    def delete_image(self, user_id: str, key: str) -> None:
        self._require_owned_key(user_id, key)
        try:
            self.storage.delete_object(key)
        except StorageError as exc:
            logger.error("Delete of %s failed: %s", key, exc)
            raise UpstreamError("failed to delete image") from exc

    def presign_image(self, user_id: str, key: str, expires_in: int = 3600) -> str:
        self._require_owned_key(user_id, key)
        try:
            return self.storage.presign_get(key, expires_in=expires_in)
        except StorageError as exc:
            logger.error("Presign of %s failed: %s", key, exc)
            raise UpstreamError("failed to sign image url") from exc
