"""
Storage abstraction for S3-compatible object stores and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import BinaryIO, Optional, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError


class StorageError(Exception):
    """Raised when the object store rejects or fails an operation."""


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def put_object(self, key: str, body: BinaryIO, content_type: str) -> str:
        ...

    def delete_object(self, key: str) -> None:
        ...

    def public_url(self, key: str) -> str:
        ...

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)
    content_types: dict = field(default_factory=dict)

    def put_object(self, key: str, body: BinaryIO, content_type: str) -> str:
        self.stored_objects[key] = body.read()
        self.content_types[key] = content_type
        return self.public_url(key)

    def delete_object(self, key: str) -> None:
        self.stored_objects.pop(key, None)
        self.content_types.pop(key, None)

    def public_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key, safe='/')}"

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.public_url(key)}?op=get&expires={expires_in}"


@dataclass
class S3StorageClient:
    """
    S3-compatible storage client.

    A custom ``endpoint`` (MinIO, LocalStack) switches to path-style
    addressing; without one the regular AWS virtual-hosted endpoint is used.
    """

    bucket: str
    region: str
    access_key_id: str = ""
    secret_access_key: str = ""
    endpoint: Optional[str] = None
    public_base_url: Optional[str] = None

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "path" if self.endpoint else "virtual"},
            signature_version="s3v4",
            connect_timeout=10,
            read_timeout=60,
            retries={"max_attempts": 1},
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )

    def put_object(self, key: str, body: BinaryIO, content_type: str) -> str:
        try:
            self._client.upload_fileobj(
                body,
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to upload {key}: {exc}") from exc
        return self.public_url(key)

    def delete_object(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to delete {key}: {exc}") from exc

    def public_url(self, key: str) -> str:
        path = quote(key, safe="/")
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{path}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{path}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{path}"

    def presign_get(self, key: str, expires_in: int = 3600) -> str:
        try:
            return self._client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"failed to presign {key}: {exc}") from exc
