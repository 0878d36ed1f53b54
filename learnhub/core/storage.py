"""S3-compatible blob storage used for uploaded course material.

The service only needs three operations: put bytes under a fresh key, mint a
time-limited download URL, and remove a key. ``BlobStorage`` names that
surface; ``S3BlobStorage`` implements it against S3, Cloudflare R2 or MinIO.
"""
import hashlib
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from learnhub.core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the blob store rejects or fails an operation."""


@dataclass
class StoredBlob:
    key: str
    original_filename: str
    stored_filename: str
    mime_type: str
    size: int
    checksum: str
    uploaded_at: datetime


class BlobStorage(Protocol):
    def upload(self, data: bytes, filename: str, content_type: str | None = None, prefix: str = "documents") -> StoredBlob: ...

    def get_signed_url(self, key: str, ttl: int | None = None) -> str: ...

    def delete(self, key: str) -> None: ...


def build_key(filename: str, prefix: str = "documents") -> tuple[str, str]:
    """Return (key, stored_filename) for a new object; the original name only contributes its extension."""
    ext = ""
    if "." in filename:
        ext = "." + filename.rsplit(".", 1)[1].lower()
    stored = f"{uuid.uuid4().hex}{ext}"
    return f"{prefix}/{datetime.now(timezone.utc):%Y/%m}/{stored}", stored


def describe(data: bytes, filename: str, content_type: str | None, prefix: str) -> StoredBlob:
    key, stored = build_key(filename, prefix)
    mime = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return StoredBlob(
        key=key,
        original_filename=filename,
        stored_filename=stored,
        mime_type=mime,
        size=len(data),
        checksum=hashlib.sha256(data).hexdigest(),
        uploaded_at=datetime.now(timezone.utc),
    )


class S3BlobStorage:
    """Thin client around boto3 S3 for put, presign and delete."""

    def __init__(self, client=None, bucket: str | None = None) -> None:
        self.bucket = bucket or settings.S3_BUCKET_NAME
        if client is None:
            secret = settings.S3_SECRET_ACCESS_KEY.get_secret_value() if settings.S3_SECRET_ACCESS_KEY else None
            client = boto3.client(
                "s3",
                endpoint_url=settings.S3_ENDPOINT_URL,
                aws_access_key_id=settings.S3_ACCESS_KEY_ID,
                aws_secret_access_key=secret,
                config=BotoConfig(signature_version="s3v4"),
                region_name=settings.S3_REGION,
            )
        self._client = client

    def upload(self, data: bytes, filename: str, content_type: str | None = None, prefix: str = "documents") -> StoredBlob:
        blob = describe(data, filename, content_type, prefix)
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=blob.key,
                Body=data,
                ContentType=blob.mime_type,
                Metadata={"original-filename": filename, "sha256": blob.checksum},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"upload of {blob.key} failed: {exc}") from exc
        logger.info("Stored blob %s (%d bytes)", blob.key, blob.size)
        return blob

    def get_signed_url(self, key: str, ttl: int | None = None) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl or settings.SIGNED_URL_TTL_SECONDS,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"signing {key} failed: {exc}") from exc

    def delete(self, key: str) -> None:
        # S3 DeleteObject succeeds for keys that are already gone
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"delete of {key} failed: {exc}") from exc
        logger.info("Deleted blob %s", key)


_storage: BlobStorage | None = None


def get_storage() -> BlobStorage:
    """FastAPI dependency returning the process-wide storage client."""
    global _storage
    if _storage is None:
        _storage = S3BlobStorage()
    return _storage
