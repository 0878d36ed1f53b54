"""Uploaded files: the blob lives in object storage, the row in ``files``."""
import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.config import settings
from learnhub.core.errors import Internal, NotFound, ValidationError
from learnhub.core.storage import BlobStorage, StorageError
from learnhub.models.orm import File

logger = logging.getLogger(__name__)


def file_view(f: File, url: str | None = None) -> dict:
    return {
        "id": f.id,
        "key": f.key,
        "originalFilename": f.original_filename,
        "mimeType": f.mime_type,
        "fileSize": f.file_size,
        "checksum": f.checksum,
        "documentType": f.document_type,
        "uploadedAt": f.uploaded_at,
        "url": url,
    }

def signed_url(storage: BlobStorage, f: File | None) -> str | None:
    """Signed download URL for a live file, ``None`` for a missing or deleted one."""
    if f is None or f.deleted_at is not None:
        return None
    try:
        return storage.get_signed_url(f.key, settings.SIGNED_URL_TTL_SECONDS)
    except StorageError as exc:
        raise Internal("Failed to generate file URL") from exc

def url_for(db: Session, storage: BlobStorage, file_id: UUID | None) -> str | None:
    if not file_id:
        return None
    return signed_url(storage, db.get(File, file_id))

def upload_file(db: Session, storage: BlobStorage, auth: AuthContext, data: bytes, filename: str,
                content_type: str | None = None, document_type: str | None = None) -> dict:
    if not data:
        raise ValidationError("File is empty")
    if len(data) > settings.MAX_UPLOAD_SIZE:
        raise ValidationError(f"File exceeds the {settings.MAX_UPLOAD_SIZE} byte limit")
    try:
        blob = storage.upload(data, filename, content_type, prefix=document_type or "documents")
    except StorageError as exc:
        raise Internal("Failed to upload file to cloud storage") from exc

    record = File(
        key=blob.key,
        original_filename=blob.original_filename,
        stored_filename=blob.stored_filename,
        file_size=blob.size,
        mime_type=blob.mime_type,
        checksum=blob.checksum,
        document_type=document_type,
        user_id=auth.user_id,
        uploaded_at=blob.uploaded_at,
    )
    db.add(record)
    db.commit()
    logger.info("File %s uploaded by %s as %s", record.id, auth.user_id, record.key)
    return file_view(record, signed_url(storage, record))

def get_file(db: Session, storage: BlobStorage, file_id: UUID) -> dict:
    record = db.scalar(select(File).where(File.id == file_id, File.live()))
    if not record:
        raise NotFound("File not found")
    return file_view(record, signed_url(storage, record))

def ensure_live_files(db: Session, file_ids: Sequence[UUID]) -> None:
    if not file_ids:
        return
    found = set(db.scalars(select(File.id).where(File.id.in_(file_ids), File.live())))
    missing = [str(fid) for fid in file_ids if fid not in found]
    if missing:
        raise NotFound(f"Files not found: {', '.join(missing)}")
