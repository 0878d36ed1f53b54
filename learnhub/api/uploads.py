from fastapi import APIRouter, Depends, File, Form, UploadFile
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import ok
from learnhub.core.database import get_db
from learnhub.core.storage import BlobStorage, get_storage
from learnhub.core.auth import AuthContext, get_current_user
from learnhub.services import files

router = APIRouter()

@router.post("", status_code=201)
async def upload(file: UploadFile = File(...), document_type: Optional[str] = Form(None, alias="documentType"),
                 auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db),
                 storage: BlobStorage = Depends(get_storage)):
    data = await file.read()
    record = files.upload_file(db, storage, auth, data, file.filename or "upload", file.content_type, document_type)
    return ok(record, "File uploaded successfully")

@router.get("/{file_id}")
def get_file(file_id: UUID, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db),
             storage: BlobStorage = Depends(get_storage)):
    return ok(files.get_file(db, storage, file_id), "File retrieved successfully")
