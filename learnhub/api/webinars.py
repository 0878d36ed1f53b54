from fastapi import APIRouter, Depends, Query
from pydantic import Field, constr
from typing import List, Literal, Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.storage import BlobStorage, get_storage
from learnhub.core.auth import AuthContext, require_admin
from learnhub.services import webinars

router = APIRouter()

Status = Literal["upcoming", "live", "completed"]

class WebinarCreate(CamelModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    scheduled_at: datetime
    duration: int = Field(gt=0)
    instructor_ids: List[UUID] = Field(min_length=1)
    description: Optional[str] = None
    is_free: bool = False
    price: Optional[Decimal] = Field(default=None, ge=0)
    thumbnail_file_id: Optional[UUID] = None
    live_link: Optional[str] = None
    status: Status = "upcoming"

class WebinarUpdate(CamelModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    instructor_ids: Optional[List[UUID]] = None
    description: Optional[str] = None
    is_free: Optional[bool] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    thumbnail_file_id: Optional[UUID] = None
    live_link: Optional[str] = None
    status: Optional[Status] = None


@router.post("", status_code=201)
def create_webinar(payload: WebinarCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                   storage: BlobStorage = Depends(get_storage)):
    return ok(webinars.create_webinar(db, storage, auth, **payload.model_dump()), "Webinar created successfully")

@router.get("")
def list_webinars(page: int = Query(1, ge=1), limit: int = Query(10, ge=1), status: Optional[Status] = None,
                  search: Optional[str] = None, db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    data = webinars.list_webinars(db, storage, page=page, limit=limit, status=status, search=search)
    return ok(data, "Webinars retrieved successfully")

@router.get("/{webinar_id}")
def get_webinar(webinar_id: UUID, db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    return ok(webinars.get_webinar(db, storage, webinar_id), "Webinar retrieved successfully")

@router.put("/{webinar_id}")
def update_webinar(webinar_id: UUID, payload: WebinarUpdate, auth: AuthContext = Depends(require_admin),
                   db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    data = webinars.update_webinar(db, storage, auth, webinar_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Webinar updated successfully")

@router.delete("/{webinar_id}")
def delete_webinar(webinar_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                   storage: BlobStorage = Depends(get_storage)):
    return ok(webinars.delete_webinar(db, storage, auth, webinar_id), "Webinar deleted successfully")
