from fastapi import APIRouter, Depends, Query
from pydantic import Field, constr
from typing import List, Literal, Optional
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.storage import BlobStorage, get_storage
from learnhub.core.auth import AuthContext, get_optional_user, require_admin
from learnhub.services import courses

router = APIRouter()

Level = Literal["beginner", "intermediate", "advanced"]
Status = Literal["published", "on_hold", "draft"]

class CourseCreate(CamelModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    level: Level
    mentor_ids: List[UUID] = Field(min_length=1)
    description: Optional[str] = None
    is_free: bool = False
    price: Optional[Decimal] = Field(default=None, ge=0)
    thumbnail_file_id: Optional[UUID] = None
    language: str = "en"
    status: Status = "draft"

class CourseUpdate(CamelModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    level: Optional[Level] = None
    mentor_ids: Optional[List[UUID]] = Field(default=None, min_length=1)
    description: Optional[str] = None
    is_free: Optional[bool] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    thumbnail_file_id: Optional[UUID] = None
    language: Optional[str] = None
    status: Optional[Status] = None


@router.post("", status_code=201)
def create_course(payload: CourseCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                  storage: BlobStorage = Depends(get_storage)):
    return ok(courses.create_course(db, storage, auth, **payload.model_dump()), "Course created successfully")

@router.get("/admin")
def list_courses_admin(page: int = Query(1, ge=1), limit: int = Query(10, ge=1), search: Optional[str] = None,
                       level: Optional[Level] = None, status: Optional[Status] = None,
                       is_free: Optional[bool] = Query(None, alias="isFree"),
                       auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                       storage: BlobStorage = Depends(get_storage)):
    data = courses.list_courses_admin(db, storage, page=page, limit=limit, search=search, level=level, status=status, is_free=is_free)
    return ok(data, "Courses retrieved successfully")

@router.get("/admin/{course_id}")
def get_course_admin(course_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                     storage: BlobStorage = Depends(get_storage)):
    return ok(courses.get_course_admin(db, storage, course_id), "Course retrieved successfully")

@router.get("")
def list_courses(page: int = Query(1, ge=1), limit: int = Query(10, ge=1), search: Optional[str] = None,
                 level: Optional[Level] = None, is_free: Optional[bool] = Query(None, alias="isFree"),
                 auth: Optional[AuthContext] = Depends(get_optional_user), db: Session = Depends(get_db),
                 storage: BlobStorage = Depends(get_storage)):
    data = courses.list_courses_user(db, storage, auth, page=page, limit=limit, search=search, level=level, is_free=is_free)
    return ok(data, "Courses retrieved successfully")

@router.get("/{course_id}")
def get_course(course_id: UUID, auth: Optional[AuthContext] = Depends(get_optional_user), db: Session = Depends(get_db),
               storage: BlobStorage = Depends(get_storage)):
    return ok(courses.get_course_user(db, storage, auth, course_id), "Course retrieved successfully")

@router.put("/{course_id}")
def update_course(course_id: UUID, payload: CourseUpdate, auth: AuthContext = Depends(require_admin),
                  db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    data = courses.update_course(db, storage, auth, course_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Course updated successfully")

@router.delete("/{course_id}")
def delete_course(course_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                  storage: BlobStorage = Depends(get_storage)):
    return ok(courses.delete_course(db, storage, auth, course_id), "Course deleted successfully")
