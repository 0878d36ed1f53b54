from fastapi import APIRouter, Depends
from pydantic import Field, constr
from typing import List, Literal, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.storage import BlobStorage, get_storage
from learnhub.core.auth import AuthContext, get_current_user, require_admin
from learnhub.services import lessons

router = APIRouter()

LessonType = Literal["video", "pdf", "file", "audio", "text", "quiz"]

class LessonCreate(CamelModel):
    module_id: UUID
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    lesson_type: LessonType
    lesson_order: int = Field(gt=0)
    description: Optional[str] = None
    file_ids: List[UUID] = []

class LessonUpdate(CamelModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    lesson_type: Optional[LessonType] = None
    lesson_order: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None
    file_ids: Optional[List[UUID]] = None

class WatchedIn(CamelModel):
    last_watched_seconds: int = Field(default=0, ge=0)

class CommentIn(CamelModel):
    comment_text: constr(strip_whitespace=True, min_length=1)


@router.post("", status_code=201)
def create_lesson(payload: LessonCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                  storage: BlobStorage = Depends(get_storage)):
    return ok(lessons.create_lesson(db, storage, auth, **payload.model_dump()), "Lesson created successfully")

@router.get("/{lesson_id}")
def get_lesson(lesson_id: UUID, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db),
               storage: BlobStorage = Depends(get_storage)):
    return ok(lessons.get_lesson(db, storage, lesson_id), "Lesson retrieved successfully")

@router.put("/{lesson_id}")
def update_lesson(lesson_id: UUID, payload: LessonUpdate, auth: AuthContext = Depends(require_admin),
                  db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    data = lessons.update_lesson(db, storage, auth, lesson_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Lesson updated successfully")

@router.delete("/{lesson_id}")
def delete_lesson(lesson_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                  storage: BlobStorage = Depends(get_storage)):
    return ok(lessons.delete_lesson(db, storage, auth, lesson_id), "Lesson deleted successfully")

@router.post("/{lesson_id}/watched")
def mark_watched(lesson_id: UUID, payload: Optional[WatchedIn] = None, auth: AuthContext = Depends(get_current_user),
                 db: Session = Depends(get_db)):
    seconds = payload.last_watched_seconds if payload else 0
    return ok(lessons.mark_watched(db, auth, lesson_id, seconds), "Lesson marked as watched")

@router.post("/{lesson_id}/comments", status_code=201)
def add_comment(lesson_id: UUID, payload: CommentIn, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(lessons.add_comment(db, auth, lesson_id, payload.comment_text), "Comment added successfully")
