import logging
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import ValidationError
from learnhub.core.storage import BlobStorage
from learnhub.models.base import utcnow
from learnhub.models.orm import CourseWatchedLesson, File, Lesson, LessonComment, LessonFile, Module
from learnhub.services import cascade
from learnhub.services.files import ensure_live_files, file_view, signed_url
from learnhub.services.lookups import get_live_lesson, get_live_module

logger = logging.getLogger(__name__)

LESSON_FIELDS = ("title", "description", "lesson_type", "lesson_order")


def lesson_view(l: Lesson) -> dict:
    return {
        "id": l.id,
        "moduleId": l.module_id,
        "title": l.title,
        "description": l.description,
        "lessonType": l.lesson_type,
        "lessonOrder": l.lesson_order,
        "uploadedBy": l.uploaded_by,
        "createdAt": l.created_at,
        "updatedAt": l.updated_at,
    }

def lessons_with_files(db: Session, storage: BlobStorage, lessons: Sequence[Lesson]) -> list[dict]:
    """Lesson views with their live files, each carrying a signed URL."""
    ids = [l.id for l in lessons]
    files: dict[UUID, list[dict]] = {lid: [] for lid in ids}
    if ids:
        rows = db.execute(
            select(LessonFile.lesson_id, File)
            .join(File, File.id == LessonFile.file_id)
            .where(LessonFile.lesson_id.in_(ids), LessonFile.live(), File.live())
            .order_by(LessonFile.created_at)
        ).all()
        for lesson_id, f in rows:
            files[lesson_id].append(file_view(f, signed_url(storage, f)))
    return [{**lesson_view(l), "files": files[l.id]} for l in lessons]

def _attach_files(db: Session, lesson_id: UUID, file_ids: Sequence[UUID]) -> None:
    db.add_all(LessonFile(lesson_id=lesson_id, file_id=fid) for fid in dict.fromkeys(file_ids))


def create_lesson(db: Session, storage: BlobStorage, auth: AuthContext, *, module_id: UUID, title: str,
                  lesson_type: str, lesson_order: int, description: str | None = None,
                  file_ids: Sequence[UUID] = ()) -> dict:
    get_live_module(db, module_id)
    ensure_live_files(db, file_ids)
    lesson = Lesson(module_id=module_id, title=title, description=description, lesson_type=lesson_type,
                    lesson_order=lesson_order, uploaded_by=auth.user_id)
    db.add(lesson)
    db.flush()
    _attach_files(db, lesson.id, file_ids)
    db.commit()
    logger.info("Lesson %s created in module %s with %d files", lesson.id, module_id, len(file_ids))
    return lessons_with_files(db, storage, [lesson])[0]

def update_lesson(db: Session, storage: BlobStorage, auth: AuthContext, lesson_id: UUID, patch: Mapping[str, Any]) -> dict:
    """Patch lesson fields; ``file_ids``, when present, replaces the attached files."""
    lesson = get_live_lesson(db, lesson_id)
    file_ids = patch.get("file_ids")
    if file_ids:
        ensure_live_files(db, file_ids)
    for field in LESSON_FIELDS:
        if patch.get(field) is not None:
            setattr(lesson, field, patch[field])
    if "description" in patch:
        lesson.description = patch["description"]
    lesson.updated_at = utcnow()

    if file_ids is not None:
        now = utcnow()
        for link in db.scalars(select(LessonFile).where(LessonFile.lesson_id == lesson.id, LessonFile.live())):
            link.soft_delete(now)
        _attach_files(db, lesson.id, file_ids)
    db.commit()
    return lessons_with_files(db, storage, [lesson])[0]

def get_lesson(db: Session, storage: BlobStorage, lesson_id: UUID) -> dict:
    lesson = get_live_lesson(db, lesson_id)
    comments = db.scalars(
        select(LessonComment).where(LessonComment.lesson_id == lesson.id, LessonComment.live()).order_by(LessonComment.created_at)
    )
    return {**lessons_with_files(db, storage, [lesson])[0], "comments": [comment_view(c) for c in comments]}

def delete_lesson(db: Session, storage: BlobStorage, auth: AuthContext, lesson_id: UUID) -> dict:
    lesson = get_live_lesson(db, lesson_id)
    reclaimed = cascade.delete_lesson(db, storage, lesson)
    logger.info("Lesson %s deleted by %s", lesson_id, auth.user_id)
    return {"id": lesson.id, "deletedAt": lesson.deleted_at, "filesReclaimed": reclaimed}


# ---------- learner activity ----------

def mark_watched(db: Session, auth: AuthContext, lesson_id: UUID, last_watched_seconds: int = 0) -> dict:
    """Record (or refresh) that the caller watched a lesson; this is what opens gated quizzes."""
    lesson = get_live_lesson(db, lesson_id)
    if last_watched_seconds < 0:
        raise ValidationError("lastWatchedSeconds must not be negative")
    module = db.get(Module, lesson.module_id)
    row = db.scalar(select(CourseWatchedLesson).where(
        CourseWatchedLesson.user_id == auth.user_id,
        CourseWatchedLesson.lesson_id == lesson.id,
        CourseWatchedLesson.live(),
    ))
    if row is None:
        row = CourseWatchedLesson(course_id=module.course_id, module_id=module.id, lesson_id=lesson.id, user_id=auth.user_id)
        db.add(row)
    row.last_watched_seconds = max(row.last_watched_seconds or 0, last_watched_seconds)
    row.watched_at = utcnow()
    db.commit()
    return {
        "id": row.id,
        "lessonId": row.lesson_id,
        "moduleId": row.module_id,
        "courseId": row.course_id,
        "lastWatchedSeconds": row.last_watched_seconds,
        "watchedAt": row.watched_at,
    }

def comment_view(c: LessonComment) -> dict:
    return {"id": c.id, "lessonId": c.lesson_id, "userId": c.user_id, "commentText": c.comment_text, "createdAt": c.created_at}

def add_comment(db: Session, auth: AuthContext, lesson_id: UUID, comment_text: str) -> dict:
    get_live_lesson(db, lesson_id)
    if not comment_text.strip():
        raise ValidationError("Comment text is required")
    comment = LessonComment(lesson_id=lesson_id, user_id=auth.user_id, comment_text=comment_text.strip())
    db.add(comment)
    db.commit()
    return comment_view(comment)
