"""Cascading soft delete for the course hierarchy.

    course -> module -> lesson -> lesson_files, lesson_comments
                     -> quiz   -> question -> options, answers
                               -> attempts

Deletion happens in two phases:

1. Every row update for the subtree runs in the caller's transaction. Only
   live rows are touched, so repeating a cascade leaves earlier timestamps
   alone.
2. Once the rows are committed, the stored blobs that no live row points at
   any more are deleted one by one. Each ``files`` row is marked deleted only
   after its blob is gone. A failure stops the pass with ``Internal``, and
   running the same delete again picks up the files that are left.
"""
import logging
from datetime import datetime
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from learnhub.core.errors import Internal
from learnhub.core.storage import BlobStorage, StorageError
from learnhub.models.base import utcnow
from learnhub.models.orm import (
    Course, CourseCertificate, CourseWatchedLesson, Enrollment, File, Lesson, LessonComment, LessonFile, Module,
    Quiz, QuizAnswer, QuizAttempt, QuizOption, QuizQuestion, Review, Webinar, WebinarInstructor, WebinarRegistration,
)

logger = logging.getLogger(__name__)

LESSON_FILE_FAILURE = "Failed to delete lesson file from cloud storage"
THUMBNAIL_FAILURE = "Failed to delete thumbnail from cloud storage"


def _soft_delete(db: Session, model, criterion, when: datetime) -> int:
    result = db.execute(
        update(model).where(criterion, model.deleted_at.is_(None)).values(deleted_at=when),
        execution_options={"synchronize_session": "fetch"},
    )
    return result.rowcount or 0

def _ids(db: Session, stmt) -> list[UUID]:
    return list(db.scalars(stmt))


# ---------- row phase ----------

def _cascade_questions(db: Session, question_ids: Sequence[UUID], when: datetime) -> None:
    _soft_delete(db, QuizOption, QuizOption.question_id.in_(question_ids), when)
    _soft_delete(db, QuizAnswer, QuizAnswer.question_id.in_(question_ids), when)
    _soft_delete(db, QuizQuestion, QuizQuestion.id.in_(question_ids), when)

def _cascade_quizzes(db: Session, quiz_ids: Sequence[UUID], when: datetime) -> None:
    question_ids = _ids(db, select(QuizQuestion.id).where(QuizQuestion.quiz_id.in_(quiz_ids)))
    _cascade_questions(db, question_ids, when)
    _soft_delete(db, QuizAttempt, QuizAttempt.quiz_id.in_(quiz_ids), when)
    _soft_delete(db, Quiz, Quiz.id.in_(quiz_ids), when)

def _cascade_lessons(db: Session, lesson_ids: Sequence[UUID], when: datetime) -> None:
    _soft_delete(db, LessonFile, LessonFile.lesson_id.in_(lesson_ids), when)
    _soft_delete(db, LessonComment, LessonComment.lesson_id.in_(lesson_ids), when)
    _soft_delete(db, Lesson, Lesson.id.in_(lesson_ids), when)

def _cascade_modules(db: Session, module_ids: Sequence[UUID], when: datetime) -> None:
    lesson_ids = _ids(db, select(Lesson.id).where(Lesson.module_id.in_(module_ids)))
    _cascade_lessons(db, lesson_ids, when)
    quiz_ids = _ids(db, select(Quiz.id).where(Quiz.module_id.in_(module_ids)))
    _cascade_quizzes(db, quiz_ids, when)
    _soft_delete(db, Module, Module.id.in_(module_ids), when)

def delete_question(db: Session, question: QuizQuestion, when: datetime | None = None) -> None:
    when = when or utcnow()
    question.soft_delete(when)
    _cascade_questions(db, [question.id], when)

def delete_quiz(db: Session, quiz: Quiz, when: datetime | None = None) -> None:
    when = when or utcnow()
    quiz.soft_delete(when)
    _cascade_quizzes(db, [quiz.id], when)


# ---------- blob phase ----------

def _lesson_file_ids(db: Session, lesson_ids: Sequence[UUID]) -> list[UUID]:
    return _ids(db, select(LessonFile.file_id).where(LessonFile.lesson_id.in_(lesson_ids)).distinct())

def _still_referenced(db: Session, file_id: UUID) -> bool:
    checks = (
        select(LessonFile.id).where(LessonFile.file_id == file_id, LessonFile.deleted_at.is_(None)),
        select(Course.id).where(Course.thumbnail_file_id == file_id, Course.deleted_at.is_(None)),
        select(Webinar.id).where(Webinar.thumbnail_file_id == file_id, Webinar.deleted_at.is_(None)),
    )
    return any(db.scalar(stmt.limit(1)) is not None for stmt in checks)

def reclaim_files(db: Session, storage: BlobStorage, file_ids: Iterable[UUID], failure_message: str) -> int:
    """Delete blobs for live, unreferenced files and mark their rows deleted."""
    reclaimed = 0
    for file_id in dict.fromkeys(file_ids):
        record = db.scalar(select(File).where(File.id == file_id, File.deleted_at.is_(None)))
        if record is None or _still_referenced(db, file_id):
            continue
        try:
            storage.delete(record.key)
        except StorageError as exc:
            logger.warning("Blob %s for file %s not deleted: %s", record.key, file_id, exc)
            raise Internal(failure_message) from exc
        record.soft_delete()
        db.commit()
        reclaimed += 1
    return reclaimed


# ---------- roots that own stored files ----------

def delete_lesson(db: Session, storage: BlobStorage, lesson: Lesson) -> int:
    when = utcnow()
    _cascade_lessons(db, [lesson.id], when)
    db.commit()
    return reclaim_files(db, storage, _lesson_file_ids(db, [lesson.id]), LESSON_FILE_FAILURE)

def delete_module(db: Session, storage: BlobStorage, module: Module) -> int:
    when = utcnow()
    _cascade_modules(db, [module.id], when)
    db.commit()
    lesson_ids = _ids(db, select(Lesson.id).where(Lesson.module_id == module.id))
    return reclaim_files(db, storage, _lesson_file_ids(db, lesson_ids), LESSON_FILE_FAILURE)

def delete_course(db: Session, storage: BlobStorage, course: Course) -> int:
    """Soft delete a course and everything under it, then reclaim its blobs.

    Safe to call again on a course that is already deleted, which is how a
    failed blob pass is retried.
    """
    when = utcnow()
    module_ids = _ids(db, select(Module.id).where(Module.course_id == course.id))
    _cascade_modules(db, module_ids, when)

    _soft_delete(db, CourseWatchedLesson, CourseWatchedLesson.course_id == course.id, when)
    _soft_delete(
        db, CourseCertificate,
        CourseCertificate.enrollment_id.in_(select(Enrollment.id).where(Enrollment.course_id == course.id)),
        when,
    )
    _soft_delete(db, Review, Review.course_id == course.id, when)
    course.soft_delete(when)
    db.commit()
    logger.info("Course %s rows deleted (%d modules)", course.id, len(module_ids))

    lesson_ids = _ids(db, select(Lesson.id).where(Lesson.module_id.in_(module_ids)))
    reclaimed = reclaim_files(db, storage, _lesson_file_ids(db, lesson_ids), LESSON_FILE_FAILURE)
    if course.thumbnail_file_id:
        reclaimed += reclaim_files(db, storage, [course.thumbnail_file_id], THUMBNAIL_FAILURE)
    logger.info("Course %s cascade finished, %d blobs reclaimed", course.id, reclaimed)
    return reclaimed

def delete_webinar(db: Session, storage: BlobStorage, webinar: Webinar) -> int:
    when = utcnow()
    _soft_delete(db, WebinarInstructor, WebinarInstructor.webinar_id == webinar.id, when)
    _soft_delete(db, WebinarRegistration, WebinarRegistration.webinar_id == webinar.id, when)
    webinar.soft_delete(when)
    db.commit()
    if webinar.thumbnail_file_id:
        return reclaim_files(db, storage, [webinar.thumbnail_file_id], THUMBNAIL_FAILURE)
    return 0
