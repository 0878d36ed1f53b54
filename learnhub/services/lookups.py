"""Fetch one live row by id or raise ``NotFound``."""
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.errors import NotFound
from learnhub.models.orm import Course, Lesson, Module, Quiz, QuizQuestion


def _live(db: Session, model, row_id: UUID, message: str):
    row = db.scalar(select(model).where(model.id == row_id, model.deleted_at.is_(None)))
    if row is None:
        raise NotFound(message)
    return row

def get_live_course(db: Session, course_id: UUID) -> Course:
    return _live(db, Course, course_id, "Course not found")

def get_live_module(db: Session, module_id: UUID) -> Module:
    return _live(db, Module, module_id, "Module not found")

def get_live_lesson(db: Session, lesson_id: UUID) -> Lesson:
    return _live(db, Lesson, lesson_id, "Lesson not found")

def get_live_quiz(db: Session, quiz_id: UUID) -> Quiz:
    return _live(db, Quiz, quiz_id, "Quiz not found")

def get_live_question(db: Session, question_id: UUID) -> QuizQuestion:
    return _live(db, QuizQuestion, question_id, "Question not found")
