import logging
import uuid
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.storage import BlobStorage
from learnhub.models.base import utcnow
from learnhub.models.orm import Lesson, Module, Quiz
from learnhub.services import cascade
from learnhub.services.lessons import lessons_with_files
from learnhub.services.lookups import get_live_course, get_live_module
from learnhub.services.pagination import paginate
from learnhub.services.quizzes import load_questions, quiz_view
from learnhub.services.slug import commit_with_unique_slug, insert_with_unique_slug

logger = logging.getLogger(__name__)


def module_view(m: Module) -> dict:
    return {
        "id": m.id,
        "courseId": m.course_id,
        "title": m.title,
        "slug": m.slug,
        "moduleOrder": m.module_order,
        "createdAt": m.created_at,
        "updatedAt": m.updated_at,
    }

def module_detail(db: Session, storage: BlobStorage, m: Module, include_correct: bool = True) -> dict:
    """Module with its live lessons (and file URLs) and live quizzes."""
    lessons = db.scalars(
        select(Lesson).where(Lesson.module_id == m.id, Lesson.live()).order_by(Lesson.lesson_order, Lesson.created_at)
    ).all()
    quizzes = db.scalars(
        select(Quiz).where(Quiz.module_id == m.id, Quiz.live()).order_by(Quiz.quiz_order, Quiz.created_at)
    ).all()
    questions = load_questions(db, [q.id for q in quizzes])
    return {
        **module_view(m),
        "lessons": lessons_with_files(db, storage, lessons),
        "quizzes": [quiz_view(q, questions[q.id], include_correct) for q in quizzes],
    }

def _live_slugs(db: Session, course_id: UUID, base: str, exclude: UUID | None = None):
    stmt = select(Module.slug).where(Module.course_id == course_id, Module.live(), Module.slug.like(f"{base}%"))
    if exclude is not None:
        stmt = stmt.where(Module.id != exclude)
    return db.scalars(stmt)


def create_module(db: Session, auth: AuthContext, *, course_id: UUID, title: str, module_order: int) -> dict:
    get_live_course(db, course_id)
    module = insert_with_unique_slug(
        db, title,
        lambda base: _live_slugs(db, course_id, base),
        lambda slug: Module(id=uuid.uuid4(), course_id=course_id, title=title, slug=slug, module_order=module_order),
        label="module slug",
    )
    logger.info("Module %s created in course %s", module.id, course_id)
    return module_view(module)

def update_module(db: Session, auth: AuthContext, module_id: UUID, patch: Mapping[str, Any]) -> dict:
    module = get_live_module(db, module_id)
    course_id = module.course_id

    def apply(slug: str | None = None) -> Module:
        if slug:
            module.title = patch["title"]
            module.slug = slug
        if patch.get("module_order") is not None:
            module.module_order = patch["module_order"]
        module.updated_at = utcnow()
        return module

    if patch.get("title"):
        commit_with_unique_slug(
            db, patch["title"],
            lambda base: _live_slugs(db, course_id, base, exclude=module_id),
            apply,
            label="module slug",
        )
    else:
        apply()
        db.commit()
    return module_view(module)

def list_modules(db: Session, storage: BlobStorage, course_id: UUID, *, page: int = 1, limit: int = 10,
                 search: str | None = None) -> dict:
    get_live_course(db, course_id)
    stmt = select(Module).where(Module.course_id == course_id, Module.live())
    if search:
        stmt = stmt.where(Module.title.ilike(f"%{search}%"))
    rows, meta = paginate(db, stmt.order_by(Module.module_order, Module.created_at), page, limit)
    return {"modules": [module_detail(db, storage, m) for m in rows], "pagination": meta}

def get_module(db: Session, storage: BlobStorage, module_id: UUID) -> dict:
    return module_detail(db, storage, get_live_module(db, module_id))

def delete_module(db: Session, storage: BlobStorage, auth: AuthContext, module_id: UUID) -> dict:
    module = get_live_module(db, module_id)
    reclaimed = cascade.delete_module(db, storage, module)
    logger.info("Module %s deleted by %s", module_id, auth.user_id)
    return {"id": module.id, "deletedAt": module.deleted_at, "filesReclaimed": reclaimed}
