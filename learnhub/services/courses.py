"""Course catalogue: authoring, admin and learner views, and course deletion."""
import logging
import uuid
from decimal import Decimal
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import NotFound, ValidationError
from learnhub.core.storage import BlobStorage
from learnhub.models.base import utcnow
from learnhub.models.orm import Course, CourseMentor, Enrollment, Module, User
from learnhub.services import cascade
from learnhub.services.files import ensure_live_files, url_for
from learnhub.services.lookups import get_live_course
from learnhub.services.modules import module_detail
from learnhub.services.pagination import paginate
from learnhub.services.slug import commit_with_unique_slug, insert_with_unique_slug

logger = logging.getLogger(__name__)

COURSE_FIELDS = ("title", "description", "is_free", "price", "thumbnail_file_id", "level", "language", "status")
REQUIRED_FIELDS = ("title", "is_free", "level", "language", "status")


def _mentors(db: Session, course_id: UUID) -> list[dict]:
    rows = db.execute(
        select(CourseMentor, User.name, User.image)
        .outerjoin(User, User.id == CourseMentor.mentor_id)
        .where(CourseMentor.course_id == course_id)
        .order_by(CourseMentor.created_at)
    ).all()
    return [{"id": m.id, "mentorId": m.mentor_id, "name": name, "avatar": image} for m, name, image in rows]

def _enrolled_count(db: Session, course_id: UUID) -> int:
    return db.scalar(select(func.count(Enrollment.id)).where(Enrollment.course_id == course_id)) or 0

def _enrollment(db: Session, course_id: UUID, user_id: UUID) -> dict | None:
    e = db.scalar(select(Enrollment).where(Enrollment.course_id == course_id, Enrollment.user_id == user_id))
    return {"id": e.id, "enrolledAt": e.enrolled_at} if e else None

def course_view(db: Session, storage: BlobStorage, c: Course) -> dict:
    return {
        "id": c.id,
        "title": c.title,
        "slug": c.slug,
        "description": c.description,
        "isFree": c.is_free,
        "price": c.price,
        "thumbnail": url_for(db, storage, c.thumbnail_file_id),
        "level": c.level,
        "language": c.language,
        "status": c.status,
        "totalRating": c.total_rating,
        "createdAt": c.created_at,
        "updatedAt": c.updated_at,
    }

def _check_price(is_free: bool, price: Decimal | None) -> None:
    if not is_free and price is None:
        raise ValidationError("Price is required if isFree is false")

# ---------- authoring ----------

def create_course(db: Session, storage: BlobStorage, auth: AuthContext, *, title: str, level: str,
                  mentor_ids: Sequence[UUID], description: str | None = None, is_free: bool = False,
                  price: Decimal | None = None, thumbnail_file_id: UUID | None = None, language: str = "en",
                  status: str = "draft") -> dict:
    if not mentor_ids:
        raise ValidationError("At least one mentor is required")
    _check_price(is_free, price)
    if thumbnail_file_id:
        ensure_live_files(db, [thumbnail_file_id])

    def existing(base: str):
        return db.scalars(select(Course.slug).where(Course.slug.like(f"{base}%")))

    def build(slug: str) -> Course:
        course = Course(
            id=uuid.uuid4(), title=title, slug=slug, description=description, is_free=is_free,
            price=None if is_free else price, thumbnail_file_id=thumbnail_file_id, level=level,
            language=language, status=status,
        )
        db.add_all(CourseMentor(course_id=course.id, mentor_id=m) for m in dict.fromkeys(mentor_ids))
        return course

    course = insert_with_unique_slug(db, title, existing, build, label="course slug")
    logger.info("Course %s (%s) created by %s", course.id, course.slug, auth.user_id)
    return {**course_view(db, storage, course), "enrolledCount": 0, "mentors": _mentors(db, course.id)}

def update_course(db: Session, storage: BlobStorage, auth: AuthContext, course_id: UUID, patch: Mapping[str, Any]) -> dict:
    course = get_live_course(db, course_id)
    for field in REQUIRED_FIELDS:
        if field in patch and patch[field] is None:
            raise ValidationError(f"{field} cannot be null")
    if patch.get("thumbnail_file_id"):
        ensure_live_files(db, [patch["thumbnail_file_id"]])

    def apply(slug: str | None = None) -> Course:
        for field in COURSE_FIELDS:
            if field in patch:
                setattr(course, field, patch[field])
        _check_price(course.is_free, course.price)
        if course.is_free:
            course.price = None
        if slug:
            course.slug = slug
        if patch.get("mentor_ids"):
            db.execute(delete(CourseMentor).where(CourseMentor.course_id == course.id))
            db.add_all(CourseMentor(course_id=course.id, mentor_id=m) for m in dict.fromkeys(patch["mentor_ids"]))
        course.updated_at = utcnow()
        return course

    if patch.get("title"):
        commit_with_unique_slug(
            db, patch["title"],
            lambda base: db.scalars(select(Course.slug).where(Course.slug.like(f"{base}%"), Course.id != course_id)),
            apply,
            label="course slug",
        )
    else:
        apply()
        db.commit()
    return {**course_view(db, storage, course), "mentors": _mentors(db, course.id)}

def delete_course(db: Session, storage: BlobStorage, auth: AuthContext, course_id: UUID) -> dict:
    # deleted courses are still looked up so a failed blob pass can be re-run
    course = db.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    reclaimed = cascade.delete_course(db, storage, course)
    logger.info("Course %s deleted by %s", course_id, auth.user_id)
    return {"id": course.id, "deletedAt": course.deleted_at, "filesReclaimed": reclaimed}


# ---------- reads ----------

def _modules(db: Session, storage: BlobStorage, course_id: UUID, include_correct: bool) -> list[dict]:
    modules = db.scalars(
        select(Module).where(Module.course_id == course_id, Module.live()).order_by(Module.module_order, Module.created_at)
    )
    return [module_detail(db, storage, m, include_correct=include_correct) for m in modules]

def get_course_admin(db: Session, storage: BlobStorage, course_id: UUID) -> dict:
    course = get_live_course(db, course_id)
    return {
        **course_view(db, storage, course),
        "enrolledCount": _enrolled_count(db, course.id),
        "mentors": _mentors(db, course.id),
        "modules": _modules(db, storage, course.id, include_correct=True),
    }

def get_course_user(db: Session, storage: BlobStorage, auth: AuthContext | None, course_id: UUID) -> dict:
    course = db.scalar(select(Course).where(Course.id == course_id, Course.live(), Course.status == "published"))
    if not course:
        raise NotFound("Course not found")
    return {
        **course_view(db, storage, course),
        "mentors": _mentors(db, course.id),
        "modules": _modules(db, storage, course.id, include_correct=False),
        "enrollment": _enrollment(db, course.id, auth.user_id) if auth else None,
    }

def _filtered(search: str | None, level: str | None, status: str | None, is_free: bool | None):
    stmt = select(Course).where(Course.live())
    if search:
        stmt = stmt.where(Course.title.ilike(f"%{search}%"))
    if level:
        stmt = stmt.where(Course.level == level)
    if status:
        stmt = stmt.where(Course.status == status)
    if is_free is not None:
        stmt = stmt.where(Course.is_free == is_free)
    return stmt.order_by(Course.created_at.desc())

def list_courses_admin(db: Session, storage: BlobStorage, *, page: int = 1, limit: int = 10, search: str | None = None,
                       level: str | None = None, status: str | None = None, is_free: bool | None = None) -> dict:
    rows, meta = paginate(db, _filtered(search, level, status, is_free), page, limit)
    courses = [{**course_view(db, storage, c), "enrolledCount": _enrolled_count(db, c.id)} for c in rows]
    return {"courses": courses, "pagination": meta}

def list_courses_user(db: Session, storage: BlobStorage, auth: AuthContext | None, *, page: int = 1, limit: int = 10,
                      search: str | None = None, level: str | None = None, is_free: bool | None = None) -> dict:
    rows, meta = paginate(db, _filtered(search, level, "published", is_free), page, limit)
    courses = [
        {**course_view(db, storage, c), "enrollment": _enrollment(db, c.id, auth.user_id) if auth else None}
        for c in rows
    ]
    return {"courses": courses, "pagination": meta}
