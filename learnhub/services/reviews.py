"""Course reviews. One live review per user and course; every write
recomputes ``courses.total_rating`` from the live reviews."""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import Conflict, NotFound
from learnhub.models.base import utcnow
from learnhub.models.orm import Course, Review, User
from learnhub.services.lookups import get_live_course
from learnhub.services.pagination import paginate

logger = logging.getLogger(__name__)


def review_view(r: Review, user: User | None = None) -> dict:
    return {
        "id": r.id,
        "userId": r.user_id,
        "courseId": r.course_id,
        "rating": r.rating,
        "comment": r.comment,
        "userName": user.name if user else None,
        "userAvatar": user.image if user else None,
        "createdAt": r.created_at,
        "updatedAt": r.updated_at,
    }

def refresh_course_rating(db: Session, course_id: UUID) -> Decimal:
    avg = db.scalar(select(func.avg(Review.rating)).where(Review.course_id == course_id, Review.live()))
    rating = Decimal(str(avg or 0)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    course = db.get(Course, course_id)
    course.total_rating = rating
    course.updated_at = utcnow()
    return rating

def _own_review(db: Session, auth: AuthContext, review_id: UUID, action: str) -> Review:
    review = db.scalar(select(Review).where(Review.id == review_id, Review.user_id == auth.user_id, Review.live()))
    if not review:
        raise NotFound(f"Review not found or you don't have permission to {action} it")
    return review


def create_review(db: Session, auth: AuthContext, *, course_id: UUID, rating: Decimal, comment: str | None = None) -> dict:
    get_live_course(db, course_id)
    existing = db.scalar(select(Review.id).where(Review.user_id == auth.user_id, Review.course_id == course_id, Review.live()))
    if existing:
        raise Conflict("You have already reviewed this course")
    review = Review(user_id=auth.user_id, course_id=course_id, rating=rating, comment=comment)
    db.add(review)
    db.flush()
    refresh_course_rating(db, course_id)
    db.commit()
    logger.info("Review %s added to course %s", review.id, course_id)
    return review_view(review, db.get(User, auth.user_id))

def get_review(db: Session, review_id: UUID) -> dict:
    row = db.execute(
        select(Review, User).outerjoin(User, User.id == Review.user_id).where(Review.id == review_id, Review.live())
    ).first()
    if not row:
        raise NotFound("Review not found")
    return review_view(*row)

def list_reviews(db: Session, *, course_id: UUID | None = None, page: int = 1, limit: int = 10) -> dict:
    stmt = select(Review).where(Review.live())
    if course_id:
        stmt = stmt.where(Review.course_id == course_id)
    rows, meta = paginate(db, stmt.order_by(Review.created_at.desc()), page, limit)
    users = {u.id: u for u in db.scalars(select(User).where(User.id.in_({r.user_id for r in rows})))} if rows else {}
    return {"reviews": [review_view(r, users.get(r.user_id)) for r in rows], "pagination": meta}

def update_review(db: Session, auth: AuthContext, review_id: UUID, patch: Mapping[str, Any]) -> dict:
    review = _own_review(db, auth, review_id, "update")
    if patch.get("rating") is not None:
        review.rating = patch["rating"]
    if "comment" in patch:
        review.comment = patch["comment"]
    review.updated_at = utcnow()
    db.flush()
    if patch.get("rating") is not None:
        refresh_course_rating(db, review.course_id)
    db.commit()
    return review_view(review, db.get(User, auth.user_id))

def delete_review(db: Session, auth: AuthContext, review_id: UUID) -> dict:
    review = _own_review(db, auth, review_id, "delete")
    review.soft_delete()
    review.updated_at = utcnow()
    db.flush()
    refresh_course_rating(db, review.course_id)
    db.commit()
    return {"id": review.id, "deletedAt": review.deleted_at}
