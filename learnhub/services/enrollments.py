import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import Conflict
from learnhub.models.orm import Course, Enrollment
from learnhub.services.lookups import get_live_course

logger = logging.getLogger(__name__)


def enrollment_view(e: Enrollment, course: Course | None = None) -> dict:
    view = {"id": e.id, "userId": e.user_id, "courseId": e.course_id, "enrolledAt": e.enrolled_at}
    if course is not None:
        view["course"] = {"id": course.id, "title": course.title, "slug": course.slug}
    return view

def enroll(db: Session, auth: AuthContext, course_id: UUID) -> dict:
    course = get_live_course(db, course_id)
    enrollment = Enrollment(user_id=auth.user_id, course_id=course.id)
    db.add(enrollment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("Already enrolled in this course")
    logger.info("User %s enrolled in course %s", auth.user_id, course_id)
    return enrollment_view(enrollment, course)

def list_my_enrollments(db: Session, auth: AuthContext) -> list[dict]:
    rows = db.execute(
        select(Enrollment, Course)
        .join(Course, Course.id == Enrollment.course_id)
        .where(Enrollment.user_id == auth.user_id, Course.live())
        .order_by(Enrollment.enrolled_at.desc())
    ).all()
    return [enrollment_view(e, c) for e, c in rows]
