import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from learnhub.core.auth import AuthContext
from learnhub.core.errors import Conflict, NotFound, ValidationError
from learnhub.models.orm import Course, LessonFile
from learnhub.services import courses, enrollments, files, lessons, modules, reviews, users, webinars


def test_create_course_needs_price_unless_free(db, storage, admin, build):
    mentor = build.user(role="admin", name="Ada")
    with pytest.raises(ValidationError, match="Price is required"):
        courses.create_course(db, storage, admin, title="Paid", level="advanced", mentor_ids=[mentor.id])
    with pytest.raises(ValidationError, match="mentor"):
        courses.create_course(db, storage, admin, title="Nobody", level="advanced", mentor_ids=[], is_free=True)

    course = courses.create_course(db, storage, admin, title="Paid", level="advanced", mentor_ids=[mentor.id],
                                   price=Decimal("19.99"))
    assert course["price"] == Decimal("19.99")
    assert [m["name"] for m in course["mentors"]] == ["Ada"]

def test_course_thumbnail_must_exist(db, storage, admin, build):
    mentor = build.user()
    with pytest.raises(NotFound, match="Files not found"):
        courses.create_course(db, storage, admin, title="T", level="beginner", mentor_ids=[mentor.id], is_free=True,
                              thumbnail_file_id=uuid.uuid4())
    thumb = build.file("cover.png")
    course = courses.create_course(db, storage, admin, title="T", level="beginner", mentor_ids=[mentor.id],
                                   is_free=True, thumbnail_file_id=thumb.id)
    assert course["thumbnail"].startswith("https://blobs.test/")

def test_update_course_regenerates_slug(db, storage, admin, build):
    course = build.course(title="Old", slug="old")
    updated = courses.update_course(db, storage, admin, course.id, {"title": "Brand New", "is_free": True})
    assert updated["slug"] == "brand-new"

@pytest.mark.parametrize("field", ["title", "level", "status", "is_free", "language"])
def test_update_course_rejects_null_required_fields(db, storage, admin, build, field):
    course = build.course(title="Kept", slug="kept")
    with pytest.raises(ValidationError, match=f"{field} cannot be null"):
        courses.update_course(db, storage, admin, course.id, {field: None})
    db.expire_all()
    assert db.get(Course, course.id).title == "Kept"

def test_update_webinar_rejects_null_schedule(db, storage, admin, build):
    host = build.user(role="admin")
    w = webinars.create_webinar(db, storage, admin, title="Talk", scheduled_at=datetime(2030, 5, 1, tzinfo=timezone.utc),
                                duration=45, instructor_ids=[host.id], is_free=True)
    for field in ("scheduled_at", "duration", "title", "status"):
        with pytest.raises(ValidationError, match=f"{field} cannot be null"):
            webinars.update_webinar(db, storage, admin, w["id"], {field: None})
    assert webinars.update_webinar(db, storage, admin, w["id"], {"description": None})["description"] is None

def test_learners_only_see_published_courses(db, storage, learner, build):
    published = build.course(title="Live one")
    draft = build.course(title="Draft one", status="draft")
    listing = courses.list_courses_user(db, storage, learner)
    assert [c["id"] for c in listing["courses"]] == [published.id]
    with pytest.raises(NotFound):
        courses.get_course_user(db, storage, learner, draft.id)
    assert courses.get_course_admin(db, storage, draft.id)["id"] == draft.id

def test_course_list_filters_and_paginates(db, storage, build):
    for i in range(12):
        build.course(title=f"Python {i}", level="beginner" if i % 2 else "advanced")
    build.course(title="Rust", level="beginner")

    page = courses.list_courses_admin(db, storage, page=2, limit=5, search="python")
    assert page["pagination"] == {"page": 2, "limit": 5, "total": 12, "totalPages": 3}
    assert len(page["courses"]) == 5
    assert courses.list_courses_admin(db, storage, level="beginner")["pagination"]["total"] == 7

def test_user_course_view_hides_answers(db, storage, learner, build):
    course = build.course()
    build.question(build.quiz(build.module(course)))
    detail = courses.get_course_user(db, storage, learner, course.id)
    option = detail["modules"][0]["quizzes"][0]["questions"][0]["options"][0]
    assert "isCorrect" not in option
    assert detail["enrollment"] is None

def test_module_crud(db, storage, admin, build):
    course = build.course()
    created = modules.create_module(db, admin, course_id=course.id, title="Setup", module_order=1)
    modules.update_module(db, admin, created["id"], {"title": "Setup & Tooling", "module_order": 3})
    detail = modules.get_module(db, storage, created["id"])
    assert detail["slug"] == "setup-tooling"
    assert detail["moduleOrder"] == 3
    assert detail["lessons"] == [] and detail["quizzes"] == []
    assert modules.list_modules(db, storage, course.id, search="tool")["pagination"]["total"] == 1
    with pytest.raises(NotFound, match="Course not found"):
        modules.create_module(db, admin, course_id=uuid.uuid4(), title="x", module_order=1)

def test_lesson_files_are_replaced(db, storage, admin, build):
    module = build.module(build.course())
    a, b = build.file("a.pdf"), build.file("b.pdf")
    lesson = lessons.create_lesson(db, storage, admin, module_id=module.id, title="Intro", lesson_type="video",
                                   lesson_order=1, file_ids=[a.id])
    assert [f["originalFilename"] for f in lesson["files"]] == ["a.pdf"]

    updated = lessons.update_lesson(db, storage, admin, lesson["id"], {"file_ids": [b.id], "title": "Intro v2"})
    assert updated["title"] == "Intro v2"
    assert [f["originalFilename"] for f in updated["files"]] == ["b.pdf"]
    links = db.scalars(select(LessonFile).where(LessonFile.lesson_id == lesson["id"])).all()
    assert sorted(l.deleted_at is None for l in links) == [False, True]

    with pytest.raises(NotFound, match="Files not found"):
        lessons.update_lesson(db, storage, admin, lesson["id"], {"file_ids": [uuid.uuid4()]})

def test_watched_and_comments(db, storage, learner, build):
    lesson = build.lesson(build.module(build.course()))
    first = lessons.mark_watched(db, learner, lesson.id, 40)
    again = lessons.mark_watched(db, learner, lesson.id, 10)
    assert again["id"] == first["id"]
    assert again["lastWatchedSeconds"] == 40
    lessons.add_comment(db, learner, lesson.id, "  Nice  ")
    assert [c["commentText"] for c in lessons.get_lesson(db, storage, lesson.id)["comments"]] == ["Nice"]
    with pytest.raises(ValidationError):
        lessons.mark_watched(db, learner, lesson.id, -1)

def test_reviews_update_course_rating(db, learner, build):
    course = build.course()
    other = AuthContext(user_id=build.user().id)
    reviews.create_review(db, learner, course_id=course.id, rating=Decimal("4"))
    r2 = reviews.create_review(db, other, course_id=course.id, rating=Decimal("5"), comment="Great")
    assert db.get(Course, course.id).total_rating == Decimal("4.5")

    with pytest.raises(Conflict, match="already reviewed"):
        reviews.create_review(db, learner, course_id=course.id, rating=Decimal("1"))
    with pytest.raises(NotFound):
        reviews.update_review(db, learner, r2["id"], {"rating": Decimal("1")})

    reviews.delete_review(db, other, r2["id"])
    assert db.get(Course, course.id).total_rating == Decimal("4.0")
    assert reviews.list_reviews(db, course_id=course.id)["pagination"]["total"] == 1

def test_enrollment_is_unique(db, learner, build):
    course = build.course()
    enrollments.enroll(db, learner, course.id)
    with pytest.raises(Conflict, match="Already enrolled"):
        enrollments.enroll(db, learner, course.id)
    assert [e["courseId"] for e in enrollments.list_my_enrollments(db, learner)] == [course.id]

def test_webinar_requires_price(db, storage, admin, build):
    host = build.user(role="admin")
    when = datetime(2030, 5, 1, 15, tzinfo=timezone.utc)
    with pytest.raises(ValidationError, match="Price is required if isFree is false"):
        webinars.create_webinar(db, storage, admin, title="Paid talk", scheduled_at=when, duration=45, instructor_ids=[host.id])
    w = webinars.create_webinar(db, storage, admin, title="Paid talk", scheduled_at=when, duration=45,
                                instructor_ids=[host.id], price=Decimal("10"))
    assert w["slug"] == "paid-talk"
    assert [i["id"] for i in w["instructors"]] == [host.id]
    assert webinars.list_webinars(db, storage, status="upcoming")["pagination"]["total"] == 1

def test_upload_and_fetch_file(db, storage, learner):
    record = files.upload_file(db, storage, learner, b"hello world", "Notes.TXT", "text/plain", "lesson")
    assert record["key"].startswith("lesson/") and record["key"].endswith(".txt")
    assert record["fileSize"] == 11
    assert record["url"].startswith("https://blobs.test/")
    assert files.get_file(db, storage, record["id"])["checksum"] == record["checksum"]
    with pytest.raises(ValidationError, match="empty"):
        files.upload_file(db, storage, learner, b"", "empty.txt")

def test_list_users_filters_by_role(db, admin, learner):
    listing = users.list_users(db, role="admin")
    assert [u["id"] for u in listing["users"]] == [admin.user_id]
    assert users.list_users(db)["pagination"]["total"] == 2
