import uuid
from datetime import datetime
from decimal import Decimal
from sqlalchemy import (
    Boolean, DateTime, Enum, ForeignKey, Index, Integer, BigInteger, Numeric, String, Text, UniqueConstraint, Uuid, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from learnhub.models.base import Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, utcnow

COURSE_LEVELS = ("beginner", "intermediate", "advanced")
COURSE_STATUSES = ("published", "on_hold", "draft")
LESSON_TYPES = ("video", "pdf", "file", "audio", "text", "quiz")
WEBINAR_STATUSES = ("upcoming", "live", "completed")
USER_ROLES = ("user", "admin", "super_admin")

# ---------- identity & files ----------

class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "users"
    name: Mapped[str] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), unique=True)
    image: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(Enum(*USER_ROLES, name="user_role"), default="user")
    banned: Mapped[bool] = mapped_column(Boolean, default=False)

class File(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "files"
    key: Mapped[str] = mapped_column(String(512), unique=True)
    original_filename: Mapped[str] = mapped_column(String(255))
    stored_filename: Mapped[str] = mapped_column(String(255))
    file_size: Mapped[int] = mapped_column(BigInteger)
    mime_type: Mapped[str] = mapped_column(String(127))
    checksum: Mapped[str | None] = mapped_column(String(64), nullable=True)
    document_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

# ---------- courses ----------

class Course(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "courses"
    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_free: Mapped[bool] = mapped_column(Boolean, default=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    thumbnail_file_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("files.id", ondelete="SET NULL"), nullable=True)
    level: Mapped[str] = mapped_column(Enum(*COURSE_LEVELS, name="course_level"))
    total_rating: Mapped[Decimal] = mapped_column(Numeric(2, 1), default=Decimal("0"))
    language: Mapped[str] = mapped_column(String(10), default="en")
    status: Mapped[str] = mapped_column(Enum(*COURSE_STATUSES, name="course_status"), default="draft")

class CourseMentor(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "course_mentors"
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    mentor_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class Enrollment(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("user_id", "course_id", name="uq_enrollments_user_course"),)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    enrolled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class CourseWatchedLesson(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "course_watched_lessons"
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    module_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("modules.id", ondelete="CASCADE"))
    lesson_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    last_watched_seconds: Mapped[int] = mapped_column(Integer, default=0)
    watched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class CourseCertificate(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "course_certificates"
    enrollment_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("enrollments.id", ondelete="CASCADE"), index=True)
    certificate_number: Mapped[str] = mapped_column(String(64), unique=True)
    certificate_file_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("files.id", ondelete="SET NULL"), nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class Review(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "reviews"
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True)
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    rating: Mapped[Decimal] = mapped_column(Numeric(2, 1))
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

# ---------- modules & lessons ----------

class Module(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "modules"
    __table_args__ = (
        Index(
            "uq_modules_course_slug_live", "course_id", "slug", unique=True,
            postgresql_where=text("deleted_at IS NULL"), sqlite_where=text("deleted_at IS NULL"),
        ),
    )
    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255))
    module_order: Mapped[int] = mapped_column(Integer)

class Lesson(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "lessons"
    module_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("modules.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    lesson_type: Mapped[str] = mapped_column(Enum(*LESSON_TYPES, name="lesson_type"))
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    lesson_order: Mapped[int] = mapped_column(Integer)

class LessonFile(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "lesson_files"
    lesson_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), index=True)
    file_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("files.id", ondelete="CASCADE"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class LessonComment(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "lesson_comments"
    lesson_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("lessons.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    comment_text: Mapped[str] = mapped_column(Text)

# ---------- quizzes ----------

class Quiz(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "quizzes"
    module_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("modules.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255))
    instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    quiz_order: Mapped[int] = mapped_column(Integer)
    unlock_after_lesson_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True)

class QuizQuestion(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "quiz_questions"
    quiz_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    question_text: Mapped[str] = mapped_column(Text)
    question_order: Mapped[int] = mapped_column(Integer)

class QuizOption(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "quiz_options"
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quiz_questions.id", ondelete="CASCADE"), index=True)
    option_text: Mapped[str] = mapped_column(Text)
    is_correct: Mapped[bool] = mapped_column(Boolean, default=False)

class QuizAttempt(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("quiz_id", "user_id", "attempt_number", name="uq_quiz_attempt_number"),
        Index("ix_quiz_attempts_quiz_user", "quiz_id", "user_id"),
    )
    quiz_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quizzes.id", ondelete="CASCADE"))
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    score: Mapped[Decimal | None] = mapped_column(Numeric(5, 2), nullable=True)
    attempt_number: Mapped[int] = mapped_column(Integer)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

class QuizAnswer(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "quiz_answers"
    attempt_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quiz_attempts.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    question_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quiz_questions.id", ondelete="CASCADE"), index=True)
    selected_option_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("quiz_options.id", ondelete="CASCADE"))
    # copied from the option when the answer is recorded
    is_correct: Mapped[bool] = mapped_column(Boolean)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

# ---------- webinars ----------

class Webinar(UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "webinars"
    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_free: Mapped[bool] = mapped_column(Boolean, default=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    thumbnail_file_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("files.id", ondelete="SET NULL"), nullable=True)
    live_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    duration: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(Enum(*WEBINAR_STATUSES, name="webinar_status"), default="upcoming")

class WebinarInstructor(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "webinar_instructors"
    webinar_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("webinars.id", ondelete="CASCADE"), index=True)
    instructor_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

class WebinarRegistration(UUIDPrimaryKeyMixin, SoftDeleteMixin, Base):
    __tablename__ = "webinar_registrations"
    webinar_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("webinars.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
