import os
import uuid

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from learnhub.core.auth import AuthContext, create_token
from learnhub.core.database import get_db
from learnhub.core.storage import StorageError, describe, get_storage
from learnhub.models.orm import (
    Base, Course, File, Lesson, LessonFile, Module, Quiz, QuizOption, QuizQuestion, User,
)


class InMemoryStorage:
    """Blob store double; flip ``fail_deletes`` to make ``delete`` raise."""

    def __init__(self):
        self.blobs: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_deletes = False

    def upload(self, data, filename, content_type=None, prefix="documents"):
        blob = describe(data, filename, content_type, prefix)
        self.blobs[blob.key] = data
        return blob

    def get_signed_url(self, key, ttl=None):
        return f"https://blobs.test/{key}?ttl={ttl or 3600}"

    def delete(self, key):
        if self.fail_deletes:
            raise StorageError(f"delete of {key} failed: simulated outage")
        self.blobs.pop(key, None)
        self.deleted.append(key)


class Builder:
    """Inserts rows straight through the ORM so tests can start from any state."""

    def __init__(self, db: Session, storage: InMemoryStorage):
        self.db = db
        self.storage = storage

    def _save(self, row):
        self.db.add(row)
        self.db.commit()
        return row

    def user(self, role="user", **kw):
        uid = kw.pop("id", uuid.uuid4())
        return self._save(User(id=uid, name=kw.pop("name", f"user-{uid.hex[:6]}"),
                               email=kw.pop("email", f"{uid.hex[:10]}@example.com"), role=role, **kw))

    def file(self, name="notes.pdf", data=b"%PDF-1.4 test"):
        blob = self.storage.upload(data, name, "application/pdf")
        return self._save(File(key=blob.key, original_filename=name, stored_filename=blob.stored_filename,
                               file_size=blob.size, mime_type=blob.mime_type, checksum=blob.checksum))

    def course(self, title="Intro to Testing", status="published", **kw):
        kw.setdefault("is_free", True)
        kw.setdefault("level", "beginner")
        return self._save(Course(title=title, slug=kw.pop("slug", f"course-{uuid.uuid4().hex[:8]}"), status=status, **kw))

    def module(self, course, title="Basics", order=1):
        return self._save(Module(course_id=course.id, title=title, slug=f"module-{uuid.uuid4().hex[:8]}", module_order=order))

    def lesson(self, module, title="Lesson", order=1, files=()):
        lesson = self._save(Lesson(module_id=module.id, title=title, lesson_type="video", lesson_order=order))
        for f in files:
            self._save(LessonFile(lesson_id=lesson.id, file_id=f.id))
        return lesson

    def quiz(self, module, title="Checkpoint", order=1, unlock_after=None):
        return self._save(Quiz(module_id=module.id, title=title, quiz_order=order,
                               unlock_after_lesson_id=unlock_after.id if unlock_after else None))

    def question(self, quiz, text="Pick the right one", order=1, options=("right", "wrong")):
        q = self._save(QuizQuestion(quiz_id=quiz.id, question_text=text, question_order=order))
        # first option is the correct one
        for i, label in enumerate(options):
            self.db.add(QuizOption(question_id=q.id, option_text=label, is_correct=(i == 0)))
        self.db.commit()
        return q

    def options(self, question):
        rows = self.db.scalars(select(QuizOption).where(QuizOption.question_id == question.id)).all()
        right = next(o for o in rows if o.is_correct)
        wrong = next(o for o in rows if not o.is_correct)
        return right, wrong


@pytest.fixture
def engine():
    eng = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()

@pytest.fixture
def db(engine):
    session = Session(bind=engine, autoflush=False, expire_on_commit=False)
    yield session
    session.close()

@pytest.fixture
def storage():
    return InMemoryStorage()

@pytest.fixture
def build(db, storage):
    return Builder(db, storage)

@pytest.fixture
def admin(build):
    user = build.user(role="admin")
    return AuthContext(user_id=user.id, role="admin")

@pytest.fixture
def learner(build):
    user = build.user()
    return AuthContext(user_id=user.id, role="user")

@pytest.fixture
def client(db, storage):
    from learnhub.main import app

    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()

def bearer(auth: AuthContext) -> dict:
    return {"Authorization": f"Bearer {create_token(auth.user_id, auth.role)}"}

@pytest.fixture
def headers():
    return bearer

@pytest.fixture
def admin_headers(admin):
    return bearer(admin)

@pytest.fixture
def learner_headers(learner):
    return bearer(learner)
