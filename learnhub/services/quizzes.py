"""Quiz authoring and read paths.

Admin views carry ``isCorrect`` on every option; learner views strip it and
respect the lesson gate (``unlock_after_lesson_id``).
"""
import logging
from typing import Any, Iterable, Mapping, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import PreconditionFailed, ValidationError
from learnhub.models.base import utcnow
from learnhub.models.orm import CourseWatchedLesson, Quiz, QuizOption, QuizQuestion
from learnhub.services import cascade
from learnhub.services.lookups import get_live_module, get_live_question, get_live_quiz

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
QUIZ_FIELDS = ("title", "instructions", "quiz_order", "unlock_after_lesson_id")


# ---------- views ----------

def option_view(o: QuizOption, include_correct: bool = True) -> dict:
    view = {"id": o.id, "questionId": o.question_id, "optionText": o.option_text}
    if include_correct:
        view["isCorrect"] = o.is_correct
    return view

def question_view(q: QuizQuestion, options: Iterable[QuizOption], include_correct: bool = True) -> dict:
    return {
        "id": q.id,
        "quizId": q.quiz_id,
        "questionText": q.question_text,
        "questionOrder": q.question_order,
        "createdAt": q.created_at,
        "updatedAt": q.updated_at,
        "options": [option_view(o, include_correct) for o in options],
    }

def quiz_view(quiz: Quiz, questions: Sequence[tuple[QuizQuestion, list[QuizOption]]] | None = None, include_correct: bool = True) -> dict:
    view = {
        "id": quiz.id,
        "moduleId": quiz.module_id,
        "title": quiz.title,
        "instructions": quiz.instructions,
        "quizOrder": quiz.quiz_order,
        "unlockAfterLessonId": quiz.unlock_after_lesson_id,
        "createdAt": quiz.created_at,
        "updatedAt": quiz.updated_at,
    }
    if questions is not None:
        view["questions"] = [question_view(q, opts, include_correct) for q, opts in questions]
    return view


# ---------- loaders ----------

def live_options(db: Session, question_ids: Sequence[UUID]) -> dict[UUID, list[QuizOption]]:
    grouped: dict[UUID, list[QuizOption]] = {qid: [] for qid in question_ids}
    if not question_ids:
        return grouped
    rows = db.scalars(
        select(QuizOption)
        .where(QuizOption.question_id.in_(question_ids), QuizOption.live())
        .order_by(QuizOption.created_at, QuizOption.id)
    )
    for o in rows:
        grouped[o.question_id].append(o)
    return grouped

def load_questions(db: Session, quiz_ids: Sequence[UUID]) -> dict[UUID, list[tuple[QuizQuestion, list[QuizOption]]]]:
    """Live questions (by question_order) with their live options, per quiz."""
    out: dict[UUID, list[tuple[QuizQuestion, list[QuizOption]]]] = {qid: [] for qid in quiz_ids}
    if not quiz_ids:
        return out
    questions = db.scalars(
        select(QuizQuestion)
        .where(QuizQuestion.quiz_id.in_(quiz_ids), QuizQuestion.live())
        .order_by(QuizQuestion.question_order, QuizQuestion.created_at)
    ).all()
    options = live_options(db, [q.id for q in questions])
    for q in questions:
        out[q.quiz_id].append((q, options[q.id]))
    return out

def has_watched_lesson(db: Session, user_id: UUID, lesson_id: UUID) -> bool:
    row = db.scalar(
        select(CourseWatchedLesson.id).where(
            CourseWatchedLesson.user_id == user_id,
            CourseWatchedLesson.lesson_id == lesson_id,
            CourseWatchedLesson.live(),
        ).limit(1)
    )
    return row is not None

def ensure_unlocked(db: Session, quiz: Quiz, auth: AuthContext) -> None:
    if quiz.unlock_after_lesson_id and not has_watched_lesson(db, auth.user_id, quiz.unlock_after_lesson_id):
        raise PreconditionFailed("Required lesson not completed")


# ---------- validation ----------

def check_options(options: Sequence[Mapping[str, Any]]) -> None:
    if len(options) < MIN_OPTIONS:
        raise ValidationError(f"At least {MIN_OPTIONS} options are required")
    if any(not (o.get("option_text") or "").strip() for o in options):
        raise ValidationError("Option text is required")
    correct = sum(1 for o in options if o.get("is_correct"))
    if correct != 1:
        logger.debug("Rejected options: %d marked correct", correct)
        raise ValidationError("Exactly one option must be marked correct")

def _add_options(db: Session, question_id: UUID, options: Sequence[Mapping[str, Any]]) -> list[QuizOption]:
    rows = [QuizOption(question_id=question_id, option_text=o["option_text"], is_correct=bool(o.get("is_correct"))) for o in options]
    db.add_all(rows)
    return rows


# ---------- authoring ----------

def create_quiz(db: Session, auth: AuthContext, *, module_id: UUID, title: str, quiz_order: int,
                instructions: str | None = None, unlock_after_lesson_id: UUID | None = None) -> dict:
    get_live_module(db, module_id)
    quiz = Quiz(module_id=module_id, title=title, quiz_order=quiz_order,
                instructions=instructions, unlock_after_lesson_id=unlock_after_lesson_id)
    db.add(quiz)
    db.commit()
    logger.info("Quiz %s created in module %s by %s", quiz.id, module_id, auth.user_id)
    return quiz_view(quiz)

def add_question(db: Session, auth: AuthContext, *, quiz_id: UUID, question_text: str, question_order: int,
                 options: Sequence[Mapping[str, Any]]) -> dict:
    get_live_quiz(db, quiz_id)
    check_options(options)
    question = QuizQuestion(quiz_id=quiz_id, question_text=question_text, question_order=question_order)
    db.add(question)
    db.flush()
    rows = _add_options(db, question.id, options)
    db.commit()
    logger.info("Question %s added to quiz %s with %d options", question.id, quiz_id, len(rows))
    return question_view(question, rows)

def update_quiz(db: Session, auth: AuthContext, quiz_id: UUID, patch: Mapping[str, Any]) -> dict:
    quiz = get_live_quiz(db, quiz_id)
    for field in QUIZ_FIELDS:
        if field in patch:
            value = patch[field]
            if value is None and field in ("title", "quiz_order"):
                raise ValidationError(f"{field} cannot be null")
            setattr(quiz, field, value)
    quiz.updated_at = utcnow()
    db.commit()
    questions = load_questions(db, [quiz.id])[quiz.id]
    return quiz_view(quiz, questions)

def update_question(db: Session, auth: AuthContext, question_id: UUID, patch: Mapping[str, Any]) -> dict:
    """Patch text/order; a non-empty ``options`` list replaces every live option."""
    question = get_live_question(db, question_id)
    if patch.get("question_text") is not None:
        question.question_text = patch["question_text"]
    if patch.get("question_order") is not None:
        question.question_order = patch["question_order"]
    question.updated_at = utcnow()

    new_options = patch.get("options")
    if new_options:
        check_options(new_options)
        now = utcnow()
        for o in live_options(db, [question.id])[question.id]:
            o.soft_delete(now)
        _add_options(db, question.id, new_options)
        db.flush()
    db.commit()
    return question_view(question, live_options(db, [question.id])[question.id])

def delete_quiz(db: Session, auth: AuthContext, quiz_id: UUID) -> dict:
    quiz = get_live_quiz(db, quiz_id)
    cascade.delete_quiz(db, quiz)
    db.commit()
    logger.info("Quiz %s deleted by %s", quiz_id, auth.user_id)
    return {"id": quiz.id, "deletedAt": quiz.deleted_at}

def delete_question(db: Session, auth: AuthContext, question_id: UUID) -> dict:
    question = get_live_question(db, question_id)
    cascade.delete_question(db, question)
    db.commit()
    return {"id": question.id, "deletedAt": question.deleted_at}


# ---------- reads ----------

def _module_quizzes(db: Session, module_id: UUID) -> list[Quiz]:
    get_live_module(db, module_id)
    return list(db.scalars(
        select(Quiz).where(Quiz.module_id == module_id, Quiz.live()).order_by(Quiz.quiz_order, Quiz.created_at)
    ))

def list_quizzes_admin(db: Session, module_id: UUID) -> list[dict]:
    quizzes = _module_quizzes(db, module_id)
    questions = load_questions(db, [q.id for q in quizzes])
    return [quiz_view(q, questions[q.id]) for q in quizzes]

def list_quizzes_user(db: Session, auth: AuthContext, module_id: UUID) -> list[dict]:
    """Quizzes the caller may open; gated ones are left out rather than reported."""
    quizzes = [
        q for q in _module_quizzes(db, module_id)
        if not q.unlock_after_lesson_id or has_watched_lesson(db, auth.user_id, q.unlock_after_lesson_id)
    ]
    questions = load_questions(db, [q.id for q in quizzes])
    return [quiz_view(q, questions[q.id], include_correct=False) for q in quizzes]

def get_quiz_admin(db: Session, quiz_id: UUID) -> dict:
    quiz = get_live_quiz(db, quiz_id)
    return quiz_view(quiz, load_questions(db, [quiz.id])[quiz.id])

def get_quiz_user(db: Session, auth: AuthContext, quiz_id: UUID) -> dict:
    quiz = get_live_quiz(db, quiz_id)
    ensure_unlocked(db, quiz, auth)
    return quiz_view(quiz, load_questions(db, [quiz.id])[quiz.id], include_correct=False)
