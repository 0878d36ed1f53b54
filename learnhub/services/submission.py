"""Quiz submission and scoring.

A submission is all-or-nothing: every check runs before the first write, and
the attempt, its answers and its score are committed together. Attempt
numbers come from counting earlier attempts; the unique index on
(quiz_id, user_id, attempt_number) catches two submissions that counted the
same value, and the loser recounts.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from learnhub.core.auth import AuthContext
from learnhub.core.errors import Conflict, NotFound, ValidationError
from learnhub.models.base import utcnow
from learnhub.models.orm import QuizAnswer, QuizAttempt, QuizOption, QuizQuestion
from learnhub.services.lookups import get_live_quiz
from learnhub.services.quizzes import ensure_unlocked, load_questions

logger = logging.getLogger(__name__)

MAX_NUMBERING_RETRIES = 3
CENT = Decimal("0.01")


def compute_score(correct: int, total: int) -> Decimal:
    """Percentage of correct answers, two decimals, half-up."""
    if total <= 0:
        raise ValidationError("Quiz has no questions to answer")
    return (Decimal(correct) * 100 / Decimal(total)).quantize(CENT, rounding=ROUND_HALF_UP)


def next_attempt_number(db: Session, quiz_id: UUID, user_id: UUID) -> int:
    count = db.scalar(
        select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
    ) or 0
    return count + 1


def _resolve_answers(
    questions: Sequence[tuple[QuizQuestion, list[QuizOption]]],
    answers: Sequence[Mapping[str, Any]],
) -> list[tuple[UUID, QuizOption]]:
    if not questions:
        raise ValidationError("Quiz has no questions to answer")

    question_ids = {q.id for q, _ in questions}
    answered = {a["question_id"] for a in answers}
    if not question_ids.issubset(answered):
        logger.debug("Rejected submission: %d of %d questions answered", len(question_ids & answered), len(question_ids))
        raise ValidationError("All questions must be answered")

    options_by_question = {q.id: {o.id: o for o in opts} for q, opts in questions}
    resolved = []
    for a in answers:
        qid, oid = a["question_id"], a["selected_option_id"]
        if qid not in options_by_question:
            raise NotFound(f"Question {qid} not found in this quiz")
        option = options_by_question[qid].get(oid)
        if option is None:
            raise NotFound(f"Option {oid} not found for question {qid}")
        resolved.append((qid, option))
    return resolved


def _record_attempt(db: Session, quiz_id: UUID, user_id: UUID, resolved: list[tuple[UUID, QuizOption]], total: int) -> tuple[QuizAttempt, int]:
    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user_id=user_id,
        attempt_number=next_attempt_number(db, quiz_id, user_id),
        started_at=utcnow(),
    )
    db.add(attempt)
    db.flush()

    # repeated answers to one question are stored but score at most once
    correct_questions = set()
    for question_id, option in resolved:
        is_correct = bool(option.is_correct)
        db.add(QuizAnswer(
            attempt_id=attempt.id,
            user_id=user_id,
            question_id=question_id,
            selected_option_id=option.id,
            is_correct=is_correct,
        ))
        if is_correct:
            correct_questions.add(question_id)

    correct = len(correct_questions)
    attempt.score = compute_score(correct, total)
    attempt.completed_at = utcnow()
    db.commit()
    return attempt, correct


def submit_quiz_answers(db: Session, auth: AuthContext, quiz_id: UUID, answers: Sequence[Mapping[str, Any]]) -> dict:
    quiz = get_live_quiz(db, quiz_id)
    ensure_unlocked(db, quiz, auth)
    questions = load_questions(db, [quiz.id])[quiz.id]
    resolved = _resolve_answers(questions, answers)
    total = len(questions)

    for retry in range(MAX_NUMBERING_RETRIES):
        try:
            attempt, correct = _record_attempt(db, quiz.id, auth.user_id, resolved, total)
        except IntegrityError:
            db.rollback()
            logger.warning("Attempt number collision for quiz %s user %s, recounting (%d)", quiz_id, auth.user_id, retry + 1)
            continue
        logger.info(
            "Attempt %d recorded for quiz %s user %s: %s%% (%d/%d)",
            attempt.attempt_number, quiz_id, auth.user_id, attempt.score, correct, total,
        )
        return {
            "attemptId": attempt.id,
            "score": float(attempt.score),
            "totalQuestions": total,
            "correctAnswers": correct,
            "attemptNumber": attempt.attempt_number,
            "completedAt": attempt.completed_at,
        }
    raise Conflict("Another submission for this quiz is in progress, please retry")


def list_attempts(db: Session, auth: AuthContext, quiz_id: UUID) -> list[dict]:
    get_live_quiz(db, quiz_id)
    rows = db.scalars(
        select(QuizAttempt)
        .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == auth.user_id, QuizAttempt.live())
        .order_by(QuizAttempt.attempt_number.desc())
    )
    return [
        {
            "id": a.id,
            "attemptNumber": a.attempt_number,
            "score": float(a.score) if a.score is not None else None,
            "startedAt": a.started_at,
            "completedAt": a.completed_at,
        }
        for a in rows
    ]
