from decimal import Decimal
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from learnhub.core.auth import AuthContext
from learnhub.core.errors import Conflict, NotFound, PreconditionFailed, ValidationError
from learnhub.models.orm import QuizAnswer, QuizAttempt
from learnhub.services import submission
from learnhub.services.lessons import mark_watched
from learnhub.services.submission import compute_score, list_attempts, submit_quiz_answers


@pytest.fixture
def quiz4(build):
    """A quiz with four two-option questions; returns (quiz, [(right, wrong), ...])."""
    module = build.module(build.course())
    quiz = build.quiz(module)
    pairs = [build.options(build.question(quiz, text=f"Q{i}", order=i)) for i in range(1, 5)]
    return quiz, pairs

def answer(option):
    return {"question_id": option.question_id, "selected_option_id": option.id}

def count(db, model):
    return db.scalar(select(func.count()).select_from(model))


@pytest.mark.parametrize("correct,total,expected", [
    (3, 4, Decimal("75.00")),
    (0, 4, Decimal("0.00")),
    (4, 4, Decimal("100.00")),
    (1, 3, Decimal("33.33")),
    (2, 3, Decimal("66.67")),
    (1, 8, Decimal("12.50")),
])
def test_compute_score(correct, total, expected):
    assert compute_score(correct, total) == expected

def test_compute_score_rejects_empty_quiz():
    with pytest.raises(ValidationError):
        compute_score(0, 0)

def test_three_of_four_scores_75(db, learner, quiz4):
    quiz, pairs = quiz4
    answers = [answer(r) for r, _ in pairs[:3]] + [answer(pairs[3][1])]
    result = submit_quiz_answers(db, learner, quiz.id, answers)
    assert result["score"] == 75.0
    assert result["correctAnswers"] == 3
    assert result["totalQuestions"] == 4
    assert result["attemptNumber"] == 1

def test_all_wrong_then_all_right(db, learner, quiz4):
    quiz, pairs = quiz4
    assert submit_quiz_answers(db, learner, quiz.id, [answer(w) for _, w in pairs])["score"] == 0.0
    second = submit_quiz_answers(db, learner, quiz.id, [answer(r) for r, _ in pairs])
    assert second["score"] == 100.0
    assert second["attemptNumber"] == 2

def test_half_right_then_none(db, build, learner):
    quiz = build.quiz(build.module(build.course()))
    (r1, w1), (r2, w2) = build.options(build.question(quiz, order=1)), build.options(build.question(quiz, order=2))
    assert submit_quiz_answers(db, learner, quiz.id, [answer(r1), answer(w2)])["score"] == 50.0
    assert submit_quiz_answers(db, learner, quiz.id, [answer(w1), answer(w2)])["score"] == 0.0

def test_repeated_answers_score_once_per_question(db, build, learner):
    quiz = build.quiz(build.module(build.course()))
    (r1, _), (_, w2) = build.options(build.question(quiz, order=1)), build.options(build.question(quiz, order=2))
    result = submit_quiz_answers(db, learner, quiz.id, [answer(r1)] * 12 + [answer(w2)])
    assert result["correctAnswers"] == 1
    assert result["totalQuestions"] == 2
    assert result["score"] == 50.0
    assert count(db, QuizAnswer) == 13

def test_attempt_numbers_count_up_per_user(db, build, learner, quiz4):
    quiz, pairs = quiz4
    answers = [answer(r) for r, _ in pairs]
    assert [submit_quiz_answers(db, learner, quiz.id, answers)["attemptNumber"] for _ in range(3)] == [1, 2, 3]

    other = build.user()
    assert submit_quiz_answers(db, AuthContext(user_id=other.id), quiz.id, answers)["attemptNumber"] == 1
    assert [a["attemptNumber"] for a in list_attempts(db, learner, quiz.id)] == [3, 2, 1]

def test_missing_answer_writes_nothing(db, learner, quiz4):
    quiz, pairs = quiz4
    with pytest.raises(ValidationError, match="All questions must be answered"):
        submit_quiz_answers(db, learner, quiz.id, [answer(r) for r, _ in pairs[:3]])
    assert count(db, QuizAttempt) == 0
    assert count(db, QuizAnswer) == 0

def test_option_from_another_question_is_rejected(db, learner, quiz4):
    quiz, pairs = quiz4
    answers = [answer(r) for r, _ in pairs]
    answers[0] = {"question_id": pairs[0][0].question_id, "selected_option_id": pairs[1][0].id}
    with pytest.raises(NotFound):
        submit_quiz_answers(db, learner, quiz.id, answers)
    assert count(db, QuizAttempt) == 0

def test_answer_for_foreign_question_is_rejected(db, build, learner, quiz4):
    quiz, pairs = quiz4
    stray_right, _ = build.options(build.question(build.quiz(build.module(build.course()))))
    with pytest.raises(NotFound):
        submit_quiz_answers(db, learner, quiz.id, [answer(r) for r, _ in pairs] + [answer(stray_right)])
    assert count(db, QuizAnswer) == 0

def test_quiz_without_questions(db, build, learner):
    quiz = build.quiz(build.module(build.course()))
    with pytest.raises(ValidationError):
        submit_quiz_answers(db, learner, quiz.id, [])

def test_deleted_quiz_is_not_found(db, admin, learner, quiz4):
    from learnhub.services.quizzes import delete_quiz
    quiz, pairs = quiz4
    delete_quiz(db, admin, quiz.id)
    with pytest.raises(NotFound):
        submit_quiz_answers(db, learner, quiz.id, [answer(r) for r, _ in pairs])

def test_gate_requires_watched_lesson(db, build, learner):
    module = build.module(build.course())
    lesson = build.lesson(module)
    quiz = build.quiz(module, unlock_after=lesson)
    right, _ = build.options(build.question(quiz))
    with pytest.raises(PreconditionFailed, match="Required lesson not completed"):
        submit_quiz_answers(db, learner, quiz.id, [answer(right)])
    mark_watched(db, learner, lesson.id, 120)
    assert submit_quiz_answers(db, learner, quiz.id, [answer(right)])["score"] == 100.0

def test_answers_keep_correctness_snapshot(db, admin, learner, build):
    from learnhub.services.quizzes import update_question
    quiz = build.quiz(build.module(build.course()))
    question = build.question(quiz)
    right, wrong = build.options(question)
    submit_quiz_answers(db, learner, quiz.id, [answer(right)])

    update_question(db, admin, question.id, {"options": [
        {"option_text": "right", "is_correct": False},
        {"option_text": "wrong", "is_correct": True},
    ]})
    stored = db.scalars(select(QuizAnswer)).one()
    assert stored.is_correct is True
    assert db.scalar(select(QuizAttempt.score)) == Decimal("100.00")

def test_duplicate_attempt_number_is_rejected_by_the_database(db, learner, quiz4):
    quiz, _ = quiz4
    db.add(QuizAttempt(quiz_id=quiz.id, user_id=learner.user_id, attempt_number=1))
    db.commit()
    db.add(QuizAttempt(quiz_id=quiz.id, user_id=learner.user_id, attempt_number=1))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

def test_stale_attempt_count_is_retried(db, learner, quiz4, monkeypatch):
    quiz, pairs = quiz4
    answers = [answer(r) for r, _ in pairs]
    submit_quiz_answers(db, learner, quiz.id, answers)

    real = submission.next_attempt_number
    calls = []

    def stale_once(session, quiz_id, user_id):
        calls.append(1)
        # the first call sees the count a concurrent submission saw
        return 1 if len(calls) == 1 else real(session, quiz_id, user_id)

    monkeypatch.setattr(submission, "next_attempt_number", stale_once)
    result = submit_quiz_answers(db, learner, quiz.id, answers)
    assert result["attemptNumber"] == 2
    assert len(calls) == 2
    assert count(db, QuizAttempt) == 2
    assert count(db, QuizAnswer) == 8

def test_gives_up_after_repeated_collisions(db, learner, quiz4, monkeypatch):
    quiz, pairs = quiz4
    answers = [answer(r) for r, _ in pairs]
    submit_quiz_answers(db, learner, quiz.id, answers)
    monkeypatch.setattr(submission, "next_attempt_number", lambda *a: 1)
    with pytest.raises(Conflict):
        submit_quiz_answers(db, learner, quiz.id, answers)
    assert count(db, QuizAttempt) == 1
