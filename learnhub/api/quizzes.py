from fastapi import APIRouter, Depends, Query
from pydantic import Field, constr
from typing import List, Optional
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.auth import AuthContext, get_current_user, require_admin
from learnhub.services import quizzes, submission

router = APIRouter()

Title = constr(strip_whitespace=True, min_length=1, max_length=255)

class OptionIn(CamelModel):
    option_text: constr(strip_whitespace=True, min_length=1)
    is_correct: bool = False

class QuizCreate(CamelModel):
    module_id: UUID
    title: Title
    quiz_order: int = Field(gt=0)
    instructions: Optional[str] = None
    unlock_after_lesson_id: Optional[UUID] = None

class QuizUpdate(CamelModel):
    title: Optional[Title] = None
    quiz_order: Optional[int] = Field(default=None, gt=0)
    instructions: Optional[str] = None
    unlock_after_lesson_id: Optional[UUID] = None

class QuestionCreate(CamelModel):
    quiz_id: UUID
    question_text: constr(strip_whitespace=True, min_length=1)
    question_order: int = Field(gt=0)
    options: List[OptionIn] = Field(min_length=2)

class QuestionUpdate(CamelModel):
    question_text: Optional[constr(strip_whitespace=True, min_length=1)] = None
    question_order: Optional[int] = Field(default=None, gt=0)
    options: Optional[List[OptionIn]] = None

class AnswerIn(CamelModel):
    question_id: UUID
    selected_option_id: UUID

class QuizSubmit(CamelModel):
    quiz_id: UUID
    answers: List[AnswerIn] = Field(min_length=1)

# ---------- authoring (admin) ----------

@router.post("", status_code=201)
def create_quiz(payload: QuizCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    data = quizzes.create_quiz(db, auth, **payload.model_dump())
    return ok(data, "Quiz created successfully")

@router.post("/question", status_code=201)
def add_question(payload: QuestionCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    data = quizzes.add_question(db, auth, **payload.model_dump())
    return ok(data, "Question added successfully")

@router.put("/question/{question_id}")
def update_question(question_id: UUID, payload: QuestionUpdate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    data = quizzes.update_question(db, auth, question_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Question updated successfully")

@router.delete("/question/{question_id}")
def delete_question(question_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(quizzes.delete_question(db, auth, question_id), "Question deleted successfully")

@router.get("/admin")
def list_quizzes_admin(module_id: UUID = Query(..., alias="moduleId"), auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(quizzes.list_quizzes_admin(db, module_id), "Quizzes retrieved successfully")

@router.get("/admin/{quiz_id}")
def get_quiz_admin(quiz_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(quizzes.get_quiz_admin(db, quiz_id), "Quiz retrieved successfully")

@router.put("/{quiz_id}")
def update_quiz(quiz_id: UUID, payload: QuizUpdate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    data = quizzes.update_quiz(db, auth, quiz_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Quiz updated successfully")

@router.delete("/{quiz_id}")
def delete_quiz(quiz_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(quizzes.delete_quiz(db, auth, quiz_id), "Quiz deleted successfully")

# ---------- learner ----------

@router.post("/submit")
def submit_quiz(payload: QuizSubmit, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    answers = [a.model_dump() for a in payload.answers]
    data = submission.submit_quiz_answers(db, auth, payload.quiz_id, answers)
    return ok(data, "Quiz submitted successfully")

@router.get("")
def list_quizzes(module_id: UUID = Query(..., alias="moduleId"), auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(quizzes.list_quizzes_user(db, auth, module_id), "Quizzes retrieved successfully")

@router.get("/{quiz_id}/attempts")
def list_attempts(quiz_id: UUID, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(submission.list_attempts(db, auth, quiz_id), "Attempts retrieved successfully")

@router.get("/{quiz_id}")
def get_quiz(quiz_id: UUID, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(quizzes.get_quiz_user(db, auth, quiz_id), "Quiz retrieved successfully")
