from fastapi import APIRouter, Depends
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.auth import AuthContext, get_current_user
from learnhub.services import enrollments

router = APIRouter()

class EnrollmentCreate(CamelModel):
    course_id: UUID

@router.post("", status_code=201)
def enroll(payload: EnrollmentCreate, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(enrollments.enroll(db, auth, payload.course_id), "Enrolled successfully")

@router.get("")
def my_enrollments(auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(enrollments.list_my_enrollments(db, auth), "Enrollments retrieved successfully")
