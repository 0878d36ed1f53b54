from fastapi import APIRouter, Depends, Query
from pydantic import Field
from typing import Optional
from decimal import Decimal
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.auth import AuthContext, get_current_user
from learnhub.services import reviews

router = APIRouter()

class ReviewCreate(CamelModel):
    course_id: UUID
    rating: Decimal = Field(ge=1, le=5)
    comment: Optional[str] = None

class ReviewUpdate(CamelModel):
    rating: Optional[Decimal] = Field(default=None, ge=1, le=5)
    comment: Optional[str] = None


@router.post("", status_code=201)
def create_review(payload: ReviewCreate, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(reviews.create_review(db, auth, **payload.model_dump()), "Review created successfully")

@router.get("")
def list_reviews(course_id: Optional[UUID] = Query(None, alias="courseId"), page: int = Query(1, ge=1),
                 limit: int = Query(10, ge=1), db: Session = Depends(get_db)):
    return ok(reviews.list_reviews(db, course_id=course_id, page=page, limit=limit), "Reviews retrieved successfully")

@router.get("/{review_id}")
def get_review(review_id: UUID, db: Session = Depends(get_db)):
    return ok(reviews.get_review(db, review_id), "Review retrieved successfully")

@router.put("/{review_id}")
def update_review(review_id: UUID, payload: ReviewUpdate, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    data = reviews.update_review(db, auth, review_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Review updated successfully")

@router.delete("/{review_id}")
def delete_review(review_id: UUID, auth: AuthContext = Depends(get_current_user), db: Session = Depends(get_db)):
    return ok(reviews.delete_review(db, auth, review_id), "Review deleted successfully")
