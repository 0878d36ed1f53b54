from fastapi import APIRouter, Depends, Query
from typing import Literal, Optional
from sqlalchemy.orm import Session
from learnhub.api.common import ok
from learnhub.core.database import get_db
from learnhub.core.auth import require_admin
from learnhub.services import users

router = APIRouter()

@router.get("", dependencies=[Depends(require_admin)])
def list_users(page: int = Query(1, ge=1), limit: int = Query(10, ge=1), search: Optional[str] = None,
               role: Optional[Literal["user", "admin", "super_admin"]] = None, db: Session = Depends(get_db)):
    return ok(users.list_users(db, page=page, limit=limit, search=search, role=role), "Users retrieved successfully")
