from fastapi import APIRouter, Depends, Query
from pydantic import Field, constr
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from learnhub.api.common import CamelModel, ok
from learnhub.core.database import get_db
from learnhub.core.storage import BlobStorage, get_storage
from learnhub.core.auth import AuthContext, require_admin
from learnhub.services import modules

router = APIRouter(dependencies=[Depends(require_admin)])

class ModuleCreate(CamelModel):
    course_id: UUID
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    module_order: int = Field(gt=0)

class ModuleUpdate(CamelModel):
    title: Optional[constr(strip_whitespace=True, min_length=1, max_length=255)] = None
    module_order: Optional[int] = Field(default=None, gt=0)


@router.post("", status_code=201)
def create_module(payload: ModuleCreate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    return ok(modules.create_module(db, auth, **payload.model_dump()), "Module created successfully")

@router.get("")
def list_modules(course_id: UUID = Query(..., alias="courseId"), page: int = Query(1, ge=1), limit: int = Query(10, ge=1),
                 search: Optional[str] = None, db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    data = modules.list_modules(db, storage, course_id, page=page, limit=limit, search=search)
    return ok(data, "Modules retrieved successfully")

@router.get("/{module_id}")
def get_module(module_id: UUID, db: Session = Depends(get_db), storage: BlobStorage = Depends(get_storage)):
    return ok(modules.get_module(db, storage, module_id), "Module retrieved successfully")

@router.put("/{module_id}")
def update_module(module_id: UUID, payload: ModuleUpdate, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db)):
    data = modules.update_module(db, auth, module_id, payload.model_dump(exclude_unset=True))
    return ok(data, "Module updated successfully")

@router.delete("/{module_id}")
def delete_module(module_id: UUID, auth: AuthContext = Depends(require_admin), db: Session = Depends(get_db),
                  storage: BlobStorage = Depends(get_storage)):
    return ok(modules.delete_module(db, storage, auth, module_id), "Module deleted successfully")
