from fastapi import APIRouter
from pydantic import BaseModel
from uuid import UUID
from learnhub.core.auth import Role, create_token

router = APIRouter()

class MockLogin(BaseModel):
    user_id: UUID
    role: Role = "user"

@router.post("/mock-login")
def mock_login(payload: MockLogin):
    token = create_token(payload.user_id, payload.role)
    return {"access_token": token, "token_type": "bearer", "role": payload.role}
