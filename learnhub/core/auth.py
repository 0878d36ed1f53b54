from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel
from typing import Literal
from uuid import UUID
import jwt
from datetime import datetime, timedelta, timezone
from learnhub.core.config import settings

Role = Literal["user", "admin", "super_admin"]
ADMIN_ROLES = ("admin", "super_admin")

class AuthContext(BaseModel):
    """Identity of the caller, passed explicitly into every service call."""
    user_id: UUID
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

bearer = HTTPBearer(auto_error=False)

def create_token(user_id: UUID | str, role: str, ttl_minutes: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    ttl = ttl_minutes if ttl_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    payload = {"sub": str(user_id), "role": role, "iat": int(now.timestamp()), "exp": int((now + timedelta(minutes=ttl)).timestamp())}
    return jwt.encode(payload, settings.SECRET_KEY.get_secret_value(), algorithm=settings.ALGORITHM)

def get_current_user(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> AuthContext:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})
    try:
        payload = jwt.decode(creds.credentials, settings.SECRET_KEY.get_secret_value(), algorithms=[settings.ALGORITHM])
        return AuthContext(user_id=payload["sub"], role=payload.get("role", "user"))
    except (jwt.PyJWTError, KeyError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

def require_roles(*required: str):
    def checker(user: AuthContext = Depends(get_current_user)) -> AuthContext:
        if user.role not in required:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user
    return checker

require_admin = require_roles(*ADMIN_ROLES)

def get_optional_user(creds: HTTPAuthorizationCredentials | None = Depends(bearer)) -> AuthContext | None:
    if creds is None:
        return None
    return get_current_user(creds)
