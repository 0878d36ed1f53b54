from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from learnhub.models.orm import User
from learnhub.services.pagination import paginate


def user_view(u: User) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "avatar": u.image,
        "role": u.role,
        "banned": bool(u.banned),
        "createdAt": u.created_at,
        "updatedAt": u.updated_at,
    }

def list_users(db: Session, *, page: int = 1, limit: int = 10, search: str | None = None, role: str | None = None) -> dict:
    stmt = select(User)
    if search:
        stmt = stmt.where(or_(User.name.ilike(f"%{search}%"), User.email.ilike(f"%{search}%")))
    if role:
        stmt = stmt.where(User.role == role)
    rows, meta = paginate(db, stmt.order_by(User.created_at), page, limit)
    return {"users": [user_view(u) for u in rows], "pagination": meta}
