import math
from sqlalchemy import func, select
from sqlalchemy.orm import Session

DEFAULT_LIMIT = 10
MAX_LIMIT = 100

def paginate(db: Session, stmt, page: int = 1, limit: int = DEFAULT_LIMIT):
    """Run ``stmt`` for one page; returns (rows, {page, limit, total, totalPages})."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_LIMIT)
    total = db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0
    rows = db.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().all()
    return rows, {"page": page, "limit": limit, "total": total, "totalPages": math.ceil(total / limit)}
