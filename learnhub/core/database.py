import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from learnhub.core.config import settings

logger = logging.getLogger(__name__)

def _connect_args(url: str) -> dict:
    if url.startswith("postgresql") and settings.DATABASE_STATEMENT_TIMEOUT_MS > 0:
        return {"options": f"-c statement_timeout={settings.DATABASE_STATEMENT_TIMEOUT_MS}"}
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}

def make_engine(url: str = settings.DATABASE_URL):
    kwargs = {"future": True, "pool_pre_ping": True, "echo": settings.DATABASE_ECHO, "connect_args": _connect_args(url)}
    if url.startswith("postgresql"):
        kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
    return create_engine(url, **kwargs)

engine = make_engine()
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False, future=True)

def init_db() -> None:
    from learnhub.models.orm import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ensured")

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
