"""
Main FastAPI application entry point.
"""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from prometheus_fastapi_instrumentator import Instrumentator

from learnhub.core.config import settings
from learnhub.core.database import init_db
from learnhub.core.errors import register_exception_handlers
from learnhub.core.logger_config import setup_logging
from learnhub.api.auth import router as auth_router
from learnhub.api.quizzes import router as quizzes_router
from learnhub.api.courses import router as courses_router
from learnhub.api.modules import router as modules_router
from learnhub.api.lessons import router as lessons_router
from learnhub.api.reviews import router as reviews_router
from learnhub.api.enrollments import router as enrollments_router
from learnhub.api.webinars import router as webinars_router
from learnhub.api.uploads import router as uploads_router
from learnhub.api.users import router as users_router

setup_logging()
logger = logging.getLogger(__name__)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=settings.APP_VERSION,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s %s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
    init_db()
    yield
    logger.info("Shutdown complete")

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url=settings.DOCS_URL if not settings.is_production() else None,
    openapi_url=settings.OPENAPI_URL if not settings.is_production() else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app, endpoint="/metrics")

register_exception_handlers(app)

api = settings.API_V1_PREFIX
app.include_router(auth_router, prefix=f"{api}/auth", tags=["auth"])
app.include_router(quizzes_router, prefix=f"{api}/quiz", tags=["quiz"])
app.include_router(courses_router, prefix=f"{api}/course", tags=["course"])
app.include_router(modules_router, prefix=f"{api}/module", tags=["module"])
app.include_router(lessons_router, prefix=f"{api}/lesson", tags=["lesson"])
app.include_router(reviews_router, prefix=f"{api}/review", tags=["review"])
app.include_router(enrollments_router, prefix=f"{api}/enrollment", tags=["enrollment"])
app.include_router(webinars_router, prefix=f"{api}/webinar", tags=["webinar"])
app.include_router(uploads_router, prefix=f"{api}/upload", tags=["upload"])
app.include_router(users_router, prefix=f"{api}/user", tags=["user"])

@app.get("/health", tags=["Health"])
def health():
    return {"status": "healthy", "version": settings.APP_VERSION}
