"""
Service-level error taxonomy and the handlers that render it as the
``{success, error}`` envelope.
"""
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnhub.core.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base class for errors raised by the service layer."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class PreconditionFailed(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT


class Internal(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class ServiceUnavailable(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def error_body(message: str, **extra) -> dict:
    return {"success": False, "error": message, **extra}


def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation Error"
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
    msg = first.get("msg", "Validation Error")
    return f"{loc}: {msg}" if loc else msg


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if isinstance(exc, Internal):
            logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
            if settings.is_production():
                return JSONResponse(status_code=exc.status_code, content=error_body("Internal Server Error"))
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=error_body(str(exc.detail)), headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(_first_validation_message(exc)),
        )

    @app.exception_handler(OperationalError)
    async def database_unavailable_handler(request: Request, exc: OperationalError):
        logger.error("Database unavailable: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=error_body("Service temporarily unavailable"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        if settings.is_production():
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=error_body("Internal Server Error"),
            )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(str(exc), debug=True),
        )
