"""
FastAPI application factory.

Maps the DinnerClubError hierarchy to HTTP status codes and renders every
error as ``{"error": "<message>"}``.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..config import Settings, get_settings
from ..error_handling.exceptions import (
    AuthenticationError,
    DatabaseError,
    DinnerClubError,
    DuplicateAssignmentError,
    DuplicateWaitlistEntryError,
    NotFoundError,
)
from ..error_handling.logging_config import init_logging, log_error_with_context
from ..models.database import check_connection, create_tables, init_db
from .routers import catalog, dinners, groups, public, reports, waitlist

# Checked in order; the first matching class wins
ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (AuthenticationError, 401),
    (DuplicateAssignmentError, 409),
    (DuplicateWaitlistEntryError, 409),
    (DatabaseError, 500),
    (DinnerClubError, 400),
)


def status_code_for(error: DinnerClubError) -> int:
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return status_code
    return 400


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    first = errors[0]
    field = ".".join(
        part for part in first.get("loc", ())
        if isinstance(part, str) and part not in ("body", "query", "path")
    )
    if first.get("type") == "missing":
        return f"{field} is required" if field else "Request body is required"

    message = first.get("msg", "Invalid value")
    return f"{field}: {message}" if field else message


async def dinner_club_error_handler(request: Request, exc: DinnerClubError) -> JSONResponse:
    status_code = status_code_for(exc)

    if status_code >= 500:
        log_error_with_context(exc, {
            "path": request.url.path,
            "method": request.method,
            **exc.context,
        })
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {exc.message}")

    return JSONResponse(status_code=status_code, content={"error": exc.user_message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _validation_message(exc)
    logger.info(f"{request.method} {request.url.path} -> 400: {message}")
    return JSONResponse(status_code=400, content={"error": message})


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log_error_with_context(exc, {"path": request.url.path, "method": request.method}, severity="CRITICAL")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Optional[Settings] = None, init_database: bool = True) -> FastAPI:
    """
    Build the admin API.

    Args:
        settings: Settings to use (defaults to the cached global settings)
        init_database: Connect to DATABASE_URL on startup

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_logging(
            environment=settings.environment,
            log_level=settings.log_level,
            log_to_file=settings.log_to_file,
            log_dir=settings.log_dir,
        )
        if init_database:
            init_db(settings.database_url, echo=settings.sql_echo)
            check_connection()
            create_tables()
        logger.info(f"{settings.app_name} started ({settings.environment})")
        yield
        logger.info(f"{settings.app_name} shutting down")

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)

    app.add_exception_handler(DinnerClubError, dinner_club_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(public.router)
    app.include_router(groups.router)
    app.include_router(waitlist.router)
    app.include_router(dinners.router)
    app.include_router(catalog.router)
    app.include_router(reports.router)

    return app
