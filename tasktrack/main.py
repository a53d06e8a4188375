"""Main FastAPI application for the task tracking API."""
from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tasktrack.config import Settings, load_settings
from tasktrack.errors import AuthenticationFailed, TaskTrackError, ValidationFailed
from tasktrack.middleware.cors import add_cors_middleware
from tasktrack.routers import auth_router, tasks_router
from tasktrack.schemas.common import ErrorResponse, FieldErrorResponse
from tasktrack.services.auth_service import AuthService
from tasktrack.services.security import TokenService
from tasktrack.services.session_directory import SessionDirectory
from tasktrack.services.task_service import TaskService
from tasktrack.stores import build_record_store
from tasktrack.stores.base import RecordStore
from tasktrack.utils.logger import configure_logging

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def _field_name(location) -> str:
    # Drop the "body"/"query"/"header" prefix FastAPI puts on error locations
    parts = [str(part) for part in location if part not in ("body", "query", "header", "path")]
    return ".".join(parts) or "request"


def _error_body(body: ErrorResponse) -> dict:
    return body.model_dump(exclude_none=True)


async def handle_service_error(request: Request, exc: TaskTrackError) -> JSONResponse:
    body = ErrorResponse(error=exc.message, code=exc.code)
    if isinstance(exc, ValidationFailed):
        body.errors = [FieldErrorResponse(field=e.field, message=e.message) for e in exc.errors]
        logger.info("Validation failed on %s %s: %s", request.method, request.url.path,
                    [e.to_dict() for e in exc.errors])

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationFailed) else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(body), headers=headers)


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [FieldErrorResponse(field=_field_name(error["loc"]), message=error["msg"]) for error in exc.errors()]
    body = ErrorResponse(error="Validation failed", code=ValidationFailed.code, errors=errors)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=_error_body(body))


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(ErrorResponse(error=str(exc.detail))),
        headers=getattr(exc, "headers", None),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(ErrorResponse(error="Internal server error")),
    )


def create_app(settings: Optional[Settings] = None, store: Optional[RecordStore] = None) -> FastAPI:
    """
    Build the application.

    Services are created eagerly and kept on app.state; the lifespan only
    prepares and closes the record store.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    store = store or build_record_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.initialize()
        logger.info("Record store '%s' ready", store.backend)
        yield
        await store.close()

    app = FastAPI(
        title="TaskTrack API",
        description="Multi-tenant personal task tracking REST API",
        version=VERSION,
        lifespan=lifespan,
    )

    tokens = TokenService(settings)
    sessions = SessionDirectory(store.refresh_tokens)
    app.state.settings = settings
    app.state.store = store
    app.state.token_service = tokens
    app.state.auth_service = AuthService(store, tokens, sessions)
    app.state.task_service = TaskService(store.tasks, store.accounts)

    add_cors_middleware(app, settings)

    app.add_exception_handler(TaskTrackError, handle_service_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    @app.get("/health")
    async def health_check():
        """Health check endpoint; 503 when the record store does not answer."""
        if await store.ping():
            return {"status": "healthy", "version": VERSION, "store": store.backend}
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "version": VERSION, "store": store.backend},
        )

    @app.get("/")
    async def root():
        """Root endpoint - API welcome message."""
        return {
            "message": "Welcome to the TaskTrack API",
            "title": "TaskTrack API",
            "version": VERSION,
            "docs": "/docs",
            "health": "/health",
        }

    app.include_router(auth_router, prefix="/api/auth")  # Auth endpoints: /api/auth/login, ...
    app.include_router(tasks_router, prefix="/api/todos")  # Task endpoints: /api/todos/{id}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "tasktrack.wsgi:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
