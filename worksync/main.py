"""worksync - multi-tenant task management API for publishing teams."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from worksync.core.config import DEFAULT_SECRET_KEY, settings
from worksync.core.db_client import close_connection, init_db
from worksync.core.errors import AppError, ErrorCode, ErrorResponse, validation_error_response
from worksync.core.logging import configure_logfire, instrument_fastapi
from worksync.interface.auth_router import router as auth_router
from worksync.interface.file_router import router as file_router
from worksync.interface.project_router import router as project_router
from worksync.interface.task_router import router as task_router
from worksync.interface.workspace_router import router as workspace_router
from worksync.services.role_service import ensure_roles_seeded


logger = logging.getLogger(__name__)


def validate_startup_configuration() -> None:
    """Validate required credentials before serving requests.

    Exits the process when the session secret is missing, or left at the
    development default in production.
    """
    logger.info("startup_validation_begin")

    try:
        secret = settings.require_credential("secret_key", "Session signing")
        if settings.is_production and secret == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY must be changed from the development default in production.")

        logger.info("startup_validation_complete", extra={"status": "ok"})

    except ValueError as e:
        logger.error("startup_validation_failed", extra={"error": str(e)})
        print(f"\n❌ Startup validation failed: {e}\n", file=sys.stderr)  # noqa: T201
        sys.exit(1)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so validation logs are captured
    configure_logfire()

    validate_startup_configuration()

    await init_db()
    logger.info("Database initialized")

    seeded = await ensure_roles_seeded()
    logger.info("Roles seeded", extra={"created": seeded})

    Path(settings.file_storage_root).mkdir(parents=True, exist_ok=True)
    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="worksync",
    description="Multi-tenant task management for publishing teams",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(auth_router)
app.include_router(workspace_router)
app.include_router(project_router)
app.include_router(task_router)
app.include_router(file_router)


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    """Render application errors as structured JSON."""
    logger.info("app_error", extra={"category": exc.category.value, "code": exc.code, "status": exc.status_code})
    return JSONResponse(content=exc.to_response().model_dump(exclude_none=True), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as 400 with field details."""
    body = validation_error_response(list(exc.errors()))
    return JSONResponse(content=body.model_dump(exclude_none=True), status_code=status.HTTP_400_BAD_REQUEST)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected failures and hide their details from callers."""
    logger.error(
        "Unhandled error",
        extra={"path": request.url.path, "error": str(exc), "error_type": type(exc).__name__},
    )
    body = ErrorResponse(code=ErrorCode.ERR_INTERNAL, message="Internal Server Error")
    return JSONResponse(content=body.model_dump(exclude_none=True), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)
