"""Global error handlers: every error leaves the API as JSON."""

import structlog
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from questline.progression.exceptions import (
    AlreadyClaimed,
    InvalidObjective,
    NotCompleted,
    NotFoundError,
    PersistenceFailure,
    ProgressionError,
)

logger = structlog.get_logger()

# Checked in order; subclasses before their bases.
STATUS_BY_ERROR: tuple[tuple[type[ProgressionError], int], ...] = (
    (NotFoundError, 404),
    (AlreadyClaimed, 409),
    (NotCompleted, 409),
    (InvalidObjective, 422),
    (PersistenceFailure, 503),
)


def status_for(exc: ProgressionError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(ProgressionError)
    async def progression_exception_handler(request: Request, exc: ProgressionError) -> JSONResponse:
        """Map domain errors to their HTTP status with a stable ``code``."""
        status = status_for(exc)
        log = logger.error if status >= 500 else logger.info
        log(
            "progression_error",
            path=request.url.path,
            code=exc.code,
            status=status,
            error=exc.message,
        )
        return JSONResponse(
            status_code=status,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.info("invalid_request", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "code": "invalid_request"},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions, always JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )
