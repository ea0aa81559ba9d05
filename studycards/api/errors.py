"""
Maps domain errors to HTTP responses.

Every error body has the shape ``{"error": "<message>"}``. Storage failures
are logged here and reported to the client with a generic message.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    StudyCardsError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_error_handlers(app: FastAPI) -> None:
    """Register exception handlers for the application."""

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError):
        logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
        return error_response(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        logger.info(f"Malformed request to {request.method} {request.url.path}: {exc.errors()}")
        return error_response(400, "Invalid request body")

    @app.exception_handler(ConflictError)
    async def conflict_error(request: Request, exc: ConflictError):
        logger.info(f"Conflict on {request.method} {request.url.path}: {exc}")
        return error_response(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError):
        return error_response(404, str(exc))

    @app.exception_handler(StorageError)
    async def storage_error(request: Request, exc: StorageError):
        logger.error(
            f"Storage failure on {request.method} {request.url.path}: {exc}",
            exc_info=exc,
        )
        return error_response(500, "Internal server error")

    @app.exception_handler(StudyCardsError)
    async def unexpected_error(request: Request, exc: StudyCardsError):
        logger.error(f"Unhandled application error: {exc}", exc_info=exc)
        return error_response(500, "Internal server error")
