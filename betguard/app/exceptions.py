import logging
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from betguard.core.exceptions import (
    AppException,
    ConflictError,
    DatabaseError,
    DependencyError,
    InvalidInputError,
    NotFoundError,
)
from betguard.core.schemas import ErrorResponse, ErrorResponseDetail

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, error_code: str, details: List[ErrorResponseDetail] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message, error_code=error_code, details=details).model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers for the FastAPI app."""

    @app.exception_handler(NotFoundError)
    async def not_found_exception_handler(request: Request, exc: NotFoundError):
        logger.info(f"Resource not found: {exc}")
        return _error(exc.status_code, exc.message, "resource_not_found")

    @app.exception_handler(InvalidInputError)
    async def invalid_input_exception_handler(request: Request, exc: InvalidInputError):
        logger.info(f"Invalid input: {exc}")
        return _error(exc.status_code, exc.message, "invalid_input")

    @app.exception_handler(ConflictError)
    async def conflict_exception_handler(request: Request, exc: ConflictError):
        logger.info(f"Conflict error: {exc}")
        return _error(exc.status_code, exc.message, "conflict")

    @app.exception_handler(DependencyError)
    async def dependency_exception_handler(request: Request, exc: DependencyError):
        logger.warning(f"Dependency unavailable ({exc.dependency}): {exc}")
        return _error(exc.status_code, exc.message, "dependency_unavailable")

    @app.exception_handler(RequestValidationError)
    async def fast_api_validation_exception_handler(request: Request, exc: RequestValidationError):
        details: List[ErrorResponseDetail] = []
        for error in exc.errors():
            details.append(ErrorResponseDetail(
                loc=[str(loc) for loc in error.get('loc', [])],
                msg=error.get('msg', 'Validation error'),
                type=error.get('type', 'value_error')
            ))
        logger.info(f"Request validation failed: {details}")
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "Request validation failed",
            "request_validation_error",
            details=details,
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"Database error: {exc}", exc_info=True)
        error = DatabaseError("An unexpected database error occurred.")
        return _error(error.status_code, error.message, "database_error")

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        logger.error(f"Application error: {exc}", exc_info=True)
        return _error(exc.status_code, exc.message, "application_error")

    # Keep the general Exception handler as a catch-all
    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception occurred: {exc}")
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "An unexpected internal server error occurred.",
            "internal_server_error",
        )

    logger.info("Standard exception handlers registered.")
