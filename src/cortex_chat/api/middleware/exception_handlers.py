"""
Global exception handlers for Cortex Chat API.

Provides centralized error handling with consistent response formatting,
proper logging, and request context integration.
"""

from __future__ import annotations

import traceback

from typing import Any

import asyncpg

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from cortex_chat.api.middleware.request_context import get_request_context, get_request_id
from cortex_chat.core.constants import get_settings
from cortex_chat.models.error_models import (
    ErrorCode,
    ErrorDetail,
    ErrorResponse,
    get_status_code,
)
from cortex_chat.utils.logger import logger


class AppException(Exception):
    """Base application exception with error code support.

    Use this for business logic errors that should return a specific
    error code and message to the client.

    Example:
        raise AppException(
            code=ErrorCode.FILE_NOT_FOUND,
            message="File not found",
            details={"file_id": file_id}
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.cause = cause
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Resource not found errors."""

    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        code: ErrorCode = ErrorCode.RESOURCE_NOT_FOUND,
    ):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(code=code, message=message, details={"resource": resource, "id": resource_id})


class FileNotFoundError(ResourceNotFoundError):
    """File not found error."""

    def __init__(self, file_id: str):
        super().__init__(resource="File", resource_id=file_id, code=ErrorCode.FILE_NOT_FOUND)


class ValidationException(AppException):
    """Validation errors with field-level details.

    Relay input errors use ``VALIDATION_BAD_REQUEST`` (400); schema-level
    failures keep the default ``VALIDATION_ERROR`` (422).
    """

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[ErrorDetail] | None = None,
        code: ErrorCode = ErrorCode.VALIDATION_ERROR,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors or []


class FileTooLargeError(AppException):
    """Upload exceeds the configured maximum size."""

    def __init__(self, filename: str, size: int, limit: int):
        super().__init__(
            code=ErrorCode.FILE_TOO_LARGE,
            message=f"File '{filename}' is {size} bytes; the limit is {limit} bytes",
            details={"filename": filename, "size": size, "limit": limit},
        )
        self.filename = filename


class UpstreamUnavailable(AppException):
    """The Cortex Agents API could not be reached or answered with an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: ErrorCode = ErrorCode.CORTEX_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"upstream_status": status_code} if status_code is not None else None,
            cause=cause,
        )
        self.status_code = status_code


class StorageIntegrityError(AppException):
    """Stored file content cannot be reconstructed faithfully."""

    def __init__(
        self,
        message: str,
        file_id: str | None = None,
        code: ErrorCode = ErrorCode.FILE_CORRUPTED,
        cause: Exception | None = None,
    ):
        super().__init__(
            code=code,
            message=message,
            details={"file_id": file_id} if file_id else None,
            cause=cause,
        )
        self.file_id = file_id


class ChunkCountMismatch(StorageIntegrityError):
    """Number of stored chunks differs from the recorded chunk count."""

    def __init__(self, expected: int, found: int, file_id: str | None = None):
        super().__init__(
            message=f"Expected {expected} chunks but found {found}",
            file_id=file_id,
            code=ErrorCode.FILE_CHUNK_COUNT_MISMATCH,
        )
        self.expected = expected
        self.found = found


class ChunkMissing(StorageIntegrityError):
    """A chunk index is absent from an otherwise complete-looking chunk set."""

    def __init__(self, chunk_index: int, file_id: str | None = None):
        super().__init__(
            message=f"Chunk {chunk_index} is missing",
            file_id=file_id,
            code=ErrorCode.FILE_CHUNK_MISSING,
        )
        self.chunk_index = chunk_index


class BlobWriteError(AppException):
    """Storing a file failed; any partial rows were removed."""

    def __init__(self, file_id: str, filename: str, cause: Exception | None = None):
        super().__init__(
            code=ErrorCode.FILE_UPLOAD_FAILED,
            message=f"Failed to store '{filename}' ({file_id})",
            details={"file_id": file_id, "filename": filename},
            cause=cause,
        )
        self.file_id = file_id
        self.filename = filename


class UploadBatchFailed(AppException):
    """No file in an upload batch could be stored.

    When every failure was the client's (for example, all files over the
    size limit) the batch fails with that client error instead of a 500.
    """

    def __init__(self, errors: list[ErrorDetail]):
        super().__init__(
            code=_batch_error_code(errors),
            message="No files were uploaded",
            details={"errors": [e.model_dump() for e in errors]} if errors else None,
        )
        self.errors = errors


def _batch_error_code(errors: list[ErrorDetail]) -> ErrorCode:
    codes = {e.code for e in errors}
    if not codes or None in codes:
        return ErrorCode.FILE_UPLOAD_FAILED

    try:
        parsed = {ErrorCode(c) for c in codes}
    except ValueError:
        return ErrorCode.FILE_UPLOAD_FAILED
    if any(get_status_code(c) >= 500 for c in parsed):
        return ErrorCode.FILE_UPLOAD_FAILED
    if len(parsed) == 1:
        return parsed.pop()
    return ErrorCode.VALIDATION_BAD_REQUEST


class DatabaseError(AppException):
    """Database-related errors."""

    def __init__(
        self,
        message: str = "Database error",
        code: ErrorCode = ErrorCode.DATABASE_ERROR,
        cause: Exception | None = None,
    ):
        super().__init__(code=code, message=message, cause=cause)


def _create_error_response(
    code: ErrorCode,
    message: str,
    request: Request | None = None,
    details: list[ErrorDetail] | None = None,
    debug_info: dict[str, Any] | None = None,
) -> ErrorResponse:
    """Create a standardized error response.

    Args:
        code: Application error code
        message: Human-readable error message
        request: FastAPI request object for path extraction
        details: List of detailed error information
        debug_info: Debug information (only included in development)
    """
    return ErrorResponse(
        code=code,
        message=message,
        request_id=get_request_id(),
        path=request.url.path if request else None,
        details=details,
        debug=debug_info,
    )


def _log_error(
    error: Exception,
    code: ErrorCode,
    status_code: int,
) -> None:
    """Log error with appropriate level and context."""
    ctx = get_request_context()
    log_context = ctx.to_log_context() if ctx else {}
    log_context["error_code"] = code.value
    log_context["status_code"] = status_code

    if status_code >= 500:
        logger.error(
            f"Server error: {code.value} - {error}",
            exc_info=True,
            **log_context,
        )
    elif status_code >= 400:
        logger.warning(
            f"Client error: {code.value} - {error}",
            **log_context,
        )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle application-specific exceptions."""
    status_code = get_status_code(exc.code)

    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "cause": str(exc.cause) if exc.cause else None,
        }

    details = None
    if exc.details:
        if "errors" in exc.details:
            details = [ErrorDetail(**e) for e in exc.details["errors"]]
        else:
            details = [ErrorDetail(message=str(v), field=k) for k, v in exc.details.items()]

    error_response = _create_error_response(
        code=exc.code,
        message=exc.message,
        request=request,
        details=details,
        debug_info=debug_info,
    )

    _log_error(exc, exc.code, status_code)

    return JSONResponse(
        status_code=status_code,
        content=error_response.to_dict(include_debug=settings.debug),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPException with consistent formatting."""
    status_to_code = {
        400: ErrorCode.VALIDATION_BAD_REQUEST,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        413: ErrorCode.FILE_TOO_LARGE,
        422: ErrorCode.VALIDATION_ERROR,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        503: ErrorCode.EXTERNAL_TIMEOUT,
    }

    code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {"original_status": exc.status_code}

    error_response = _create_error_response(
        code=code,
        message=message,
        request=request,
        debug_info=debug_info,
    )

    _log_error(exc, code, exc.status_code)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.to_dict(include_debug=settings.debug),
    )


def _field_errors(errors: Any) -> list[ErrorDetail]:
    return [
        ErrorDetail(
            field=".".join(str(loc) for loc in error["loc"]),
            message=error["msg"],
            code=error["type"],
        )
        for error in errors
    ]


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle Pydantic validation errors from request parsing."""
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        request=request,
        details=_field_errors(exc.errors()),
    )

    _log_error(exc, ErrorCode.VALIDATION_ERROR, 422)

    return JSONResponse(
        status_code=422,
        content=error_response.to_dict(),
    )


async def pydantic_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle Pydantic ValidationError from model validation."""
    error_response = _create_error_response(
        code=ErrorCode.VALIDATION_ERROR,
        message="Data validation failed",
        request=request,
        details=_field_errors(exc.errors()),
    )

    _log_error(exc, ErrorCode.VALIDATION_ERROR, 422)

    return JSONResponse(
        status_code=422,
        content=error_response.to_dict(),
    )


async def asyncpg_exception_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    """Handle PostgreSQL database errors."""
    settings = get_settings()
    debug_info = None
    if settings.debug:
        debug_info = {
            "pg_error_code": getattr(exc, "sqlstate", None),
            "pg_error_class": type(exc).__name__,
        }

    error_response = _create_error_response(
        code=ErrorCode.DATABASE_ERROR,
        message="Database operation failed",
        request=request,
        debug_info=debug_info,
    )

    _log_error(exc, ErrorCode.DATABASE_ERROR, 500)

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions with graceful degradation."""
    settings = get_settings()

    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {exc}",
        exc_info=True,
        request_id=get_request_id(),
        path=request.url.path,
    )

    debug_info = None
    if settings.debug:
        debug_info = {
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "traceback": traceback.format_exc(),
        }

    error_response = _create_error_response(
        code=ErrorCode.INTERNAL_UNEXPECTED,
        message="An unexpected error occurred",
        request=request,
        debug_info=debug_info,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.to_dict(include_debug=settings.debug),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Call this in main.py after creating the FastAPI app:
        register_exception_handlers(app)
    """
    # Starlette's signature expects Exception; narrower handler types are safe at runtime
    app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(HTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(ValidationError, pydantic_exception_handler)  # type: ignore[arg-type]

    app.add_exception_handler(asyncpg.PostgresError, asyncpg_exception_handler)  # type: ignore[arg-type]

    # Catch-all for unexpected exceptions
    app.add_exception_handler(Exception, generic_exception_handler)


__all__ = [
    "AppException",
    "BlobWriteError",
    "ChunkCountMismatch",
    "ChunkMissing",
    "DatabaseError",
    "FileNotFoundError",
    "FileTooLargeError",
    "ResourceNotFoundError",
    "StorageIntegrityError",
    "UploadBatchFailed",
    "UpstreamUnavailable",
    "ValidationException",
    "app_exception_handler",
    "asyncpg_exception_handler",
    "generic_exception_handler",
    "http_exception_handler",
    "pydantic_exception_handler",
    "register_exception_handlers",
    "validation_exception_handler",
]
