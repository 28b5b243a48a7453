"""FastAPI routes and API modules for appealdesk.

Provides common response models, error handlers, and utilities.
"""

from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..logging import get_logger
from ..reports.errors import (
    ArchiveEncodingError,
    InvalidReportFormatError,
    NoReportsAvailableError,
    ReportError,
    ReportNotFoundError,
    ReportStorageError,
)

logger = get_logger(__name__)


# =========================
# Response Models
# =========================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    error: str
    error_code: str
    details: list[ErrorDetail] | None = None


# =========================
# Exception Classes
# =========================


class APIError(HTTPException):
    """Base API error with structured response."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: list[ErrorDetail] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message, headers=headers)


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str, error_code: str = "NOT_FOUND"):
        super().__init__(
            status_code=404,
            error_code=error_code,
            message=message,
        )


class ArchiveBusyError(APIError):
    """Too many archive downloads are already streaming."""

    def __init__(self, retry_after: int = 5):
        super().__init__(
            status_code=429,
            error_code="ARCHIVE_BUSY",
            message=(
                "Too many archive downloads in progress. "
                f"Retry after {retry_after} seconds."
            ),
            headers={"Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after


class ServiceError(APIError):
    """Server-side failure that is safe to describe to the client."""

    def __init__(self, message: str, error_code: str = "INTERNAL_ERROR"):
        super().__init__(
            status_code=500,
            error_code=error_code,
            message=message,
        )


def api_error_from_report_error(exc: ReportError) -> APIError:
    """Translate a report store failure into its HTTP form."""
    if isinstance(exc, (InvalidReportFormatError, ReportNotFoundError)):
        return NotFoundError("Report not found", error_code=exc.code)
    if isinstance(exc, NoReportsAvailableError):
        return NotFoundError(exc.message, error_code=exc.code)
    if isinstance(exc, ReportStorageError):
        return ServiceError("Failed to load reports", error_code=exc.code)
    if isinstance(exc, ArchiveEncodingError):
        return ServiceError("Failed to build report archive", error_code=exc.code)
    return ServiceError(exc.message, error_code=exc.code)


# =========================
# Exception Handlers
# =========================


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    headers = {"X-Error-Code": exc.error_code}
    if exc.headers:
        headers.update(exc.headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            error_code=exc.error_code,
            details=exc.details,
        ).model_dump(),
        headers=headers,
    )


async def report_error_handler(request: Request, exc: ReportError) -> JSONResponse:
    """Handle report store errors that reach the API boundary."""
    api_error = api_error_from_report_error(exc)
    if api_error.status_code >= 500:
        logger.error(f"Report store failure on {request.url.path}: {exc}")
    else:
        logger.info(
            f"Report request rejected: {exc}",
            extra={"path": request.url.path, "error_code": exc.code},
        )
    return await api_error_handler(request, api_error)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle generic HTTPException."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=str(exc.detail),
            error_code="HTTP_ERROR",
        ).model_dump(),
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="An unexpected error occurred",
            error_code="INTERNAL_ERROR",
        ).model_dump(),
    )


def register_exception_handlers(app):
    """Register exception handlers with the FastAPI app."""
    app.add_exception_handler(APIError, api_error_handler)
    # ArchiveEncodingError is left unhandled: it only occurs after the archive
    # response has started, and must reach the server so it drops the connection.
    for exc_class in (
        InvalidReportFormatError,
        ReportNotFoundError,
        NoReportsAvailableError,
        ReportStorageError,
    ):
        app.add_exception_handler(exc_class, report_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
