"""Structured logging configuration for appealdesk.

Provides JSON-formatted logs for production and human-readable
logs for development.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from .config import get_settings

# Attributes every LogRecord carries; anything else was passed via ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Fields passed through ``extra=``
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.funcName:
            log_data["function"] = record.funcName
        if record.lineno:
            log_data["line"] = record.lineno

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable log formatter for development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging() -> None:
    """Configure logging based on settings."""
    settings = get_settings()

    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)

    if settings.log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    # Suppress noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logger = get_logger(__name__)
    logger.info(
        "Logging initialized",
        extra={
            "environment": settings.environment,
            "log_level": settings.log_level,
            "log_format": settings.log_format,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context to all log messages."""

    def process(
        self, msg: str, kwargs: dict[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Process the logging message and add extra context."""
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> LoggerAdapter:
    """Get a logger with additional context.

    Args:
        name: Logger name
        **context: Context fields to add to all log messages

    Returns:
        Logger adapter with context

    Usage:
        logger = get_context_logger(__name__, reports_dir="/srv/reports")
        logger.info("Listing reports")  # Includes reports_dir
    """
    return LoggerAdapter(get_logger(name), context)


# =========================
# Convenience functions
# =========================


def log_api_request(
    method: str,
    path: str,
    status_code: int,
    duration_ms: float,
    request_id: str | None = None,
) -> None:
    """Log an API request.

    Args:
        method: HTTP method
        path: Request path
        status_code: Response status code
        duration_ms: Time until the response headers were produced
        request_id: Request correlation ID
    """
    logger = get_logger("appealdesk.api")
    logger.info(
        f"{method} {path} - {status_code}",
        extra={
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "request_id": request_id,
            "event": "api_request",
        },
    )


def log_report_download(filename: str, size_bytes: int | None = None) -> None:
    """Log a single report being handed to a client."""
    logger = get_logger("appealdesk.reports")
    logger.info(
        f"Serving report {filename}",
        extra={
            "report": filename,
            "size_bytes": size_bytes,
            "event": "report_download",
        },
    )


def log_archive_started(archive_id: str, entry_count: int) -> None:
    """Log the start of an archive stream."""
    logger = get_logger("appealdesk.reports")
    logger.info(
        f"Starting archive {archive_id} with {entry_count} report(s)",
        extra={
            "archive_id": archive_id,
            "entry_count": entry_count,
            "event": "archive_start",
        },
    )


def log_archive_completed(
    archive_id: str, entry_count: int, bytes_sent: int, duration_seconds: float
) -> None:
    """Log a finalized archive stream."""
    logger = get_logger("appealdesk.reports")
    logger.info(
        f"Completed archive {archive_id}",
        extra={
            "archive_id": archive_id,
            "entry_count": entry_count,
            "bytes_sent": bytes_sent,
            "duration_seconds": duration_seconds,
            "event": "archive_complete",
        },
    )


def log_archive_failed(archive_id: str, entry: str | None, error: str) -> None:
    """Log an archive stream that could not be finalized."""
    logger = get_logger("appealdesk.reports")
    logger.error(
        f"Archive {archive_id} failed: {error}",
        extra={
            "archive_id": archive_id,
            "entry": entry,
            "error": error,
            "event": "archive_error",
        },
    )


def log_archive_cancelled(archive_id: str, entries_written: int) -> None:
    """Log an archive stream abandoned by its consumer."""
    logger = get_logger("appealdesk.reports")
    logger.warning(
        f"Archive {archive_id} cancelled after {entries_written} entries",
        extra={
            "archive_id": archive_id,
            "entries_written": entries_written,
            "event": "archive_cancelled",
        },
    )
