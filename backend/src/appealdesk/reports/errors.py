"""Error kinds raised by the report store.

Every filesystem or encoding failure inside the store is translated into one
of these before it leaves the store, so callers never see a raw ``OSError``.
"""


class ReportError(Exception):
    """Base class for report store failures."""

    code = "REPORT_ERROR"

    def __init__(self, message: str, filename: str | None = None):
        self.message = message
        self.filename = filename
        super().__init__(message)


class InvalidReportFormatError(ReportError):
    """Requested name does not carry an allowed report extension."""

    code = "INVALID_REPORT_FORMAT"

    def __init__(self, filename: str, allowed: tuple[str, ...]):
        self.allowed = allowed
        super().__init__(
            f"Invalid report format: expected one of {', '.join(allowed)}",
            filename=filename,
        )


class ReportNotFoundError(ReportError):
    """No report file exists under the sanitized name."""

    code = "NOT_FOUND"

    def __init__(self, filename: str):
        super().__init__(f"Report not found: {filename}", filename=filename)


class NoReportsAvailableError(ReportError):
    """An archive was requested while the reports directory is empty or missing."""

    code = "NO_REPORTS_AVAILABLE"

    def __init__(self):
        super().__init__("No reports available")


class ArchiveEncodingError(ReportError):
    """The archive could not be assembled after streaming started."""

    code = "ARCHIVE_ENCODING_ERROR"


class ReportStorageError(ReportError):
    """The reports directory could not be read."""

    code = "REPORT_STORAGE_ERROR"
