"""Report export: listing, safe single-file access and streamed ZIP bundles."""

from .archive import ZIP_MEDIA_TYPE, ArchiveStream
from .errors import (
    ArchiveEncodingError,
    InvalidReportFormatError,
    NoReportsAvailableError,
    ReportError,
    ReportNotFoundError,
    ReportStorageError,
)
from .limits import ArchiveSlots, SlotLease
from .sinks import ArchiveSink, BufferSink, FileSink
from .store import ReportStore, sanitize_report_name

__all__ = [
    "ZIP_MEDIA_TYPE",
    "ArchiveEncodingError",
    "ArchiveSink",
    "ArchiveSlots",
    "ArchiveStream",
    "BufferSink",
    "FileSink",
    "InvalidReportFormatError",
    "NoReportsAvailableError",
    "ReportError",
    "ReportNotFoundError",
    "ReportStorageError",
    "ReportStore",
    "SlotLease",
    "sanitize_report_name",
]
