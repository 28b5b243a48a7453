"""Report store over a flat directory of generated report files.

The directory listing is the only source of truth: nothing is cached, so every
call reflects whatever the report generation job has written so far.
"""

import os
from pathlib import Path, PurePosixPath
from typing import Iterable

from ..config import Settings
from ..logging import get_context_logger
from .archive import ArchiveStream
from .errors import (
    InvalidReportFormatError,
    NoReportsAvailableError,
    ReportNotFoundError,
    ReportStorageError,
)
from .sinks import ArchiveSink

logger = get_context_logger(__name__)


def sanitize_report_name(requested_name: str) -> str:
    """Reduce a client-supplied name to its final path segment.

    Both ``/`` and ``\\`` are treated as separators, so ``../../etc/x.xlsx``,
    ``/etc/x.xlsx`` and ``..\\..\\x.xlsx`` all become ``x.xlsx``.
    """
    return PurePosixPath(requested_name.replace("\\", "/")).name


class ReportStore:
    """List, resolve and archive the reports in one directory.

    The store keeps no mutable state, so one instance can serve any number of
    concurrent requests.
    """

    def __init__(
        self,
        reports_dir: Path | str,
        extensions: Iterable[str] = (".xlsx",),
        archive_filename: str = "reports.zip",
        compression_level: int = 9,
        chunk_size: int = 64 * 1024,
    ):
        self.reports_dir = Path(reports_dir).resolve()
        self.extensions = tuple(extensions)
        if not self.extensions:
            raise ValueError("at least one report extension is required")
        self.archive_filename = archive_filename
        self.compression_level = compression_level
        self.chunk_size = chunk_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReportStore":
        """Build a store from application settings."""
        return cls(
            settings.reports_dir,
            extensions=settings.report_extensions,
            archive_filename=settings.archive_filename,
            compression_level=settings.archive_compression_level,
            chunk_size=settings.archive_chunk_size,
        )

    def has_report_extension(self, name: str) -> bool:
        return name.endswith(self.extensions)

    # =========================
    # Listing
    # =========================

    def list_reports(self) -> list[str]:
        """Names of the report files directly inside the reports directory.

        A missing directory means no reports have been generated yet and
        yields an empty list. Order follows the directory enumeration.

        Raises:
            ReportStorageError: if the directory exists but cannot be read
        """
        try:
            with os.scandir(self.reports_dir) as it:
                return [
                    entry.name
                    for entry in it
                    if self.has_report_extension(entry.name) and entry.is_file()
                ]
        except FileNotFoundError:
            return []
        except OSError as e:
            logger.error(
                f"Failed to list reports: {e}",
                extra={"reports_dir": str(self.reports_dir)},
            )
            raise ReportStorageError(f"Failed to load reports: {e}") from e

    # =========================
    # Single report
    # =========================

    def resolve_report_path(self, requested_name: str) -> Path:
        """Turn an untrusted file name into a path inside the reports directory.

        The returned path's parent is always the reports directory itself, so
        callers may stream it without further checks.

        Raises:
            InvalidReportFormatError: if the name lacks an allowed extension
            ReportNotFoundError: if no report exists under the sanitized name
        """
        if not self.has_report_extension(requested_name):
            raise InvalidReportFormatError(requested_name, self.extensions)

        safe_name = sanitize_report_name(requested_name)
        if safe_name != requested_name:
            logger.warning(
                "Stripped directory components from requested report name",
                extra={"requested": requested_name, "sanitized": safe_name},
            )
        if "\x00" in safe_name:
            raise ReportNotFoundError(safe_name)

        file_path = self.reports_dir / safe_name

        try:
            is_file = file_path.is_file()
        except OSError:
            is_file = False
        if not is_file:
            raise ReportNotFoundError(safe_name)

        return file_path

    # =========================
    # Archive
    # =========================

    def open_archive(self) -> ArchiveStream:
        """Snapshot the current reports into a not-yet-started archive stream.

        Raises:
            NoReportsAvailableError: if there is nothing to archive
            ReportStorageError: if the directory cannot be read
        """
        names = self.list_reports()
        if not names:
            raise NoReportsAvailableError()

        return ArchiveStream(
            [(name, self.reports_dir / name) for name in names],
            filename=self.archive_filename,
            compression_level=self.compression_level,
            chunk_size=self.chunk_size,
        )

    async def stream_all_reports_as_zip(self, sink: ArchiveSink) -> int:
        """Write a ZIP of every current report into ``sink``.

        Nothing, not even a header, reaches the sink when there are no
        reports.

        Returns:
            Number of archive bytes written

        Raises:
            NoReportsAvailableError: if the directory is empty or missing
            ArchiveEncodingError: if the archive fails after streaming began
        """
        archive = self.open_archive()
        return await archive.write_to(sink)
