"""Report download endpoints.

GET /reports            JSON list of report file names
GET /reports/all        every report as one streamed ZIP
GET /reports/{filename} a single report as an attachment
"""

import asyncio
import mimetypes
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse, StreamingResponse
from starlette.background import BackgroundTask

from ..logging import get_context_logger, log_report_download
from ..reports import ArchiveSlots, ArchiveStream, ReportStore, SlotLease
from . import ArchiveBusyError, ErrorResponse

logger = get_context_logger(__name__)

router = APIRouter(prefix="/reports")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

# Suffixes the platform mimetypes table may not know
REPORT_MEDIA_TYPES = {
    ".xlsx": XLSX_MEDIA_TYPE,
}

ARCHIVE_RETRY_AFTER_SECONDS = 5


# =========================
# Dependencies
# =========================


def get_report_store(request: Request) -> ReportStore:
    """Report store created at application startup."""
    return request.app.state.report_store


def get_archive_slots(request: Request) -> ArchiveSlots:
    """Archive quota created at application startup."""
    return request.app.state.archive_slots


# =========================
# List Reports
# =========================


@router.get(
    "",
    response_model=list[str],
    responses={500: {"model": ErrorResponse}},
)
@router.get("/", response_model=list[str], include_in_schema=False)
def list_reports(store: ReportStore = Depends(get_report_store)) -> list[str]:
    """List the report files currently available for download.

    Order is not guaranteed.
    """
    return store.list_reports()


# =========================
# Download All (ZIP)
# =========================


async def _stream_archive(archive: ArchiveStream, lease: SlotLease) -> AsyncIterator[bytes]:
    try:
        async for chunk in archive:
            yield chunk
    finally:
        lease.release()


@router.get(
    "/all",
    response_class=StreamingResponse,
    responses={
        200: {"content": {"application/zip": {}}},
        404: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def download_all_reports(
    store: ReportStore = Depends(get_report_store),
    slots: ArchiveSlots = Depends(get_archive_slots),
) -> StreamingResponse:
    """Download every report as a single ZIP archive.

    The archive is compressed and sent while it is being built. If a report
    cannot be read once streaming has started, the connection is dropped
    instead of completing a partial archive.
    """
    lease = slots.try_acquire()
    if lease is None:
        raise ArchiveBusyError(retry_after=ARCHIVE_RETRY_AFTER_SECONDS)

    try:
        archive = await asyncio.to_thread(store.open_archive)
    except Exception:
        lease.release()
        raise

    logger.info(
        "Streaming report archive",
        extra={"archive_id": archive.archive_id, "entries": len(archive.entry_names)},
    )
    return StreamingResponse(
        _stream_archive(archive, lease),
        media_type=archive.media_type,
        headers={"Content-Disposition": archive.headers["Content-Disposition"]},
        # Covers responses whose body iterator never starts
        background=BackgroundTask(lease.release),
    )


# =========================
# Download One
# =========================


@router.get(
    "/{filename:path}",
    response_class=FileResponse,
    responses={404: {"model": ErrorResponse}},
)
def download_report(
    filename: str,
    store: ReportStore = Depends(get_report_store),
) -> FileResponse:
    """Download a single report as an attachment.

    Names without an allowed extension and names that do not exist both
    answer 404.
    """
    path = store.resolve_report_path(filename)
    media_type = (
        REPORT_MEDIA_TYPES.get(path.suffix)
        or mimetypes.guess_type(path.name)[0]
        or "application/octet-stream"
    )
    log_report_download(path.name)
    return FileResponse(path, media_type=media_type, filename=path.name)
