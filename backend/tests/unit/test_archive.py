"""Unit tests for streamed report archives.

Covers ReportStore.stream_all_reports_as_zip(), ArchiveStream and the sinks.

Run with: pytest backend/tests/unit/test_archive.py -v
"""

import asyncio
import builtins
import io
import os
import zipfile
from contextlib import aclosing
from unittest.mock import patch

import pytest

from appealdesk.reports import (
    ArchiveEncodingError,
    BufferSink,
    FileSink,
    NoReportsAvailableError,
    ReportStore,
)


def _read_zip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert zf.testzip() is None
        return {name: zf.read(name) for name in zf.namelist()}


class _FailingSink(BufferSink):
    """Accepts a fixed number of writes, then fails like a dropped socket."""

    def __init__(self, fail_after: int):
        super().__init__()
        self.fail_after = fail_after

    async def write(self, data: bytes) -> None:
        if self.write_count >= self.fail_after:
            raise ConnectionResetError("client went away")
        await super().write(data)


@pytest.fixture
def tracked_open():
    """Record every file the archive encoder opens."""
    opened = []
    real_open = builtins.open

    def _open(*args, **kwargs):
        fh = real_open(*args, **kwargs)
        opened.append(fh)
        return fh

    with patch("appealdesk.reports.archive.open", _open, create=True):
        yield opened


@pytest.fixture
def large_store(reports_dir):
    """Store whose reports span many read chunks."""
    (reports_dir / "big_a.xlsx").write_bytes(os.urandom(256 * 1024))
    (reports_dir / "big_b.xlsx").write_bytes(os.urandom(256 * 1024))
    return ReportStore(reports_dir, chunk_size=1024)


class TestStreamAllReportsAsZip:
    """Tests for ReportStore.stream_all_reports_as_zip()."""

    @pytest.mark.asyncio
    async def test_round_trip_matches_files_on_disk(self, populated_store, report_contents):
        sink = BufferSink()

        written = await populated_store.stream_all_reports_as_zip(sink)

        data = sink.getvalue()
        assert written == len(data)
        assert _read_zip(data) == report_contents

    @pytest.mark.asyncio
    async def test_entries_are_flat_and_deflated(self, populated_store):
        sink = BufferSink()

        await populated_store.stream_all_reports_as_zip(sink)

        with zipfile.ZipFile(io.BytesIO(sink.getvalue())) as zf:
            for info in zf.infolist():
                assert "/" not in info.filename
                assert info.compress_type == zipfile.ZIP_DEFLATED

    @pytest.mark.asyncio
    async def test_declares_response_framing(self, populated_store):
        sink = BufferSink()

        await populated_store.stream_all_reports_as_zip(sink)

        assert sink.headers == {
            "Content-Type": "application/zip",
            "Content-Disposition": 'attachment; filename="reports.zip"',
        }

    @pytest.mark.asyncio
    async def test_custom_archive_filename(self, populated_reports_dir):
        store = ReportStore(populated_reports_dir, archive_filename="all_reports.zip")
        sink = BufferSink()

        await store.stream_all_reports_as_zip(sink)

        assert sink.headers["Content-Disposition"] == (
            'attachment; filename="all_reports.zip"'
        )

    @pytest.mark.asyncio
    async def test_empty_directory_writes_nothing(self, store):
        sink = BufferSink()

        with pytest.raises(NoReportsAvailableError):
            await store.stream_all_reports_as_zip(sink)

        assert sink.write_count == 0
        assert sink.size == 0
        assert sink.headers == {}

    @pytest.mark.asyncio
    async def test_missing_directory_writes_nothing(self, tmp_path):
        store = ReportStore(tmp_path / "missing")
        sink = BufferSink()

        with pytest.raises(NoReportsAvailableError):
            await store.stream_all_reports_as_zip(sink)

        assert sink.write_count == 0
        assert sink.headers == {}

    @pytest.mark.asyncio
    async def test_large_reports_stream_in_many_chunks(self, large_store, reports_dir):
        """Archive bytes reach the sink incrementally, not as one buffer."""
        sink = BufferSink()

        await large_store.stream_all_reports_as_zip(sink)

        assert sink.write_count > 4
        contents = _read_zip(sink.getvalue())
        assert contents["big_a.xlsx"] == (reports_dir / "big_a.xlsx").read_bytes()
        assert contents["big_b.xlsx"] == (reports_dir / "big_b.xlsx").read_bytes()

    @pytest.mark.asyncio
    async def test_report_removed_mid_stream_fails(self, populated_store, populated_reports_dir):
        """A file listed in the snapshot but gone at read time is not skipped."""
        archive = populated_store.open_archive()
        (populated_reports_dir / "globex_report.xlsx").unlink()

        with pytest.raises(ArchiveEncodingError) as exc_info:
            await archive.write_to(BufferSink())

        assert exc_info.value.filename == "globex_report.xlsx"
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @pytest.mark.asyncio
    async def test_sink_failure_is_encoding_error(self, large_store, tracked_open):
        sink = _FailingSink(fail_after=2)

        with pytest.raises(ArchiveEncodingError) as exc_info:
            await large_store.stream_all_reports_as_zip(sink)

        assert isinstance(exc_info.value.__cause__, ConnectionResetError)
        assert tracked_open
        assert all(fh.closed for fh in tracked_open)

    @pytest.mark.asyncio
    async def test_concurrent_archives_do_not_interfere(self, populated_store, report_contents):
        sinks = [BufferSink() for _ in range(5)]

        await asyncio.gather(
            *(populated_store.stream_all_reports_as_zip(sink) for sink in sinks)
        )

        for sink in sinks:
            assert _read_zip(sink.getvalue()) == report_contents


class TestArchiveStream:
    """Tests for ArchiveStream produced by ReportStore.open_archive()."""

    def test_open_archive_on_empty_directory(self, store):
        with pytest.raises(NoReportsAvailableError):
            store.open_archive()

    @pytest.mark.asyncio
    async def test_snapshot_is_taken_when_opened(self, populated_store, populated_reports_dir):
        """Reports written after the listing are not part of the archive."""
        archive = populated_store.open_archive()
        (populated_reports_dir / "late_report.xlsx").write_bytes(b"late")

        chunks = [chunk async for chunk in archive]

        assert set(_read_zip(b"".join(chunks))) == {
            "acme_report.xlsx",
            "globex_report.xlsx",
        }
        assert sorted(archive.entry_names) == ["acme_report.xlsx", "globex_report.xlsx"]

    @pytest.mark.asyncio
    async def test_stream_is_single_use(self, populated_store):
        archive = populated_store.open_archive()
        [chunk async for chunk in archive]

        with pytest.raises(RuntimeError):
            [chunk async for chunk in archive]

    @pytest.mark.asyncio
    async def test_abandoned_stream_closes_file_handles(self, large_store, tracked_open):
        """Closing the iterator mid-entry releases the open report file."""
        archive = large_store.open_archive()
        chunks = archive.iter_chunks()

        first = await chunks.__anext__()
        assert first
        await chunks.aclose()

        assert len(tracked_open) == 1
        assert tracked_open[0].closed

    @pytest.mark.asyncio
    async def test_cancelled_consumer_closes_file_handles(self, large_store, tracked_open):
        archive = large_store.open_archive()
        received = asyncio.Event()

        async def consume():
            async with aclosing(archive.iter_chunks()) as chunks:
                async for _ in chunks:
                    received.set()
                    await asyncio.sleep(10)

        task = asyncio.create_task(consume())
        await asyncio.wait_for(received.wait(), timeout=5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert tracked_open
        assert all(fh.closed for fh in tracked_open)

    def test_headers(self, populated_store):
        archive = populated_store.open_archive()

        assert archive.media_type == "application/zip"
        assert archive.headers["Content-Disposition"] == (
            'attachment; filename="reports.zip"'
        )


class TestFileSink:
    """Tests for FileSink."""

    @pytest.mark.asyncio
    async def test_commit_moves_partial_into_place(self, populated_store, tmp_path):
        output = tmp_path / "out" / "reports.zip"
        output.parent.mkdir()

        async with FileSink(output) as sink:
            await populated_store.stream_all_reports_as_zip(sink)

        assert output.exists()
        assert not (tmp_path / "out" / "reports.zip.part").exists()
        assert set(_read_zip(output.read_bytes())) == {
            "acme_report.xlsx",
            "globex_report.xlsx",
        }
        assert sink.bytes_written == output.stat().st_size

    @pytest.mark.asyncio
    async def test_failure_leaves_no_file(self, populated_store, populated_reports_dir, tmp_path):
        output = tmp_path / "reports.zip"
        archive = populated_store.open_archive()
        (populated_reports_dir / "globex_report.xlsx").unlink()

        with pytest.raises(ArchiveEncodingError):
            async with FileSink(output) as sink:
                await archive.write_to(sink)

        assert not output.exists()
        assert not (tmp_path / "reports.zip.part").exists()

    @pytest.mark.asyncio
    async def test_nothing_written_creates_no_file(self, tmp_path):
        output = tmp_path / "reports.zip"

        async with FileSink(output):
            pass

        assert not output.exists()

    @pytest.mark.asyncio
    async def test_discard_runs_off_the_event_loop(self, tmp_path):
        output = tmp_path / "reports.zip"
        sink = FileSink(output)
        await sink.write(b"partial archive")
        assert (tmp_path / "reports.zip.part").exists()

        with patch(
            "appealdesk.reports.sinks.asyncio.to_thread", wraps=asyncio.to_thread
        ) as to_thread:
            await sink.discard()

        assert to_thread.call_count == 2
        assert not (tmp_path / "reports.zip.part").exists()
        assert not output.exists()
