"""Streaming ZIP assembly for report bundles.

The archive is written by :mod:`zipfile` into a non-seekable buffer, which
puts ``zipfile`` into streaming mode: each entry is emitted as local header,
compressed data and a trailing data descriptor, and nothing ever needs to be
rewritten. The buffer is drained after every step so only one read chunk and
its compressed output are held in memory, regardless of how many reports the
bundle contains or how large they are.
"""

import asyncio
import io
import threading
import time
import zipfile
from contextlib import aclosing, suppress
from pathlib import Path
from typing import AsyncIterator, BinaryIO
from uuid import uuid4

from ..logging import (
    log_archive_cancelled,
    log_archive_completed,
    log_archive_failed,
    log_archive_started,
)
from .errors import ArchiveEncodingError
from .sinks import ArchiveSink

ZIP_MEDIA_TYPE = "application/zip"


class _ChunkBuffer(io.RawIOBase):
    """Write-only, non-seekable target handed to ``zipfile``."""

    def __init__(self):
        super().__init__()
        self._chunks: list[bytes] = []
        self._size = 0

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        data = bytes(b)
        self._chunks.append(data)
        self._size += len(data)
        return len(data)

    def __len__(self) -> int:
        return self._size

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        self._size = 0
        return data


def _set_compress_level(zinfo: zipfile.ZipInfo, level: int) -> None:
    # Renamed to a public attribute in Python 3.13.
    if hasattr(zipfile.ZipInfo, "compress_level"):
        zinfo.compress_level = level
    else:
        zinfo._compresslevel = level


class _ZipEncoder:
    """Blocking half of the archive stream.

    Every method may touch the disk or run zlib, so the async side calls them
    through ``asyncio.to_thread``. :meth:`abort` is the exception: it only
    closes handles and runs inline so it still executes under cancellation.
    A cancelled ``to_thread`` call keeps running in its worker, so every step
    holds ``_lock`` and :meth:`abort` waits for the step in flight.
    """

    def __init__(self, compression_level: int, chunk_size: int):
        self._level = compression_level
        self._chunk_size = chunk_size
        self._buffer = _ChunkBuffer()
        self._zip = zipfile.ZipFile(
            self._buffer,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        )
        self._source: BinaryIO | None = None
        self._target: BinaryIO | None = None
        self._lock = threading.Lock()

    def begin_entry(self, name: str, path: Path) -> None:
        """Open ``path`` and write the local header for ``name``."""
        with self._lock:
            self._source = open(path, "rb")
            zinfo = zipfile.ZipInfo.from_file(path, arcname=name, strict_timestamps=False)
            zinfo.compress_type = zipfile.ZIP_DEFLATED
            _set_compress_level(zinfo, self._level)
            self._target = self._zip.open(zinfo, mode="w")

    def pump(self) -> tuple[bytes, bool]:
        """Compress input until a chunk of output is ready or the entry ends.

        Returns:
            Tuple of (archive bytes ready to send, whether the entry is complete)
        """
        with self._lock:
            while len(self._buffer) < self._chunk_size:
                data = self._source.read(self._chunk_size)
                if not data:
                    self._end_entry()
                    return self._buffer.drain(), True
                self._target.write(data)
            return self._buffer.drain(), False

    def _end_entry(self) -> None:
        target, self._target = self._target, None
        source, self._source = self._source, None
        try:
            # Writes the data descriptor (CRC and sizes)
            target.close()
        finally:
            source.close()

    def finish(self) -> bytes:
        """Write the central directory and return the remaining bytes."""
        with self._lock:
            self._zip.close()
            return self._buffer.drain()

    def abort(self) -> None:
        """Release file handles and encoder state without finishing the archive."""
        with self._lock:
            if self._target is not None:
                target, self._target = self._target, None
                with suppress(Exception):
                    target.close()
            if self._source is not None:
                source, self._source = self._source, None
                source.close()
            with suppress(Exception):
                self._zip.close()
            self._buffer.drain()


class ArchiveStream:
    """One ZIP bundle over a fixed snapshot of report files.

    The stream is single-use: iterate it once, either directly (``async for``)
    or by handing it to :meth:`write_to`. Entries are stored flat under their
    own file names, in snapshot order.
    """

    def __init__(
        self,
        entries: list[tuple[str, Path]],
        filename: str = "reports.zip",
        compression_level: int = 9,
        chunk_size: int = 64 * 1024,
    ):
        self.archive_id = uuid4().hex[:12]
        self.filename = filename
        self._entries = list(entries)
        self._compression_level = compression_level
        self._chunk_size = chunk_size
        self._consumed = False

    @property
    def entry_names(self) -> list[str]:
        return [name for name, _ in self._entries]

    @property
    def media_type(self) -> str:
        return ZIP_MEDIA_TYPE

    @property
    def headers(self) -> dict[str, str]:
        """Response framing for the bundle."""
        return {
            "Content-Type": ZIP_MEDIA_TYPE,
            "Content-Disposition": f'attachment; filename="{self.filename}"',
        }

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    async def iter_chunks(self) -> AsyncIterator[bytes]:
        """Yield the archive bytes incrementally.

        Raises:
            ArchiveEncodingError: if a file cannot be read or compressed
            RuntimeError: if the stream was already consumed
        """
        if self._consumed:
            raise RuntimeError(f"Archive {self.archive_id} has already been streamed")
        self._consumed = True

        started = time.monotonic()
        entries_written = 0
        bytes_sent = 0
        current: str | None = None
        finished = False
        failed = False
        encoder: _ZipEncoder | None = None

        log_archive_started(self.archive_id, len(self._entries))
        try:
            try:
                encoder = _ZipEncoder(self._compression_level, self._chunk_size)
                for name, path in self._entries:
                    current = name
                    await asyncio.to_thread(encoder.begin_entry, name, path)
                    done = False
                    while not done:
                        data, done = await asyncio.to_thread(encoder.pump)
                        if data:
                            bytes_sent += len(data)
                            yield data
                    entries_written += 1

                current = None
                tail = await asyncio.to_thread(encoder.finish)
                finished = True
            except Exception as e:
                failed = True
                log_archive_failed(self.archive_id, current, str(e))
                raise ArchiveEncodingError(
                    f"Failed to build archive at {current or 'central directory'}: {e}",
                    filename=current,
                ) from e

            if tail:
                bytes_sent += len(tail)
                yield tail

            log_archive_completed(
                self.archive_id,
                entries_written,
                bytes_sent,
                round(time.monotonic() - started, 3),
            )
        finally:
            if not finished:
                if encoder is not None:
                    encoder.abort()
                if not failed:
                    log_archive_cancelled(self.archive_id, entries_written)

    async def write_to(self, sink: ArchiveSink) -> int:
        """Declare framing on ``sink`` and push the whole archive into it.

        Returns:
            Number of archive bytes written

        Raises:
            ArchiveEncodingError: if encoding or a sink write fails
        """
        for name, value in self.headers.items():
            sink.set_header(name, value)

        total = 0
        async with aclosing(self.iter_chunks()) as chunks:
            async for chunk in chunks:
                try:
                    await sink.write(chunk)
                except Exception as e:
                    log_archive_failed(self.archive_id, None, f"sink write failed: {e}")
                    raise ArchiveEncodingError(f"Failed to write archive: {e}") from e
                total += len(chunk)
        return total
