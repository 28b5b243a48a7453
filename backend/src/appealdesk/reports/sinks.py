"""Output targets for archive streams.

A sink only needs to accept response headers and byte chunks. The HTTP layer
does not use a sink at all (Starlette pulls chunks from the stream); sinks
serve callers that push, such as the CLI export and the tests.
"""

import asyncio
import io
import os
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable


@runtime_checkable
class ArchiveSink(Protocol):
    """Anything that can receive archive framing and bytes."""

    def set_header(self, name: str, value: str) -> None:
        ...

    async def write(self, data: bytes) -> None:
        ...


class BufferSink:
    """Collects an archive in memory."""

    def __init__(self):
        self.headers: dict[str, str] = {}
        self.write_count = 0
        self._buffer = io.BytesIO()

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    async def write(self, data: bytes) -> None:
        self._buffer.write(data)
        self.write_count += 1

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()

    @property
    def size(self) -> int:
        return self._buffer.tell()


class FileSink:
    """Writes an archive to a local file.

    Bytes go to ``<path>.part`` first and the file is renamed into place only
    when the sink is closed without an error, so a failed export never leaves
    a truncated archive under the final name.

    Usage:
        async with FileSink(Path("out/reports.zip")) as sink:
            await store.stream_all_reports_as_zip(sink)
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self.headers: dict[str, str] = {}
        self.bytes_written = 0
        self._partial = self.path.with_name(self.path.name + ".part")
        self._fh: BinaryIO | None = None

    def set_header(self, name: str, value: str) -> None:
        # Files have no framing; kept so callers can inspect what was declared.
        self.headers[name] = value

    async def write(self, data: bytes) -> None:
        if self._fh is None:
            self._fh = await asyncio.to_thread(self._partial.open, "wb")
        await asyncio.to_thread(self._fh.write, data)
        self.bytes_written += len(data)

    async def commit(self) -> None:
        """Close the file and move it to its final name."""
        if self._fh is None:
            return
        fh, self._fh = self._fh, None
        await asyncio.to_thread(fh.close)
        await asyncio.to_thread(os.replace, self._partial, self.path)

    async def discard(self) -> None:
        """Close and delete the partial file."""
        if self._fh is not None:
            fh, self._fh = self._fh, None
            await asyncio.to_thread(fh.close)
        await asyncio.to_thread(self._partial.unlink, missing_ok=True)

    async def __aenter__(self) -> "FileSink":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            await self.commit()
        else:
            await self.discard()
