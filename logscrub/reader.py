"""Byte sources and the chunked line reader that feeds the assemblers.

Inputs at or below ``streaming_threshold`` are read in a single window;
larger ones in ``chunk_size`` windows. Each window is decoded
incrementally, joined with the unterminated fragment left over from the
previous window, and split into complete lines. The reader suspends only
between lines, never inside one.
"""

import asyncio
import codecs
import logging
import os
from typing import AsyncIterator, Callable, Protocol

import aiofiles

from logscrub.config import ParserConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

BOM = "\ufeff"


class ByteSource(Protocol):
    """Anything with a name, a known size and random-access reads."""

    name: str

    @property
    def size(self) -> int: ...

    async def slice(self, offset: int, length: int) -> bytes: ...


class FileSource:
    """Reads windows of a file on disk without loading it whole."""

    def __init__(self, path: str, name: str | None = None) -> None:
        self.path = path
        self.name = name if name is not None else os.path.basename(path)
        self._size: int | None = None

    @property
    def size(self) -> int:
        if self._size is None:
            self._size = os.path.getsize(self.path)
        return self._size

    async def slice(self, offset: int, length: int) -> bytes:
        async with aiofiles.open(self.path, mode="rb") as f:
            await f.seek(offset)
            return await f.read(length)

    def __repr__(self) -> str:
        return f"FileSource({self.path!r})"


class MemorySource:
    """In-memory source, mainly for tests and already-loaded exports."""

    def __init__(self, data: bytes | str, name: str = "", encoding: str = "utf-8") -> None:
        self.data = data.encode(encoding) if isinstance(data, str) else data
        self.name = name

    @property
    def size(self) -> int:
        return len(self.data)

    async def slice(self, offset: int, length: int) -> bytes:
        return self.data[offset:offset + length]


def split_lines(text: str) -> tuple[list[str], str]:
    """Complete lines (``\\r`` stripped) plus the unterminated remainder."""
    parts = text.split("\n")
    carry = parts.pop()
    return [p[:-1] if p.endswith("\r") else p for p in parts], carry


class ChunkedLineReader:
    """Async line iterator over a ByteSource.

    Counters (``bytes_read``, ``windows``, ``lines``) are updated as the
    iteration advances and are final once it is exhausted.
    """

    def __init__(
        self,
        source: ByteSource,
        config: ParserConfig | None = None,
        progress_callback: ProgressCallback | None = None,
    ):
        self.source = source
        self.config = config or ParserConfig()
        self.progress_callback = progress_callback
        self.bytes_read = 0
        self.windows = 0
        self.lines = 0
        self._last_progress = 0.0
        self._reported = False

    @property
    def window_size(self) -> int:
        size = self.source.size
        if size <= self.config.streaming_threshold:
            return max(size, 1)
        return self.config.chunk_size

    def _report(self, fraction: float) -> None:
        fraction = min(max(fraction, self._last_progress), 1.0)
        if self._reported and fraction == self._last_progress:
            return
        self._reported = True
        self._last_progress = fraction
        if self.progress_callback is not None:
            self.progress_callback(fraction)

    async def _yield_lines(
        self, lines: list[str], span: tuple[int, int] | None = None,
    ) -> AsyncIterator[str]:
        """Yield lines, pausing every ``yield_every_lines``.

        ``span`` is the byte range the lines came from; progress inside it
        is estimated by line position at each pause.
        """
        every = self.config.yield_every_lines
        size = self.source.size
        for i, line in enumerate(lines, 1):
            yield line
            self.lines += 1
            if self.lines % every == 0:
                if span is not None and size:
                    start, end = span
                    self._report((start + (end - start) * i / len(lines)) / size)
                await asyncio.sleep(0)

    async def __aiter__(self) -> AsyncIterator[str]:
        size = self.source.size
        window = self.window_size
        decoder = codecs.getincrementaldecoder(self.config.encoding)(errors="replace")
        carry = ""
        offset = 0
        first = True

        if size > self.config.streaming_threshold:
            logger.debug("Streaming %s (%d bytes) in %d-byte windows",
                         self.source.name or "<input>", size, window)

        while offset < size:
            data = await self.source.slice(offset, min(window, size - offset))
            if not data:
                logger.warning("%s ended at %d of %d bytes",
                               self.source.name or "<input>", offset, size)
                break
            offset += len(data)
            self.bytes_read = offset
            self.windows += 1

            text = decoder.decode(data)
            if first and text:
                text = text.removeprefix(BOM)
                first = False
            lines, carry = split_lines(carry + text)
            async for line in self._yield_lines(lines, (offset - len(data), offset)):
                yield line

            self._report(offset / size)
            if self.windows % self.config.yield_every_chunks == 0:
                await asyncio.sleep(0)

        tail = carry + decoder.decode(b"", final=True)
        if first:
            tail = tail.removeprefix(BOM)
        if tail:
            async for line in self._yield_lines([tail[:-1] if tail.endswith("\r") else tail]):
                yield line

        self._report(1.0)
