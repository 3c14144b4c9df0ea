"""Parse runs: sniff the dialect, stream lines through one assembler.

Every run owns its reader, its assembler and therefore its open-entry
cursor, so independent runs can be awaited concurrently as long as they
are given non-overlapping id ranges.
"""

import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Iterable

from logscrub.assembler import LineAssembler, make_assembler
from logscrub.config import ParserConfig
from logscrub.detector import detect_dialect
from logscrub.models import Dialect, LogEntry
from logscrub.reader import BOM, ByteSource, ChunkedLineReader, ProgressCallback, split_lines

logger = logging.getLogger(__name__)


@dataclass
class ParseStats:
    file_name: str = ""
    dialect: Dialect | None = None
    bytes_read: int = 0
    lines: int = 0
    entries: int = 0
    lines_dropped: int = 0
    rows_skipped: int = 0
    windows: int = 0
    elapsed_ms: float = 0.0
    first_id: int | None = None
    last_id: int | None = None


def sort_entries(entries: Iterable[LogEntry]) -> list[LogEntry]:
    """Stable sort by timestamp; ties keep emission order."""
    return sorted(entries, key=lambda e: e.timestamp)


def sniff_text(data: bytes, encoding: str = "utf-8") -> str:
    return data.decode(encoding, errors="replace").removeprefix(BOM)


class ParseRun:
    """A single parse of one source.

    ``entries()`` may be iterated once. ``stats`` is filled in as the run
    advances and is complete when the iteration ends.
    """

    def __init__(
        self,
        source: ByteSource,
        color_tag: str = "",
        start_id: int = 1,
        progress_callback: ProgressCallback | None = None,
        config: ParserConfig | None = None,
    ):
        self.source = source
        self.color_tag = color_tag
        self.start_id = start_id
        self.config = config or ParserConfig()
        self.reader = ChunkedLineReader(source, self.config, progress_callback)
        self.assembler: LineAssembler | None = None
        self.stats = ParseStats(file_name=source.name)

    async def detect(self) -> Dialect:
        length = min(self.config.sniff_bytes, self.source.size)
        prefix = await self.source.slice(0, length) if length else b""
        dialect = detect_dialect(sniff_text(prefix, self.config.encoding), self.source.name)
        logger.debug("Detected %s for %s", dialect.value, self.source.name or "<input>")
        return dialect

    async def entries(self) -> AsyncIterator[LogEntry]:
        started = time.monotonic()
        dialect = await self.detect()
        assembler = make_assembler(
            dialect, self.source.name, self.color_tag, self.start_id, self.config
        )
        self.assembler = assembler
        self.stats.dialect = dialect

        async for line in self.reader:
            for entry in assembler.feed(line):
                self._count(entry)
                yield entry
        for entry in assembler.finish():
            self._count(entry)
            yield entry

        self._close(started)

    def _count(self, entry: LogEntry) -> None:
        if self.stats.first_id is None:
            self.stats.first_id = entry.id
        self.stats.last_id = entry.id
        self.stats.entries += 1

    def _close(self, started: float) -> None:
        s = self.stats
        s.bytes_read = self.reader.bytes_read
        s.windows = self.reader.windows
        s.lines = self.assembler.lines_seen
        s.lines_dropped = self.assembler.lines_dropped
        s.rows_skipped = self.assembler.rows_skipped
        s.elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            "Parsed %s as %s: %d entries from %d lines (%d bytes, %d windows, %.1f ms)",
            s.file_name or "<input>", s.dialect.value, s.entries, s.lines,
            s.bytes_read, s.windows, s.elapsed_ms,
        )
        if s.rows_skipped:
            logger.warning("%s: skipped %d malformed row(s)", s.file_name or "<input>", s.rows_skipped)


async def parse_stream(
    source: ByteSource,
    color_tag: str = "",
    start_id: int = 1,
    progress_callback: ProgressCallback | None = None,
    config: ParserConfig | None = None,
) -> AsyncIterator[LogEntry]:
    """Entries in emission order, as soon as each one is finalized."""
    run = ParseRun(source, color_tag, start_id, progress_callback, config)
    async for entry in run.entries():
        yield entry


async def parse_batches(
    source: ByteSource,
    color_tag: str = "",
    start_id: int = 1,
    progress_callback: ProgressCallback | None = None,
    config: ParserConfig | None = None,
    batch_size: int | None = None,
) -> AsyncIterator[list[LogEntry]]:
    """Entries grouped into lists of ``batch_size`` (last one may be short)."""
    config = config or ParserConfig()
    size = batch_size or config.batch_size
    if size <= 0:
        raise ValueError(f"batch_size must be positive, got {size}")

    batch: list[LogEntry] = []
    async for entry in parse_stream(source, color_tag, start_id, progress_callback, config):
        batch.append(entry)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


async def parse(
    source: ByteSource,
    color_tag: str = "",
    start_id: int = 1,
    progress_callback: ProgressCallback | None = None,
    config: ParserConfig | None = None,
) -> list[LogEntry]:
    """Parse a whole source and return its entries sorted by timestamp."""
    run = ParseRun(source, color_tag, start_id, progress_callback, config)
    return sort_entries([entry async for entry in run.entries()])


def parse_text(
    text: str,
    file_name: str = "",
    color_tag: str = "",
    start_id: int = 1,
    config: ParserConfig | None = None,
) -> list[LogEntry]:
    """Synchronous whole-buffer parse for text already in memory."""
    config = config or ParserConfig()
    text = text.removeprefix(BOM)
    dialect = detect_dialect(text[:config.sniff_bytes], file_name)
    assembler = make_assembler(dialect, file_name, color_tag, start_id, config)

    lines, tail = split_lines(text)
    if tail:
        lines.append(tail[:-1] if tail.endswith("\r") else tail)

    entries: list[LogEntry] = []
    for line in lines:
        entries.extend(assembler.feed(line))
    entries.extend(assembler.finish())
    logger.debug("Parsed %d entries from %s", len(entries), file_name or "<text>")
    return sort_entries(entries)
