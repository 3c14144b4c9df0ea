"""Combine several parsed files into one timestamp-ordered collection."""

import logging
from typing import Iterable

from logscrub.config import ParserConfig
from logscrub.engine import ParseStats, ParseRun, sort_entries
from logscrub.models import LogEntry
from logscrub.reader import ByteSource, ProgressCallback

logger = logging.getLogger(__name__)

FILE_COLORS = (
    "#3b82f6",  # blue
    "#eab308",  # yellow
    "#a855f7",  # purple
    "#ec4899",  # pink
    "#22c55e",  # green
    "#f97316",  # orange
    "#06b6d4",  # cyan
    "#64748b",  # slate
)


def color_for(index: int) -> str:
    return FILE_COLORS[index % len(FILE_COLORS)]


class MultiFileMerger:
    """Accumulates entries from many files without id collisions.

    Each added file starts numbering at the highest id seen so far plus one
    and takes the next palette color. After every file the whole collection
    is re-sorted by timestamp (stable).
    """

    def __init__(self, config: ParserConfig | None = None, entries: Iterable[LogEntry] = ()):
        self.config = config or ParserConfig()
        self.entries: list[LogEntry] = sort_entries(entries)
        self.max_id = max((e.id for e in self.entries), default=0)
        self.files_added = 0
        self.stats: list[ParseStats] = []

    async def add_file(
        self, source: ByteSource, progress_callback: ProgressCallback | None = None
    ) -> list[LogEntry]:
        color = color_for(self.files_added)
        run = ParseRun(source, color, self.max_id + 1, progress_callback, self.config)
        parsed = sort_entries([entry async for entry in run.entries()])

        self.files_added += 1
        self.stats.append(run.stats)
        if parsed:
            self.max_id = max(self.max_id, max(e.id for e in parsed))
        self.entries = sort_entries(self.entries + parsed)
        logger.info("Merged %d entries from %s (color %s), %d total",
                    len(parsed), source.name or "<input>", color, len(self.entries))
        return parsed

    async def add_files(
        self, sources: Iterable[ByteSource], progress_callback: ProgressCallback | None = None
    ) -> list[LogEntry]:
        """Add files one after another; progress is reported per file."""
        for source in sources:
            await self.add_file(source, progress_callback)
        return self.entries
