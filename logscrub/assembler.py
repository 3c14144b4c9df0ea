"""Per-dialect line assemblers.

Each assembler is a two-state machine owned by a single parse run:

  IDLE        no entry open; non-matching lines are dropped
  ASSEMBLING  one partial entry open; continuation lines extend its payload

An entry-start line finalizes the open entry (enrich + emit) before opening
the next one, and ``finish()`` finalizes whatever is still open at end of
input. ``_finalize`` is the only ASSEMBLING -> IDLE transition.
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from logscrub.config import ParserConfig
from logscrub.correlation import extract_correlation, normalize_display
from logscrub.models import Dialect, LogEntry, LogLevel, normalize_level
from logscrub.sip import enrich_sip
from logscrub.timestamps import (
    HeaderGrammar,
    get_zone,
    parse_iso8601,
    resolve_header_timestamp,
    wall_clock_ms,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Entry-start grammars
# ---------------------------------------------------------------------------

# [INFO] [12/17/2024, 09:18:05] [component]: message
LEGACY_ENTRY_RE = re.compile(
    r"^\[(INFO|DEBUG|ERROR|WARN)\]\s\[(\d{1,2}/\d{1,2}/\d{4}),\s(.*?)\]\s\[(.*?)\]:\s(.*)"
)

# [INFO] [2025-12-17 09:18:05,686] [component] message
ISO_ENTRY_RE = re.compile(
    r"^\[(INFO|DEBUG|ERROR|WARN)\]\s\[(\d{4}-\d{2}-\d{2})\s(\d{2}:\d{2}:\d{2},\d+)\]\s\[(.*?)\]\s(.*)"
)

# proto:TCP 2026-01-09T22:46:45.367125Z 10.0.0.1:5060 ---> 10.0.0.2:5060
HOMER_HEADER_RE = re.compile(
    r"^proto:(\S+)\s+(\S+)\s+(\S+)\s*(--->|<---|&lt;---)\s*(\S+)", re.IGNORECASE
)

# "date","host","service","{""log"": {...}}"
CSV_ROW_RE = re.compile(r'^"([^"]+)","([^"]+)","([^"]+)","(.+)"$')

_DD_CALL_ID_RE = re.compile(r"callId[=:]\s*([^\s;,\[\]\(\)]+)", re.IGNORECASE)
_DD_CALL_ID_HEADER_RE = re.compile(r"Call-ID:\s*(\S+)", re.IGNORECASE)

HOMER_COMPONENT = "Homer SIP"
TRUNCATION_MARKER = "[... payload truncated]"


class AssemblerState(Enum):
    IDLE = "idle"
    ASSEMBLING = "assembling"


@dataclass
class PartialEntry:
    """Entry under construction. Header fields are fixed at creation."""

    id: int
    timestamp: int
    raw_timestamp: str
    level: LogLevel
    component: str
    message: str
    payload_lines: list[str] = field(default_factory=list)
    payload_chars: int = 0
    truncated: bool = False
    extra: dict[str, Any] = field(default_factory=dict)


def enrich(entry: LogEntry) -> LogEntry:
    """Correlation ids, then SIP fields. Idempotent."""
    return enrich_sip(extract_correlation(entry))


class LineAssembler:
    """Shared cursor handling; subclasses recognise their own entry-starts."""

    dialect: Dialect

    def __init__(
        self,
        file_name: str = "",
        file_color: str = "",
        start_id: int = 1,
        config: ParserConfig | None = None,
    ):
        self.config = config or ParserConfig()
        self.file_name = file_name
        self.file_color = file_color
        self._zone = get_zone(self.config.timezone)
        self._next_id = start_id
        self._open: PartialEntry | None = None
        self.lines_seen = 0
        self.lines_dropped = 0
        self.rows_skipped = 0
        self.entries_emitted = 0

    @property
    def state(self) -> AssemblerState:
        return AssemblerState.IDLE if self._open is None else AssemblerState.ASSEMBLING

    @property
    def last_id(self) -> int:
        """Highest id handed out so far (start_id - 1 if none)."""
        return self._next_id - 1

    def feed(self, line: str) -> list[LogEntry]:
        """Consume one line (no trailing newline). Returns finalized entries."""
        self.lines_seen += 1
        return self._consume(line)

    def finish(self) -> list[LogEntry]:
        """End of input: finalize the last open entry, if any."""
        if self.lines_dropped:
            logger.debug("%s: dropped %d line(s) before the first entry",
                         self.file_name or "<input>", self.lines_dropped)
        return self._finalize()

    def _consume(self, line: str) -> list[LogEntry]:
        raise NotImplementedError

    # -- transitions --------------------------------------------------------

    def _start(self, partial: PartialEntry) -> list[LogEntry]:
        emitted = self._finalize()
        self._open = partial
        return emitted

    def _finalize(self) -> list[LogEntry]:
        if self._open is None:
            return []
        partial, self._open = self._open, None
        entry = self._display(enrich(self._build(partial)))
        self.entries_emitted += 1
        return [entry]

    def _continue(self, line: str) -> None:
        if self._open is None:
            self.lines_dropped += 1
            return
        self._append(self._open, line)

    def _append(self, partial: PartialEntry, line: str) -> None:
        if partial.truncated:
            return

        cap = self.config.max_payload_chars
        added = len(line) + (1 if partial.payload_lines else 0)
        if cap is not None and partial.payload_chars + added > cap:
            room = max(cap - partial.payload_chars - (1 if partial.payload_lines else 0), 0)
            if room:
                partial.payload_lines.append(line[:room])
            partial.payload_lines.append(TRUNCATION_MARKER)
            partial.truncated = True
            logger.debug("Payload of entry %d truncated at %d chars", partial.id, cap)
            return

        partial.payload_lines.append(line)
        partial.payload_chars += added

    def _allocate_id(self) -> int:
        entry_id = self._next_id
        self._next_id += 1
        return entry_id

    # -- entry construction -------------------------------------------------

    def _build(self, partial: PartialEntry) -> LogEntry:
        return LogEntry(
            id=partial.id,
            timestamp=partial.timestamp,
            raw_timestamp=partial.raw_timestamp,
            level=partial.level,
            component=partial.component,
            message=partial.message,
            payload="\n".join(partial.payload_lines),
            file_name=self.file_name,
            file_color=self.file_color,
        )

    def _display(self, entry: LogEntry) -> LogEntry:
        return normalize_display(entry, self.config.service_mappings)


class TaggedBracketAssembler(LineAssembler):
    """``[LEVEL] [date, time] [component]: message`` logs, both date styles."""

    dialect = Dialect.TAGGED_BRACKET

    def _consume(self, line: str) -> list[LogEntry]:
        if not line.strip():
            return []

        grammar = HeaderGrammar.LEGACY
        m = LEGACY_ENTRY_RE.match(line)
        if not m:
            m = ISO_ENTRY_RE.match(line)
            grammar = HeaderGrammar.ISO

        if not m:
            self._continue(line)
            return []

        level, date_str, time_str, component, message = m.groups()
        message = message.strip()
        timestamp, raw = resolve_header_timestamp(message, date_str, time_str, grammar, self._zone)
        return self._start(PartialEntry(
            id=self._allocate_id(),
            timestamp=timestamp,
            raw_timestamp=raw,
            level=LogLevel(level),
            component=component,
            message=message,
        ))


class HomerAssembler(LineAssembler):
    """Homer SIP capture exports: a ``proto:`` header, then the raw message."""

    dialect = Dialect.HOMER

    def _consume(self, line: str) -> list[LogEntry]:
        trimmed = line.strip()
        m = HOMER_HEADER_RE.match(trimmed)
        if m:
            proto, ts, src, arrow, dst = m.groups()
            timestamp = parse_iso8601(ts, self._zone)
            if timestamp is None:
                logger.debug("Unparseable Homer timestamp %r, using wall clock", ts)
                timestamp = wall_clock_ms()
            arrow_text = "→" if arrow == "--->" else "←"
            return self._start(PartialEntry(
                id=self._allocate_id(),
                timestamp=timestamp,
                raw_timestamp=ts,
                level=LogLevel.INFO,
                component=HOMER_COMPONENT,
                message="",
                extra={"route": f"{src} {arrow_text} {dst}", "proto": proto},
            ))

        if self._open is not None and not self._open.payload_lines and not trimmed:
            return []
        self._continue(line)
        return []

    def _build(self, partial: PartialEntry) -> LogEntry:
        body = list(partial.payload_lines)
        while body and not body[-1].strip():
            body.pop()

        route = partial.extra["route"]
        limit = self.config.message_max_length
        first = body[0].strip() if body else ""
        if first:
            if len(first) > limit:
                first = first[:limit] + "..."
            message = f"[{route}] {first}"
        else:
            message = f"{partial.extra['proto']} {route}"

        return LogEntry(
            id=partial.id,
            timestamp=partial.timestamp,
            raw_timestamp=partial.raw_timestamp,
            level=partial.level,
            component=partial.component,
            message=message,
            payload="\n".join(body),
            is_sip=True,
            file_name=self.file_name,
            file_color=self.file_color,
        )

    def _display(self, entry: LogEntry) -> LogEntry:
        return replace(entry, display_component=entry.component, display_message=entry.message)


class DatadogCsvAssembler(LineAssembler):
    """Datadog CSV exports: one complete entry per row, JSON in field four."""

    dialect = Dialect.DATADOG_CSV

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._rows = 0

    def _consume(self, line: str) -> list[LogEntry]:
        stripped = line.strip()
        if not stripped:
            return []
        self._rows += 1

        try:
            row = self._parse_row(stripped)
        except ValueError as e:
            if self._rows == 1 and self._looks_like_header(stripped):
                logger.debug("Treating first CSV line as header: %s", stripped[:80])
            else:
                self.rows_skipped += 1
                logger.warning("Skipping CSV row %d: %s", self._rows, e)
            return []

        emitted = self._start(self._row_entry(*row))
        return emitted + self._finalize()

    @staticmethod
    def _looks_like_header(line: str) -> bool:
        """Header rows lack the row shape or a JSON object in field four."""
        m = CSV_ROW_RE.match(line)
        return m is None or not m.group(4).lstrip().startswith("{")

    @staticmethod
    def _parse_row(line: str) -> tuple[str, str, str, dict]:
        m = CSV_ROW_RE.match(line)
        if not m:
            raise ValueError("unexpected shape")

        iso_date, host, service, content = m.groups()
        try:
            data = json.loads(content.replace('""', '"'))
        except (json.JSONDecodeError, RecursionError) as e:
            raise ValueError(f"invalid JSON ({e})") from e

        log = data.get("log") if isinstance(data, dict) else None
        if not isinstance(log, dict):
            raise ValueError("no 'log' object")
        return iso_date, host, service, log

    def _row_entry(self, iso_date: str, host: str, service: str, log: dict) -> PartialEntry:
        timestamp = parse_iso8601(iso_date, self._zone)
        if timestamp is None and isinstance(log.get("timestamp"), str):
            timestamp = parse_iso8601(log["timestamp"], self._zone)
        if timestamp is None:
            timestamp = wall_clock_ms()

        message = str(log.get("message") or "")
        extra: dict[str, Any] = {"file_name": f"{host}-{service}"}

        call_id = _DD_CALL_ID_RE.search(message) or _DD_CALL_ID_HEADER_RE.search(message)
        if call_id:
            extra["call_id"] = call_id.group(1).strip()

        partial = PartialEntry(
            id=self._allocate_id(),
            timestamp=timestamp,
            raw_timestamp=str(log.get("timestamp") or iso_date),
            level=normalize_level(log.get("logLevel")),
            component=str(log.get("logSource") or service or "Unknown"),
            message=message,
            extra=extra,
        )
        for line in self._payload_lines(log):
            self._append(partial, line)
        return partial

    @staticmethod
    def _payload_lines(log: dict) -> list[str]:
        parts: list[str] = []
        machine = log.get("machineData")
        if isinstance(machine, dict):
            parts.append(f"Machine: {machine.get('name') or ''}")
            parts.append(f"Stack: {machine.get('stack') or ''}")
            parts.append(f"Call Center: {machine.get('callCenterName') or ''}")
        if log.get("threadName"):
            parts.append(f"Thread: {log['threadName']}")
        if log.get("optionCause"):
            if parts:
                parts.append("")
            parts.append("Exception:")
            parts.extend(str(log["optionCause"]).split("\n"))
        return parts

    def _build(self, partial: PartialEntry) -> LogEntry:
        entry = super()._build(partial)
        return replace(
            entry,
            payload=entry.payload.strip(),
            file_name=partial.extra["file_name"],
            call_id=partial.extra.get("call_id"),
        )


ASSEMBLERS: dict[Dialect, type[LineAssembler]] = {
    Dialect.TAGGED_BRACKET: TaggedBracketAssembler,
    Dialect.HOMER: HomerAssembler,
    Dialect.DATADOG_CSV: DatadogCsvAssembler,
}


def make_assembler(
    dialect: Dialect,
    file_name: str = "",
    file_color: str = "",
    start_id: int = 1,
    config: ParserConfig | None = None,
) -> LineAssembler:
    return ASSEMBLERS[dialect](file_name, file_color, start_id, config)
