"""Correlation keys and SIP call flows over a parsed entry collection."""

import re
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from logscrub.engine import sort_entries
from logscrub.models import LogEntry

# LogEntry attributes collected by the index
CORRELATION_KINDS = (
    "report_id", "operator_id", "extension_id", "station_id", "call_id", "file_name",
)

_UUID_PREFIX_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}", re.IGNORECASE)
_SIP_USER_RE = re.compile(r"sips?:([^@;>]+)")


@dataclass
class CorrelationIndex:
    report_ids: list[str] = field(default_factory=list)
    operator_ids: list[str] = field(default_factory=list)
    extension_ids: list[str] = field(default_factory=list)
    station_ids: list[str] = field(default_factory=list)
    call_ids: list[str] = field(default_factory=list)
    file_names: list[str] = field(default_factory=list)
    counts: Counter = field(default_factory=Counter)  # (kind, value) -> entries

    def values(self, kind: str) -> list[str]:
        return getattr(self, kind + "s")

    def ranked(self, kind: str, by_count: bool = False) -> list[str]:
        """Values of one kind, UUID-shaped call ids first, then by count or name."""
        def key(value: str):
            uuid_rank = 0 if kind == "call_id" and _UUID_PREFIX_RE.match(value) else 1
            count_rank = -self.counts[(kind, value)] if by_count else 0
            return uuid_rank, count_rank, value

        return sorted(self.values(kind), key=key)


def build_correlation_index(entries: Iterable[LogEntry]) -> CorrelationIndex:
    """Collect the distinct correlation keys present in ``entries``."""
    found: dict[str, set[str]] = {kind: set() for kind in CORRELATION_KINDS}
    counts = Counter()

    for entry in entries:
        for kind in CORRELATION_KINDS:
            value = getattr(entry, kind)
            if value:
                found[kind].add(value)
                counts[(kind, value)] += 1

    return CorrelationIndex(
        report_ids=sorted(found["report_id"]),
        operator_ids=sorted(found["operator_id"]),
        extension_ids=sorted(found["extension_id"]),
        station_ids=sorted(found["station_id"]),
        call_ids=sorted(found["call_id"]),
        file_names=sorted(found["file_name"]),
        counts=counts,
    )


def group_call_flows(entries: Iterable[LogEntry]) -> dict[str, list[LogEntry]]:
    """Entries that carry a Call-ID, grouped per call in timestamp order."""
    flows: dict[str, list[LogEntry]] = defaultdict(list)
    for entry in entries:
        if entry.call_id:
            flows[entry.call_id].append(entry)
    return {call_id: sort_entries(group) for call_id, group in sorted(flows.items())}


def sip_user(uri: str) -> str:
    """``"Bob" <sip:1017@pbx.local>;tag=x`` -> ``1017``."""
    m = _SIP_USER_RE.search(uri)
    return m.group(1) if m else uri


def call_participants(flow: Iterable[LogEntry]) -> list[str]:
    """Distinct From/To users of a call, in order of first appearance."""
    seen: list[str] = []
    for entry in flow:
        for uri in (entry.sip_from, entry.sip_to):
            if uri:
                user = sip_user(uri)
                if user not in seen:
                    seen.append(user)
    return seen
