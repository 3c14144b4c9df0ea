"""Timestamp resolution to epoch milliseconds.

Priority for bracketed entries:
  1. absolute time with a GMT offset embedded in the message body
     (true event time rather than log-shipping time)
  2. header date + time for the matched grammar
  3. wall clock at parse time
Nothing here raises on bad input; callers always get a number.
"""

import logging
import re
import time
from datetime import datetime, timedelta, timezone, tzinfo
from enum import Enum
from functools import lru_cache
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


class HeaderGrammar(Enum):
    LEGACY = "legacy"  # 12/17/2024, 5:04:57 AM,388
    ISO = "iso"        # 2025-12-17 09:18:05,686


EMBEDDED_TS_RE = re.compile(
    r"(\w{3}\s+\w{3}\s+\d{1,2}\s+\d{4}\s+\d{2}:\d{2}:\d{2}\s+GMT[+-]\d{4})"
)

_EMBEDDED_PARTS_RE = re.compile(
    r"^\w{3}\s+(?P<mon>\w{3})\s+(?P<day>\d{1,2})\s+(?P<year>\d{4})\s+"
    r"(?P<h>\d{2}):(?P<m>\d{2}):(?P<s>\d{2})\s+GMT(?P<sign>[+-])(?P<oh>\d{2})(?P<om>\d{2})$"
)

_LEGACY_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

# H:MM[:SS][,fff][ AM/PM][,mmm]
_LEGACY_TIME_RE = re.compile(
    r"^(?P<h>\d{1,2}):(?P<m>\d{2})(?::(?P<s>\d{2}))?"
    r"(?:[.,](?P<frac>\d+))?"
    r"\s*(?P<ampm>[AaPp][Mm])?"
    r"(?:\s*,\s*(?P<ms>\d+))?$"
)

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_TIME_RE = re.compile(r"^(\d{2}):(\d{2}):(\d{2})(?:[.,](\d+))?$")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


@lru_cache(maxsize=32)
def get_zone(name: str | None) -> tzinfo | None:
    """Zone for offset-less header times. None means the host's local time."""
    if not name:
        return None
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def to_millis(dt: datetime) -> int:
    """Epoch millis without float rounding on the sub-second part."""
    whole = int(dt.replace(microsecond=0).timestamp())
    return whole * 1000 + dt.microsecond // 1000


def _fraction_to_ms(frac: str | None) -> int:
    if not frac:
        return 0
    return int(frac[:3].ljust(3, "0"))


def parse_embedded(message: str) -> tuple[int, str] | None:
    """Find 'Wed Dec 17 2025 09:22:17 GMT-0500' in a message."""
    found = EMBEDDED_TS_RE.search(message)
    if not found:
        return None
    raw = found.group(1)
    m = _EMBEDDED_PARTS_RE.match(" ".join(raw.split()))
    if not m:
        return None
    month = _MONTHS.get(m.group("mon").lower())
    if month is None:
        return None
    offset = timedelta(hours=int(m.group("oh")), minutes=int(m.group("om")))
    if m.group("sign") == "-":
        offset = -offset
    try:
        dt = datetime(
            int(m.group("year")), month, int(m.group("day")),
            int(m.group("h")), int(m.group("m")), int(m.group("s")),
            tzinfo=timezone(offset),
        )
    except ValueError:
        return None
    return to_millis(dt), raw


def parse_legacy(date_str: str, time_str: str, zone: tzinfo | None = None) -> int | None:
    """Parse 'M/D/YYYY' + 'H:MM:SS[,mmm][ AM/PM][,mmm]'.

    A fraction on the seconds is a decimal fraction. A millisecond group
    after AM/PM is added as a count, so '5:04:57 AM,388' is 05:04:57 plus
    388 ms.
    """
    d = _LEGACY_DATE_RE.match(date_str.strip())
    t = _LEGACY_TIME_RE.match(time_str.strip())
    if not d or not t:
        return None

    hour = int(t.group("h"))
    ampm = t.group("ampm")
    if ampm:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if ampm.upper() == "PM" else 0)

    extra_ms = _fraction_to_ms(t.group("frac"))
    if t.group("ms"):
        extra_ms += int(t.group("ms"))

    try:
        base = datetime(
            int(d.group(3)), int(d.group(1)), int(d.group(2)),
            hour, int(t.group("m")), int(t.group("s") or 0),
            tzinfo=zone,
        )
    except ValueError:
        return None
    return to_millis(base) + extra_ms


def parse_iso_header(date_str: str, time_str: str, zone: tzinfo | None = None) -> int | None:
    """Parse 'YYYY-MM-DD' + 'HH:MM:SS,mmm'."""
    d = _ISO_DATE_RE.match(date_str.strip())
    t = _ISO_TIME_RE.match(time_str.strip())
    if not d or not t:
        return None
    try:
        dt = datetime(
            int(d.group(1)), int(d.group(2)), int(d.group(3)),
            int(t.group(1)), int(t.group(2)), int(t.group(3)),
            tzinfo=zone,
        )
    except ValueError:
        return None
    return to_millis(dt) + _fraction_to_ms(t.group(4))


def parse_iso8601(value: str, zone: tzinfo | None = None) -> int | None:
    """Parse '2026-01-09T22:46:45.367125Z' style stamps (Homer, Datadog)."""
    text = value.strip()
    if not text:
        return None
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    # older fromisoformat wants exactly 3 or 6 fractional digits
    text = re.sub(r"\.(\d+)", lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None and zone is not None:
        dt = dt.replace(tzinfo=zone)
    return to_millis(dt)


def resolve_header_timestamp(
    message: str,
    date_str: str,
    time_str: str,
    grammar: HeaderGrammar,
    zone: tzinfo | None = None,
) -> tuple[int, str]:
    """Return (epoch_ms, raw_timestamp) for a bracketed entry-start line."""
    embedded = parse_embedded(message)
    if embedded:
        return embedded

    raw = f"{date_str} {time_str}"
    if grammar is HeaderGrammar.ISO:
        millis = parse_iso_header(date_str, time_str, zone)
    else:
        millis = parse_legacy(date_str, time_str, zone)

    if millis is None:
        logger.debug("Unparseable header time %r, using wall clock", raw)
        millis = wall_clock_ms()
    return millis, raw
