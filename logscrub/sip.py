"""SIP signaling detection and header extraction for finalized entries."""

import re
from dataclasses import replace

from logscrub.models import LogEntry

KNOWN_METHODS = (
    "INVITE", "ACK", "BYE", "CANCEL", "OPTIONS", "REGISTER", "PRACK",
    "UPDATE", "SUBSCRIBE", "NOTIFY", "REFER", "INFO", "MESSAGE", "PUBLISH",
)

_STATUS_LINE_RE = re.compile(r"^SIP/2\.0\s+(\d{3})\s+(.*)", re.IGNORECASE)
_REQUEST_LINE_RE = re.compile(r"^([A-Z]+)\s+sips?:.*SIP/2\.0", re.IGNORECASE)
_METHOD_TOKEN_RE = re.compile(r"\b(" + "|".join(KNOWN_METHODS) + r")\b")

# Full header names plus RFC 3261 compact forms (i, f, t)
_CALL_ID_RE = re.compile(r"^\s*(?:Call-ID|i)\s*:\s*(.+)", re.IGNORECASE | re.MULTILINE)
_FROM_RE = re.compile(r"^\s*(?:From|f)\s*:\s*(.+)", re.IGNORECASE | re.MULTILINE)
_TO_RE = re.compile(r"^\s*(?:To|t)\s*:\s*(.+)", re.IGNORECASE | re.MULTILINE)

_AGENT_ID_RE = re.compile(r"agentid=([a-f0-9\-]+)", re.IGNORECASE)


def is_sip_entry(message: str, payload: str) -> bool:
    return "SIP/2.0" in payload or "sip" in message.lower()


def _first_line(payload: str) -> str | None:
    for line in payload.split("\n"):
        if line.strip():
            return line.strip()
    return None


def detect_method(line: str, tokens: bool = True) -> str | None:
    """Status line, then request line, then an upper-case method token.

    With ``tokens=False`` only real status/request lines count.
    """
    status = _STATUS_LINE_RE.match(line)
    if status:
        return f"{status.group(1)} {status.group(2).strip()}".strip()

    request = _REQUEST_LINE_RE.match(line)
    if request:
        return request.group(1).upper()

    if tokens:
        token = _METHOD_TOKEN_RE.search(line)
        if token:
            return token.group(1)
    return None


def _method(entry: LogEntry) -> str | None:
    first = _first_line(entry.payload)
    if first is not None:
        return detect_method(first)
    # no payload: free-text messages only count as full SIP start lines
    return detect_method(entry.message.strip(), tokens=False)


def _header(regex: re.Pattern, payload: str) -> str | None:
    m = regex.search(payload)
    if not m:
        return None
    value = m.group(1).strip()
    return value or None


def enrich_sip(entry: LogEntry) -> LogEntry:
    """Return ``entry`` with SIP fields filled in.

    Depends only on message and payload, so applying it twice yields the
    same entry. Entries already flagged as SIP (Homer records) are always
    examined.
    """
    if not (entry.is_sip or is_sip_entry(entry.message, entry.payload)):
        return entry

    changes = {
        "is_sip": True,
        "sip_method": _method(entry),
    }

    call_id = _header(_CALL_ID_RE, entry.payload)
    if call_id:
        changes["call_id"] = call_id
    sip_from = _header(_FROM_RE, entry.payload)
    if sip_from:
        changes["sip_from"] = sip_from
    sip_to = _header(_TO_RE, entry.payload)
    if sip_to:
        changes["sip_to"] = sip_to

    if not entry.operator_id:
        agent = _AGENT_ID_RE.search(entry.payload)
        if agent:
            changes["operator_id"] = agent.group(1)

    return replace(entry, **changes)
