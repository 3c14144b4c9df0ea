"""Correlation key extraction and display-only text normalization.

Correlation keys (report / operator / extension / station ids) tie together
entries written by different components about the same call. Embedded JSON
payloads are consulted first; free-text patterns fill whatever is left.
"""

import json
import re
from dataclasses import dataclass, replace
from typing import Any

from logscrub.models import EntryType, LogEntry

_REPORT_ID_RE = re.compile(r"report id:\s*(\d+)", re.IGNORECASE)
_EXTENSION_ID_RE = re.compile(r"extensionID:\s*Optional\[(\d+)\]", re.IGNORECASE)


def station_from_extension(extension_id: str | None) -> str | None:
    """Station id is the extension with its two-digit site prefix dropped."""
    if extension_id and len(extension_id) > 2:
        return extension_id[2:]
    return None


def parse_json_payload(payload: str) -> dict[str, Any] | None:
    trimmed = payload.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return None
    try:
        data = json.loads(trimmed)
    except (json.JSONDecodeError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def _ids_from_json(data: dict[str, Any]) -> dict[str, str]:
    found: dict[str, str] = {}

    conversation = data.get("reportNLPConversation")
    if isinstance(conversation, dict) and conversation.get("reportID"):
        found["report_id"] = str(conversation["reportID"])

    recipients = data.get("recipientsClientIDs")
    if isinstance(recipients, list) and recipients and recipients[0] is not None:
        found["operator_id"] = str(recipients[0])
    if data.get("operatorID"):
        found["operator_id"] = str(data["operatorID"])

    if data.get("extensionID"):
        found["extension_id"] = str(data["extensionID"])
    return found


def extract_correlation(entry: LogEntry) -> LogEntry:
    """Fill correlation ids from a JSON payload, then from free text.

    Pure function of message and payload: fields already set are kept.
    """
    changes: dict[str, Any] = {}

    data = parse_json_payload(entry.payload)
    if data is not None:
        changes["type"] = EntryType.JSON
        changes["json"] = data
        for key, value in _ids_from_json(data).items():
            changes[key] = value

    def current(name: str) -> str | None:
        return changes.get(name, getattr(entry, name))

    search_text = f"{entry.message} {entry.payload}"

    if not current("report_id"):
        m = _REPORT_ID_RE.search(search_text)
        if m:
            changes["report_id"] = m.group(1)

    if not current("extension_id"):
        m = _EXTENSION_ID_RE.search(search_text)
        if m:
            changes["extension_id"] = m.group(1)

    station = station_from_extension(current("extension_id"))
    if station and not current("station_id"):
        changes["station_id"] = station

    if not changes:
        return entry
    return replace(entry, **changes)


# ---------------------------------------------------------------------------
# Display normalization
# ---------------------------------------------------------------------------

_CONTROLLER_PATH_RE = re.compile(r"/controller/([^$]+)")
_TAIL_SEGMENT_RE = re.compile(r"/([^/$]+)$")
_MESSAGE_ACTOR_RE = re.compile(
    r"^\[pekko://operator-actor-system/user/controller/([^$\]]+)"
)
_MESSAGE_ACTOR_PREFIX_RE = re.compile(r"^\[pekko://[^\]]+\]\s*")

_JS_DATE_RE = re.compile(
    r"\b[A-Z][a-z]{2}\s+[A-Z][a-z]{2}\s+\d{1,2}\s+\d{4}\s+\d{2}:\d{2}:\d{2}\s+GMT[+-]\d{4}\s+\([^)]+\)"
)
_AT_TIME_RE = re.compile(r"\s+at\s+\d{2}:\d{2}:\d{2}\s+[A-Z]{2,4}")
_OPTIONAL_RE = re.compile(r"Optional\[([^\]]+)\]")
_EDGE_ARTIFACTS_RE = re.compile(r"^[\s,\]]+|[\s,\[]+$")
_CALL_TAKING_RE = re.compile(r"\[CallTakingTimestamp\]\s+\d+:\s*")


@dataclass(frozen=True)
class DisplayText:
    component: str
    message: str
    service: str | None = None


def to_pascal_case(text: str) -> str:
    """report-processor -> ReportProcessor, audio_stream -> AudioStream."""
    return "".join(word[:1].upper() + word[1:].lower() for word in re.split(r"[-_]", text))


def _last_meaningful_segment(path: str) -> str | None:
    segments = [s for s in path.split("/") if s and not s.startswith("$")]
    return segments[-1] if segments else None


def service_from_component(component: str) -> str | None:
    """Service name from an actor path like .../controller/view-manager/x."""
    m = _CONTROLLER_PATH_RE.search(component)
    if m:
        return _last_meaningful_segment(m.group(1))
    m = _TAIL_SEGMENT_RE.search(component)
    if m:
        return m.group(1)
    return None


def clean_message(message: str) -> str:
    cleaned = _JS_DATE_RE.sub("", message)
    cleaned = _AT_TIME_RE.sub("", cleaned)
    cleaned = _OPTIONAL_RE.sub(r"\1", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = _EDGE_ARTIFACTS_RE.sub("", cleaned)
    cleaned = _CALL_TAKING_RE.sub("", cleaned)
    return cleaned.strip()


def display_text(
    component: str, message: str, service_mappings: dict[str, str] | None = None
) -> DisplayText:
    """Readable component/message pair for list views."""
    mappings = service_mappings or {}
    service = None
    body = message

    actor = _MESSAGE_ACTOR_RE.match(message)
    if actor:
        service = _last_meaningful_segment(actor.group(1))
        body = _MESSAGE_ACTOR_PREFIX_RE.sub("", message, count=1)
    else:
        service = service_from_component(component)

    if service:
        shown = mappings.get(service.lower()) or to_pascal_case(service)
    else:
        last = component.split(".")[-1].split("-")[0]
        shown = to_pascal_case(last) if last else component

    return DisplayText(component=shown, message=clean_message(body), service=service)


def special_tags(message: str) -> str:
    tags = ""
    if "MEDIA_TIMEOUT" in message:
        tags += "[MEDIA_TIMEOUT] "
    if "X-Recovery: true" in message:
        tags += "[RECOVERED] "
    return tags


def normalize_display(entry: LogEntry, service_mappings: dict[str, str] | None = None) -> LogEntry:
    """Derive display_component/display_message; originals stay untouched."""
    text = display_text(entry.component, entry.message, service_mappings)
    return replace(
        entry,
        display_component=text.component,
        display_message=special_tags(entry.message) + text.message,
    )
