"""LogEntry and the enums shared by every dialect."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any


class LogLevel(str, Enum):
    INFO = "INFO"
    DEBUG = "DEBUG"
    ERROR = "ERROR"
    WARN = "WARN"


class EntryType(str, Enum):
    LOG = "LOG"
    JSON = "JSON"


class Dialect(Enum):
    """Supported export formats. Chosen once per file by the detector."""

    TAGGED_BRACKET = "tagged_bracket"
    HOMER = "homer"
    DATADOG_CSV = "datadog_csv"


# Level aliases seen in Datadog exports → canonical level
_LEVEL_ALIASES = {
    "WARNING": LogLevel.WARN,
    "TRACE": LogLevel.DEBUG,
    "FATAL": LogLevel.ERROR,
    "CRITICAL": LogLevel.ERROR,
    "SEVERE": LogLevel.ERROR,
}


def normalize_level(value: str | None) -> LogLevel:
    """Map free-text level names onto LogLevel, defaulting to INFO."""
    if not value:
        return LogLevel.INFO
    upper = str(value).strip().upper()
    try:
        return LogLevel(upper)
    except ValueError:
        return _LEVEL_ALIASES.get(upper, LogLevel.INFO)


@dataclass(frozen=True)
class LogEntry:
    id: int
    timestamp: int  # epoch millis
    raw_timestamp: str
    level: LogLevel
    component: str
    message: str
    payload: str = ""
    type: EntryType = EntryType.LOG
    is_sip: bool = False
    sip_method: str | None = None

    call_id: str | None = None
    report_id: str | None = None
    operator_id: str | None = None
    extension_id: str | None = None
    station_id: str | None = None
    sip_from: str | None = None
    sip_to: str | None = None

    file_name: str = ""
    file_color: str = ""

    display_component: str = ""
    display_message: str = ""
    json: Any = field(default=None, hash=False)


def entry_to_dict(entry: LogEntry) -> dict[str, Any]:
    """Plain dict for JSON output; unset optional fields are left out."""
    data = {k: v for k, v in asdict(entry).items() if v is not None}
    data["level"] = entry.level.value
    data["type"] = entry.type.value
    return data
