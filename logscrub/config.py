"""Parser configuration from defaults, an optional YAML file, and env vars."""

import logging
import os
from dataclasses import dataclass, field

import yaml

from logscrub.timestamps import get_zone

logger = logging.getLogger(__name__)

MIB = 1024 * 1024


@dataclass(frozen=True)
class ParserConfig:
    chunk_size: int = 2 * MIB
    streaming_threshold: int = 10 * MIB
    sniff_bytes: int = 64 * 1024
    yield_every_lines: int = 5000
    yield_every_chunks: int = 1
    batch_size: int = 500
    message_max_length: int = 100
    max_payload_chars: int | None = None
    timezone: str | None = None  # IANA name; None means local time
    encoding: str = "utf-8"
    service_mappings: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("chunk_size", "sniff_bytes", "yield_every_lines",
                     "yield_every_chunks", "batch_size", "message_max_length"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if self.streaming_threshold < 0:
            raise ValueError("streaming_threshold must not be negative")
        if self.max_payload_chars is not None and self.max_payload_chars <= 0:
            raise ValueError("max_payload_chars must be positive when set")
        if self.timezone:
            try:
                get_zone(self.timezone)
            except (KeyError, ValueError) as e:
                raise ValueError(f"Unknown timezone {self.timezone!r}") from e


def load_yaml_config(path: str | None) -> dict:
    """Load the ``parser`` section of a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in %s (%s), using defaults", path, e)
        return {}
    logger.info("Loaded YAML config from %s", path)
    if not isinstance(data, dict):
        return {}
    return data.get("parser", data)


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


def load_config(yaml_data: dict | None = None) -> ParserConfig:
    """Build ParserConfig from YAML data with LOGSCRUB_* env vars on top."""
    d = yaml_data or {}
    defaults = ParserConfig()

    mappings = {
        str(k).lower(): str(v)
        for k, v in (d.get("service_mappings") or {}).items()
    }

    return ParserConfig(
        chunk_size=_env_int("LOGSCRUB_CHUNK_SIZE", d.get("chunk_size", defaults.chunk_size)),
        streaming_threshold=_env_int(
            "LOGSCRUB_STREAMING_THRESHOLD",
            d.get("streaming_threshold", defaults.streaming_threshold),
        ),
        sniff_bytes=_env_int("LOGSCRUB_SNIFF_BYTES", d.get("sniff_bytes", defaults.sniff_bytes)),
        yield_every_lines=_env_int(
            "LOGSCRUB_YIELD_EVERY_LINES",
            d.get("yield_every_lines", defaults.yield_every_lines),
        ),
        yield_every_chunks=_env_int(
            "LOGSCRUB_YIELD_EVERY_CHUNKS",
            d.get("yield_every_chunks", defaults.yield_every_chunks),
        ),
        batch_size=_env_int("LOGSCRUB_BATCH_SIZE", d.get("batch_size", defaults.batch_size)),
        message_max_length=_env_int(
            "LOGSCRUB_MESSAGE_MAX_LENGTH",
            d.get("message_max_length", defaults.message_max_length),
        ),
        max_payload_chars=_env_int(
            "LOGSCRUB_MAX_PAYLOAD_CHARS", d.get("max_payload_chars", defaults.max_payload_chars)
        ),
        timezone=os.environ.get("LOGSCRUB_TIMEZONE", d.get("timezone", defaults.timezone)),
        encoding=os.environ.get("LOGSCRUB_ENCODING", d.get("encoding", defaults.encoding)),
        service_mappings=mappings,
    )
