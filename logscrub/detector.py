"""Dialect sniffing from a bounded text prefix plus the file name.

Detection order:
  1. '.csv' extension -> Datadog CSV export
  2. first non-empty line is a Homer 'proto:' header -> Homer SIP export
  3. a Homer header further down the prefix, with no bracketed entry
     anywhere in the prefix (export preamble) -> Homer SIP export
  4. Tagged bracket log (default)
"""

import logging

from logscrub.assembler import HOMER_HEADER_RE, ISO_ENTRY_RE, LEGACY_ENTRY_RE
from logscrub.models import Dialect

logger = logging.getLogger(__name__)


def _is_tagged_entry(line: str) -> bool:
    return bool(LEGACY_ENTRY_RE.match(line) or ISO_ENTRY_RE.match(line))


def detect_dialect(prefix: str, file_name: str = "") -> Dialect:
    """Pick the grammar for a file. Only ``prefix`` is inspected."""
    if file_name.lower().endswith(".csv"):
        return Dialect.DATADOG_CSV

    lines = [line.strip() for line in prefix.split("\n")]
    non_empty = [line for line in lines if line]
    if not non_empty:
        return Dialect.TAGGED_BRACKET

    if HOMER_HEADER_RE.match(non_empty[0]):
        return Dialect.HOMER

    has_header = any(HOMER_HEADER_RE.match(line) for line in non_empty)
    if has_header and not any(_is_tagged_entry(line) for line in non_empty):
        logger.debug("Homer header found after preamble in %s", file_name or "<input>")
        return Dialect.HOMER

    return Dialect.TAGGED_BRACKET
