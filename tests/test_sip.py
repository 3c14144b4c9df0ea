"""Tests for logscrub.sip"""

import pytest

from logscrub.models import LogEntry, LogLevel
from logscrub.sip import detect_method, enrich_sip, is_sip_entry


def _entry(message: str, payload: str = "", **kwargs) -> LogEntry:
    return LogEntry(id=1, timestamp=0, raw_timestamp="", level=LogLevel.INFO,
                    component="sip.Gateway", message=message, payload=payload, **kwargs)


INVITE_PAYLOAD = (
    "INVITE sip:1017@pbx.local SIP/2.0\n"
    "Via: SIP/2.0/UDP 10.0.0.1:5060\n"
    "Call-ID: abc123\n"
    "From: <sip:2000@pbx.local>;tag=1\n"
    "To: <sip:1017@pbx.local>\n"
    "X-Agent: agentid=9f1c-22ab\n"
)


@pytest.mark.parametrize("line,expected", [
    ("SIP/2.0 200 OK", "200 OK"),
    ("SIP/2.0 486 Busy Here", "486 Busy Here"),
    ("INVITE sip:1017@pbx.local SIP/2.0", "INVITE"),
    ("bye sips:1017@pbx.local SIP/2.0", "BYE"),
    ("Received BYE from trunk", "BYE"),
    ("OPTIONS keepalive", "OPTIONS"),
    ("INFORMATION only", None),
    ("update the options later", None),
    ("Sent Invite to agent", None),
    ("user was INVITED", None),
    ("plain text", None),
])
def test_detect_method(line, expected):
    assert detect_method(line) == expected


def test_is_sip_entry():
    assert is_sip_entry("anything", "SIP/2.0 200 OK")
    assert is_sip_entry("SIP trunk registered", "")
    assert not is_sip_entry("report ready", "{}")


class TestEnrichSip:

    def test_request(self):
        entry = enrich_sip(_entry("sip message sent", INVITE_PAYLOAD))
        assert entry.is_sip is True
        assert entry.sip_method == "INVITE"
        assert entry.call_id == "abc123"
        assert entry.sip_from == "<sip:2000@pbx.local>;tag=1"
        assert entry.sip_to == "<sip:1017@pbx.local>"
        assert entry.operator_id == "9f1c-22ab"

    def test_method_from_message_when_payload_empty(self):
        entry = enrich_sip(_entry("SIP/2.0 180 Ringing"))
        assert entry.sip_method == "180 Ringing"

    def test_leading_blank_payload_lines_skipped(self):
        entry = enrich_sip(_entry("sip", "\n\nSIP/2.0 200 OK\nCall-ID: x"))
        assert entry.sip_method == "200 OK"
        assert entry.call_id == "x"

    def test_compact_headers(self):
        entry = enrich_sip(_entry("sip", "ACK sip:1017@pbx SIP/2.0\ni: compact-1\nf: <sip:a@b>\nt: <sip:c@d>"))
        assert entry.call_id == "compact-1"
        assert entry.sip_from == "<sip:a@b>"
        assert entry.sip_to == "<sip:c@d>"

    def test_header_names_case_insensitive(self):
        entry = enrich_sip(_entry("sip", "BYE sip:1 SIP/2.0\ncall-id: lower"))
        assert entry.call_id == "lower"

    def test_existing_operator_kept(self):
        entry = enrich_sip(_entry("sip", INVITE_PAYLOAD, operator_id="op-1"))
        assert entry.operator_id == "op-1"

    def test_forced_sip_entry_examined(self):
        entry = enrich_sip(_entry("[a → b] SIP/2.0 200 OK", "SIP/2.0 200 OK", is_sip=True))
        assert entry.sip_method == "200 OK"

    def test_non_sip_untouched(self):
        entry = _entry("report ready", "nothing here")
        assert enrich_sip(entry) is entry

    def test_idempotent(self):
        once = enrich_sip(_entry("sip message sent", INVITE_PAYLOAD))
        assert enrich_sip(once) == once

    def test_lowercase_words_in_message_not_a_method(self):
        entry = enrich_sip(_entry("SIP trunk status", "will update the options later"))
        assert entry.is_sip is True
        assert entry.sip_method is None

    def test_message_token_ignored_without_payload(self):
        assert enrich_sip(_entry("sip message sent")).sip_method is None
        assert enrich_sip(_entry("SIP BYE received from trunk")).sip_method is None

    def test_message_request_line_used_without_payload(self):
        entry = enrich_sip(_entry("INVITE sip:1017@pbx.local SIP/2.0"))
        assert entry.sip_method == "INVITE"
