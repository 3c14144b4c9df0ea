"""Shared pytest fixtures for the logscrub test suite."""

from datetime import datetime, timezone

import pytest

from logscrub.config import ParserConfig


@pytest.fixture()
def utc_config() -> ParserConfig:
    """Header times interpreted as UTC so expectations don't depend on the host."""
    return ParserConfig(timezone="UTC")


@pytest.fixture()
def utc_ms():
    """Build epoch millis from UTC date parts."""
    def build(*parts: int, ms: int = 0) -> int:
        dt = datetime(*parts, tzinfo=timezone.utc)
        return int(dt.timestamp()) * 1000 + ms
    return build


@pytest.fixture()
def tagged_text() -> str:
    return (
        "preamble line without a header\n"
        "[INFO] [12/17/2024, 09:18:05] [svc.Foo]: started\n"
        "[ERROR] [2025-12-17 09:18:07,250] [svc.Bar] request failed\n"
        "stack trace line 1\n"
        "    at com.example.Bar.run(Bar.java:42)\n"
        "[WARN] [12/17/2024, 5:04:57 AM,388] [pekko://operator-actor-system/user/controller/report-processor/$a]: "
        "report id: 555 extensionID: Optional[1017]\n"
        "[DEBUG] [2025-12-17 09:18:09,001] [sip.Gateway] sip message sent\r\n"
        "INVITE sip:1017@pbx.local SIP/2.0\r\n"
        "Call-ID: call-42@pbx\r\n"
        "From: <sip:2000@pbx.local>;tag=a\r\n"
        "To: <sip:1017@pbx.local>\r\n"
        "[INFO] [2025-12-17 09:18:10,000] [audio.Stream-7] café ☎ ready\n"
        "{\"reportNLPConversation\": {\"reportID\": 99}, \"recipientsClientIDs\": [\"op-7\"]}"
    )


@pytest.fixture()
def homer_text() -> str:
    return (
        "proto:UDP 2026-01-09T22:46:45.367125Z 10.0.0.1:5060 ---> 10.0.0.2:5060\n"
        "\n"
        "INVITE sip:1017@pbx.local SIP/2.0\n"
        "Call-ID: abc123\n"
        "From: <sip:2000@pbx.local>;tag=1\n"
        "To: <sip:1017@pbx.local>\n"
        "\n"
        "proto:UDP 2026-01-09T22:46:45.512Z 10.0.0.1:5060 <--- 10.0.0.2:5060\n"
        "\n"
        "SIP/2.0 200 OK\n"
        "Call-ID: abc123\n"
        "From: <sip:2000@pbx.local>;tag=1\n"
        "To: <sip:1017@pbx.local>;tag=2\n"
    )


@pytest.fixture()
def datadog_csv_text() -> str:
    return (
        '"date","host","service","content"\n'
        '"2025-12-17T09:18:05.123Z","host-a","callsvc","{""log"": {""message"": '
        '""callId=abc-1 started"", ""logLevel"": ""WARNING"", ""logSource"": ""com.x.Foo"", '
        '""threadName"": ""main""}}"\n'
        '"2025-12-17T09:18:06.000Z","host-a","callsvc","{not json}"\n'
        '"2025-12-17T09:18:07.000Z","host-a","callsvc","{""log"": {""message"": ""done"", '
        '""logLevel"": ""INFO"", ""optionCause"": ""java.io.IOException: reset""}}"\n'
    )
