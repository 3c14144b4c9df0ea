"""Tests for logscrub.index"""

from logscrub.index import build_correlation_index, call_participants, group_call_flows, sip_user
from logscrub.models import LogEntry, LogLevel


def _entry(entry_id: int, timestamp: int, **kwargs) -> LogEntry:
    return LogEntry(id=entry_id, timestamp=timestamp, raw_timestamp="", level=LogLevel.INFO,
                    component="c", message="m", **kwargs)


ENTRIES = [
    _entry(1, 30, call_id="abc", sip_from="<sip:2000@pbx>;tag=1", sip_to="<sip:1017@pbx>", file_name="b.log"),
    _entry(2, 10, call_id="abc", sip_from="<sip:2000@pbx>", sip_to="<sip:1017@pbx>;tag=2", file_name="a.log"),
    _entry(3, 20, call_id="0b8f1c2d-1111-4222-8333-444455556666", file_name="a.log"),
    _entry(4, 40, report_id="555", extension_id="1017", station_id="17", operator_id="op-1", file_name="a.log"),
    _entry(5, 50, report_id="12", operator_id="op-1", file_name="a.log"),
]


def test_index_collects_sorted_unique_values():
    index = build_correlation_index(ENTRIES)
    assert index.call_ids == ["0b8f1c2d-1111-4222-8333-444455556666", "abc"]
    assert index.report_ids == ["12", "555"]
    assert index.operator_ids == ["op-1"]
    assert index.extension_ids == ["1017"]
    assert index.station_ids == ["17"]
    assert index.file_names == ["a.log", "b.log"]
    assert index.counts[("operator_id", "op-1")] == 2
    assert index.counts[("file_name", "a.log")] == 4


def test_ranked_call_ids_put_uuids_first():
    index = build_correlation_index(ENTRIES + [_entry(6, 60, call_id="0001")])
    assert index.ranked("call_id") == ["0b8f1c2d-1111-4222-8333-444455556666", "0001", "abc"]


def test_ranked_by_count():
    index = build_correlation_index(ENTRIES)
    assert index.ranked("file_name", by_count=True) == ["a.log", "b.log"]
    assert index.ranked("report_id", by_count=True) == ["12", "555"]


def test_empty_index():
    index = build_correlation_index([])
    assert index.call_ids == []
    assert index.ranked("report_id") == []


def test_group_call_flows():
    flows = group_call_flows(ENTRIES)
    assert list(flows) == ["0b8f1c2d-1111-4222-8333-444455556666", "abc"]
    assert [e.id for e in flows["abc"]] == [2, 1]


def test_sip_user():
    assert sip_user('"Desk" <sip:1017@pbx.local>;tag=x') == "1017"
    assert sip_user("sips:alice@example.com") == "alice"
    assert sip_user("anonymous") == "anonymous"


def test_call_participants():
    flow = group_call_flows(ENTRIES)["abc"]
    assert call_participants(flow) == ["2000", "1017"]
