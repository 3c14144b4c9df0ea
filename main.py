"""logscrub: parse voice/SIP log exports into correlated entries."""

import asyncio
import json
import logging
import sys
from argparse import ArgumentParser
from datetime import datetime, timezone

from logscrub.config import load_config, load_yaml_config
from logscrub.index import build_correlation_index, group_call_flows
from logscrub.merger import MultiFileMerger
from logscrub.models import LogEntry, entry_to_dict
from logscrub.reader import FileSource

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="logscrub",
        description="Parse and merge tagged-bracket, Homer and Datadog CSV log exports.",
    )
    parser.add_argument("files", nargs="+", help="Log export file(s)")
    parser.add_argument("--config", help="YAML config file (parser section)")
    parser.add_argument(
        "--output",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Print per-file parse statistics and correlation keys instead of entries",
    )
    parser.add_argument("--call-id", help="Only print the SIP flow for this Call-ID")
    parser.add_argument("--lines", type=int, help="Limit output to N entries")
    return parser


def format_text(entry: LogEntry) -> str:
    ts = datetime.fromtimestamp(entry.timestamp / 1000, tz=timezone.utc)
    stamp = ts.strftime("%Y-%m-%d %H:%M:%S.") + f"{entry.timestamp % 1000:03d}Z"
    sip = f" [{entry.sip_method}]" if entry.sip_method else ""
    return f"{entry.id:>7} {stamp} {entry.level.value:5s} {entry.display_component}{sip}: {entry.display_message}"


def print_stats(merger: MultiFileMerger, output: str) -> None:
    index = build_correlation_index(merger.entries)
    if output == "json":
        print(json.dumps({
            "files": [
                {**vars(s), "dialect": s.dialect.value if s.dialect else None}
                for s in merger.stats
            ],
            "correlation": {
                kind: index.ranked(kind, by_count=True)
                for kind in ("report_id", "operator_id", "extension_id",
                             "station_id", "call_id", "file_name")
            },
        }, indent=2))
        return

    for s in merger.stats:
        print(f"{s.file_name}: {s.dialect.value}, {s.entries} entries, {s.lines} lines, "
              f"{s.lines_dropped} dropped, {s.rows_skipped} skipped rows")
    print(f"Total entries: {len(merger.entries)}")
    print(f"Call-IDs: {len(index.call_ids)}  Reports: {len(index.report_ids)}  "
          f"Operators: {len(index.operator_ids)}  Stations: {len(index.station_ids)}")


async def run(args) -> int:
    config = load_config(load_yaml_config(args.config))
    merger = MultiFileMerger(config)

    for path in args.files:
        try:
            await merger.add_file(FileSource(path))
        except OSError as e:
            logger.error("Cannot read %s: %s", path, e)
            return 1

    if args.stats:
        print_stats(merger, args.output)
        return 0

    entries = merger.entries
    if args.call_id:
        entries = group_call_flows(entries).get(args.call_id, [])
    if args.lines:
        entries = entries[:args.lines]

    for entry in entries:
        if args.output == "json":
            print(json.dumps(entry_to_dict(entry)))
        else:
            print(format_text(entry))
    return 0


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [LOGSCRUB] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    args = build_parser().parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        sys.exit(0)
    except BrokenPipeError:
        sys.exit(0)
