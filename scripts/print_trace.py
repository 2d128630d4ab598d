"""CLI helper to print an inline-debugger trace file in human-readable form."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from inline_debugger.trace_file import (
    TraceFileError,
    format_records,
    load_trace_records,
    snapshot_records,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print the records of an inline-debugger trace file.",
    )
    parser.add_argument(
        "trace",
        type=Path,
        nargs="?",
        default=Path(".debug.data.json"),
        help="Path to the trace file (default: %(default)s)",
    )
    parser.add_argument(
        "--snapshot",
        action="store_true",
        help="Emit the path-independent snapshot as JSON instead of text.",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        records = load_trace_records(args.trace)
    except TraceFileError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if args.snapshot:
        print(json.dumps(snapshot_records(records), indent=2))
        return 0

    if not records:
        print("No records.")
        return 0

    print("Debug Results:")
    for line in format_records(records):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
