"""Helpers for reading and presenting persisted trace files.

A trace file is a JSON array of record objects as written by
:class:`inline_debugger.store.TraceStore`. These helpers are shared by the
accessor facade, the CLI and ``scripts/print_trace.py``.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

_REQUIRED_KEYS = ("kind", "filePath", "line", "outcome")
_SNAPSHOT_KEYS = ("kind", "label", "outcome", "line", "filePath", "outcomePrefix")

_NAMED_KINDS = {"variable", "function", "method", "objectMethod"}
_VALUE_KINDS = {"expression", "await", "return", "arrow"}


class TraceFileError(RuntimeError):
    """Raised when the trace file is malformed or cannot be processed."""


def load_trace_records(trace_path: Path) -> List[Dict[str, Any]]:
    """Load and validate the JSON record list from ``trace_path``."""
    try:
        raw_text = Path(trace_path).read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise TraceFileError(f"trace file not found: {trace_path}") from exc
    except OSError as exc:  # pragma: no cover - depends on filesystem permissions
        raise TraceFileError(f"unable to read trace file: {trace_path}") from exc

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise TraceFileError(f"invalid JSON in trace file: {trace_path}: {exc}") from exc

    if not isinstance(data, list):
        raise TraceFileError(f"trace root must be a JSON array, got {type(data).__name__}")

    for index, record in enumerate(data):
        if not isinstance(record, dict):
            raise TraceFileError(
                f"record #{index} is not a JSON object (found {type(record).__name__})"
            )
        missing = [key for key in _REQUIRED_KEYS if key not in record]
        if missing:
            raise TraceFileError(f"record #{index} is missing {', '.join(missing)}")

    return data


def snapshot_records(records: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Return records with file paths reduced to base names, for comparisons
    that must not depend on where the sources live."""
    snapshot = []
    for record in records:
        item = {key: record[key] for key in _SNAPSHOT_KEYS if record.get(key) is not None}
        if "filePath" in item:
            item["filePath"] = os.path.basename(item["filePath"])
        snapshot.append(item)
    return snapshot


def format_record(index: int, record: Mapping[str, Any]) -> str:
    kind = record.get("kind")
    outcome = record.get("outcome")
    prefix = record.get("outcomePrefix") or ""
    line = record.get("line")
    file_path = record.get("filePath")

    line_info = f" (line {line})" if line else ""
    file_info = f" [{os.path.basename(file_path)}]" if file_path else ""

    if kind in _NAMED_KINDS:
        body = f"{record.get('label')} = {prefix}{outcome}"
    elif kind in _VALUE_KINDS:
        body = f"{prefix}{outcome}"
    elif kind == "log":
        body = "[LOG] " + " ".join(_as_strings(outcome))
    elif kind == "error":
        message = outcome[0] if isinstance(outcome, list) and outcome else outcome
        body = f"[ERROR] {message}"
    elif kind == "throw":
        body = f"[THROW] {outcome}"
    else:
        body = f"[{kind}] {outcome}"
    return f"{index}. {body}{line_info}{file_info}"


def format_records(records: Sequence[Mapping[str, Any]]) -> List[str]:
    return [format_record(index, record) for index, record in enumerate(records, start=1)]


def _as_strings(outcome: Any) -> List[str]:
    if isinstance(outcome, list):
        return [str(item) for item in outcome]
    return [str(outcome)]


__all__ = [
    "TraceFileError",
    "format_record",
    "format_records",
    "load_trace_records",
    "snapshot_records",
]
