"""Trace record model shared by the monitor, the store and the accessors."""
from __future__ import annotations

import enum
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Optional, Union

Outcome = Union[str, List[str]]

RESOLVED_PREFIX: str = "Resolved "
REJECTED_PREFIX: str = "Rejected "
UNKNOWN_FILE: str = "unknown"


class RecordKind(str, enum.Enum):
    VARIABLE = "variable"
    EXPRESSION = "expression"
    LOG = "log"
    AWAIT = "await"
    THROW = "throw"
    RETURN = "return"
    FUNCTION = "function"
    ARROW = "arrow"
    METHOD = "method"
    OBJECT_METHOD = "objectMethod"
    ERROR = "error"


@dataclass
class TraceRecord:
    """One observation of an instrumented construct.

    ``outcome`` is a serialized scalar, a list of serialized arguments for
    ``log`` records, or a ``[message, serialized_error]`` pair for ``error``
    records. ``suppressed`` records are computed but never persisted.
    """

    kind: RecordKind
    file_path: str
    line: int = 0
    label: Optional[str] = None
    outcome: Optional[Outcome] = None
    outcome_prefix: Optional[str] = None
    suppressed: bool = False

    def to_json(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "kind": self.kind.value,
            "filePath": self.file_path,
            "line": self.line,
            "outcome": self.outcome,
        }
        if self.label is not None:
            data["label"] = self.label
        if self.outcome_prefix is not None:
            data["outcomePrefix"] = self.outcome_prefix
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TraceRecord":
        return cls(
            kind=RecordKind(data["kind"]),
            file_path=data.get("filePath") or UNKNOWN_FILE,
            line=int(data.get("line") or 0),
            label=data.get("label"),
            outcome=data.get("outcome"),
            outcome_prefix=data.get("outcomePrefix"),
        )


# ------------------------------------------------------------ outcome shapes
@dataclass(frozen=True)
class Immediate:
    """A deferred computation that produced its value synchronously."""

    value: Any


@dataclass(frozen=True)
class Deferred:
    """A deferred computation that produced an awaitable still to settle."""

    awaitable: Awaitable[Any]


def classify_outcome(value: Any) -> Union[Immediate, Deferred]:
    if inspect.isawaitable(value):
        return Deferred(value)
    return Immediate(value)


__all__ = [
    "Deferred",
    "Immediate",
    "Outcome",
    "REJECTED_PREFIX",
    "RESOLVED_PREFIX",
    "RecordKind",
    "TraceRecord",
    "UNKNOWN_FILE",
    "classify_outcome",
]
