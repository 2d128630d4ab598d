"""Best-effort conversion of runtime values into persistable strings.

:func:`serialize` never raises. Values are first reduced to plain JSON data
(dropping repeated composites, replacing awaitables and absence markers,
reducing functions to their source) and then encoded. Top-level strings are
kept verbatim so a traced ``name`` reads the way ``print(name)`` would.
"""
from __future__ import annotations

import dataclasses
import enum
import inspect
import json
import re
import textwrap
from typing import Any, Dict, List, Set

UNDEFINED_TOKEN: str = "__INLINE_DEBUGGER_UNDEFINED__"
AWAITABLE_PLACEHOLDER: str = "Awaitable"


class _Undefined:
    """Marker for "no value" that JSON cannot express directly."""

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __bool__(self) -> bool:
        return False


UNDEFINED = _Undefined()

_ABSENT = (UNDEFINED, dataclasses.MISSING, inspect.Parameter.empty)
_OMIT = object()

_DEF_PATTERN = re.compile(r"(?:async\s+)?def\s+\w*\s*\(.*", re.DOTALL)
_LAMBDA_PATTERN = re.compile(r"lambda\b.*", re.DOTALL)


# ----------------------------------------------------------------- functions
def _function_text(fn: Any) -> str:
    try:
        source = textwrap.dedent(inspect.getsource(fn))
    except (OSError, TypeError):
        return repr(fn)

    if getattr(fn, "__name__", None) == "<lambda>":
        match = _LAMBDA_PATTERN.search(source)
        if match:
            return _cut_expression(match.group(0))
    match = _DEF_PATTERN.search(source)
    if match:
        return match.group(0).rstrip()
    return source.rstrip()


def _cut_expression(text: str) -> str:
    """Trim ``text`` to the first complete expression (stops at an unbalanced
    closing bracket, a top-level comma, a comment or a line break)."""
    depth = 0
    quote = None
    for index, char in enumerate(text):
        if quote:
            if char == quote and text[index - 1] != "\\":
                quote = None
            continue
        if char in "'\"":
            quote = char
        elif char in "([{":
            depth += 1
        elif char in ")]}":
            depth -= 1
            if depth < 0:
                return text[:index].rstrip()
        elif depth == 0 and char in ",#\n":
            return text[:index].rstrip()
    return text.rstrip()


# ------------------------------------------------------------------- values
def _is_composite(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple, set, frozenset, BaseException)) or (
        hasattr(value, "__dict__") and not isinstance(value, type)
    )


def _prepare(value: Any, seen: Set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if any(value is marker for marker in _ABSENT):
        return UNDEFINED_TOKEN
    if inspect.isawaitable(value):
        return AWAITABLE_PLACEHOLDER
    if isinstance(value, (classmethod, staticmethod)):
        value = value.__func__
    if inspect.isroutine(value):
        return _function_text(value)
    if isinstance(value, enum.Enum):
        return _prepare(value.value, seen)
    if isinstance(value, (bytes, bytearray, complex)):
        return str(value)
    if isinstance(value, type) or inspect.ismodule(value) or not _is_composite(value):
        return repr(value)

    if id(value) in seen:
        return _OMIT
    seen.add(id(value))

    if isinstance(value, dict):
        return _prepare_mapping(value.items(), seen)
    if isinstance(value, (list, tuple, set, frozenset)):
        items: List[Any] = []
        for item in value:
            prepared = _prepare(item, seen)
            if prepared is not _OMIT:
                items.append(prepared)
        return items
    if isinstance(value, BaseException):
        data: Dict[str, Any] = {"name": type(value).__name__, "message": str(value)}
        data.update(_prepare_mapping(vars(value).items(), seen))
        return data
    if dataclasses.is_dataclass(value):
        fields = [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
        return _prepare_mapping(fields, seen)
    return _prepare_mapping(vars(value).items(), seen)


def _prepare_mapping(items: Any, seen: Set[int]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, item in items:
        prepared = _prepare(item, seen)
        if prepared is not _OMIT:
            result[key if isinstance(key, str) else str(key)] = prepared
    return result


def stringify(value: Any) -> str:
    """Serialize ``value``; may raise for pathological inputs."""
    prepared = _prepare(value, set())
    if isinstance(prepared, str):
        return prepared
    return json.dumps(prepared, ensure_ascii=False)


def serialize(value: Any) -> str:
    """Serialize ``value``, turning any failure into a diagnostic string."""
    try:
        return stringify(value)
    except Exception as exc:  # noqa: BLE001 - serialization must never fail the caller
        return f"[Error stringifying: {exc}]"


__all__ = [
    "AWAITABLE_PLACEHOLDER",
    "UNDEFINED",
    "UNDEFINED_TOKEN",
    "serialize",
    "stringify",
]
