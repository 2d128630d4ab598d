"""Shared fixtures for the inline debugger test-suite."""
from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

import inline_debugger
from inline_debugger.api import InlineDebuggerRuntime
from inline_debugger.config import DebuggerConfig
from inline_debugger.trace_file import snapshot_records
from inline_debugger.transform import compile_source


@pytest.fixture
def config(tmp_path: Path) -> DebuggerConfig:
    return DebuggerConfig(enabled=True, output_file=tmp_path / "trace.json")


@pytest.fixture
def runtime(config: DebuggerConfig) -> InlineDebuggerRuntime:
    """A runtime that is not published through builtins."""
    return InlineDebuggerRuntime(config)


@pytest.fixture
def installed(config: DebuggerConfig):
    runtime = inline_debugger.install(config)
    try:
        yield runtime
    finally:
        inline_debugger.uninstall()


@pytest.fixture
def run_marked(
    runtime: InlineDebuggerRuntime, tmp_path: Path
) -> Callable[..., Dict[str, Any]]:
    """Write ``source`` to a file, instrument it and execute it.

    The entry points are passed as globals so the code talks to ``runtime``.
    """

    def run(source: str, filename: str = "snippet.py", **extra: Any) -> Dict[str, Any]:
        source = textwrap.dedent(source)
        path = tmp_path / filename
        path.write_text(source, encoding="utf-8")
        code = compile_source(source, str(path), runtime.config)
        namespace: Dict[str, Any] = {"__name__": "snippet", **runtime.entry_points(), **extra}
        exec(code, namespace)
        return namespace

    return run


@pytest.fixture
def records(runtime: InlineDebuggerRuntime) -> Callable[[], List[Dict[str, Any]]]:
    """Path-independent view of what ``runtime`` has stored so far."""

    def view() -> List[Dict[str, Any]]:
        return snapshot_records(record.to_json() for record in runtime.store.records)

    return view
