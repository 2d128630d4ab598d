"""Tests for the process-wide runtime and the accessor facade."""
from __future__ import annotations

import asyncio
import builtins
from pathlib import Path

import pytest

import inline_debugger
from inline_debugger.api import ACCESSOR_NAME, InlineDebuggerRuntime
from inline_debugger.config import DebuggerConfig
from inline_debugger.transform import LOG_ENTRY, WATCH_ENTRY, compile_source


def _run_with_builtins(tmp_path: Path, source: str, config: DebuggerConfig) -> dict:
    path = tmp_path / "snippet.py"
    path.write_text(source, encoding="utf-8")
    namespace = {"__name__": "snippet"}
    exec(compile_source(source, str(path), config), namespace)
    return namespace


def test_install_publishes_entry_points(installed: InlineDebuggerRuntime) -> None:
    assert getattr(builtins, WATCH_ENTRY) == installed.monitor.watch
    assert getattr(builtins, LOG_ENTRY) == installed.monitor.log
    assert getattr(builtins, ACCESSOR_NAME) is installed.accessor
    assert inline_debugger.get_runtime() is installed


def test_uninstall_removes_entry_points(config: DebuggerConfig) -> None:
    inline_debugger.install(config)
    inline_debugger.uninstall()

    assert inline_debugger.get_runtime() is None
    for name in (WATCH_ENTRY, LOG_ENTRY, ACCESSOR_NAME):
        assert not hasattr(builtins, name)


def test_uninstall_restores_shadowed_builtins(
    config: DebuggerConfig, monkeypatch: pytest.MonkeyPatch
) -> None:
    inline_debugger.uninstall()
    sentinel = object()
    monkeypatch.setattr(builtins, ACCESSOR_NAME, sentinel, raising=False)

    runtime = InlineDebuggerRuntime(config).install()
    assert getattr(builtins, ACCESSOR_NAME) is runtime.accessor
    runtime.uninstall()

    assert getattr(builtins, ACCESSOR_NAME) is sentinel
    assert not runtime.installed


def test_facade_reads_what_instrumented_code_recorded(
    tmp_path: Path, installed: InlineDebuggerRuntime, capsys: pytest.CaptureFixture[str]
) -> None:
    assert inline_debugger.get_data() == []

    _run_with_builtins(tmp_path, "a = 1 + 1  #?\nprint('a', a)  #?\n", installed.config)

    data = inline_debugger.get_data()
    assert [record["kind"] for record in data] == ["variable", "log"]
    assert data[0]["filePath"] == str(tmp_path / "snippet.py")
    assert inline_debugger.get_snapshot_data() == [
        {"kind": "variable", "label": "a", "outcome": "2", "line": 1, "filePath": "snippet.py"},
        {"kind": "log", "outcome": ["a", "2"], "line": 2, "filePath": "snippet.py"},
    ]

    capsys.readouterr()
    inline_debugger.print_data()
    assert capsys.readouterr().out == (
        "Debug Results:\n"
        "1. a = 2 (line 1) [snippet.py]\n"
        "2. [LOG] a 2 (line 2) [snippet.py]\n"
    )

    inline_debugger.clear_data()
    assert inline_debugger.get_data() == []
    assert not installed.config.output_file.exists()


def test_accessor_builtin_matches_module_functions(
    tmp_path: Path, installed: InlineDebuggerRuntime
) -> None:
    namespace = _run_with_builtins(
        tmp_path,
        "value = 3  #?\nsnapshot = inline_debugger.get_snapshot_data()\n",
        installed.config,
    )

    assert namespace["snapshot"] == inline_debugger.get_snapshot_data()
    assert namespace["snapshot"][0]["label"] == "value"


def test_wait_settled_drains_pending_awaits(
    tmp_path: Path, installed: InlineDebuggerRuntime
) -> None:
    namespace = _run_with_builtins(
        tmp_path,
        "import asyncio\n"
        "async def main():\n"
        "    await asyncio.sleep(0.01, result=5)  #?\n",
        installed.config,
    )

    async def scenario():
        await namespace["main"]()
        await inline_debugger.wait_settled()

    asyncio.run(scenario())

    (record,) = inline_debugger.get_data()
    assert record["kind"] == "await"
    assert record["outcomePrefix"] == "Resolved "
    assert record["outcome"] == "5"


def test_facade_requires_an_installed_runtime() -> None:
    inline_debugger.uninstall()

    with pytest.raises(RuntimeError, match="not installed"):
        inline_debugger.get_data()
    asyncio.run(inline_debugger.wait_settled())
