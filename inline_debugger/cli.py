"""CLI to run a Python script with its marked constructs instrumented.

Usage:
    python -m inline_debugger [inline-debugger options] <script.py> [script args...]

Options (must appear before the script path):
    --inline-debugger-output PATH      Trace file (default: $INLINE_DEBUGGER_OUTPUT or .debug.data.json)
    --inline-debugger-disable          Run the script without instrumentation
    --inline-debugger-print            Print the collected records after the run
    --inline-debugger-log-level LEVEL  Diagnostics log level (e.g. DEBUG, INFO)
    --inline-debugger-log-file PATH    Write diagnostics to a file instead of stderr

Examples:
    python -m inline_debugger app.py --flag=1
    python -m inline_debugger --inline-debugger-output=trace.json --inline-debugger-print app.py
"""
from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .api import InlineDebuggerRuntime, install, uninstall
from .config import DebuggerConfig
from .importer import install_import_hook, run_path, uninstall_import_hook

logger = logging.getLogger(__name__)

USAGE = "Usage: python -m inline_debugger [inline-debugger options] <script.py> [args...]\n"


@dataclass(frozen=True)
class CliConfig:
    script: Path
    script_args: List[str] = field(default_factory=list)
    debugger: DebuggerConfig = field(default_factory=DebuggerConfig)
    print_records: bool = False
    log_level: Optional[str] = None
    log_file: Optional[Path] = None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m inline_debugger", add_help=True)
    parser.add_argument(
        "--inline-debugger-output",
        dest="output",
        default=None,
        help="Trace file to write. Defaults to INLINE_DEBUGGER_OUTPUT or .debug.data.json.",
    )
    parser.add_argument(
        "--inline-debugger-disable",
        dest="disable",
        action="store_true",
        help="Run the script unmodified; no records are collected.",
    )
    parser.add_argument(
        "--inline-debugger-print",
        dest="print_records",
        action="store_true",
        help="Print the collected records once the script finishes.",
    )
    parser.add_argument(
        "--inline-debugger-log-level",
        dest="log_level",
        default=None,
        help="Diagnostics log level (e.g. DEBUG, INFO).",
    )
    parser.add_argument(
        "--inline-debugger-log-file",
        dest="log_file",
        default=None,
        help="Path to a file where diagnostics should be written.",
    )
    return parser


_VALUE_OPTIONS = frozenset(
    {"--inline-debugger-output", "--inline-debugger-log-level", "--inline-debugger-log-file"}
)


def _split_argv(argv: List[str]) -> Tuple[List[str], List[str]]:
    """Split ``argv`` into our options and ``[script, *script_args]``.

    Options end at the first positional argument (or at ``--``); anything after
    the script path belongs to the script.
    """
    index = 0
    while index < len(argv):
        arg = argv[index]
        if arg == "--":
            return argv[:index], argv[index + 1 :]
        if not arg.startswith("-"):
            break
        index += 2 if arg in _VALUE_OPTIONS else 1
    return argv[:index], argv[index:]


def _parse_args(argv: List[str]) -> CliConfig:
    parser = _build_parser()
    options, rest = _split_argv(list(argv))
    ns = parser.parse_args(options)

    if not rest or not Path(rest[0]).exists():
        parser.exit(2, USAGE)

    script_args = rest[1:]
    if script_args[:1] == ["--"]:
        script_args = script_args[1:]

    debugger = DebuggerConfig.from_env()
    if ns.output:
        debugger = debugger.with_output(ns.output)
    if ns.disable:
        debugger = DebuggerConfig(enabled=False, output_file=debugger.output_file)

    return CliConfig(
        script=Path(rest[0]).resolve(),
        script_args=script_args,
        debugger=debugger,
        print_records=ns.print_records,
        log_level=ns.log_level,
        log_file=Path(ns.log_file).resolve() if ns.log_file else None,
    )


def _configure_logging(config: CliConfig) -> None:
    if config.log_level is None and config.log_file is None:
        return
    logging.basicConfig(
        level=(config.log_level or "INFO").upper(),
        filename=str(config.log_file) if config.log_file else None,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    config = _parse_args(argv)
    _configure_logging(config)

    # the package import may have installed a default runtime from the environment
    uninstall()
    runtime: Optional[InlineDebuggerRuntime] = None
    if config.debugger.enabled:
        runtime = install(config.debugger)
        install_import_hook([config.script.parent], config.debugger)

    old_argv = sys.argv
    old_path = list(sys.path)
    sys.argv = [str(config.script)] + config.script_args
    sys.path.insert(0, str(config.script.parent))
    logger.debug(
        "running %s (instrumentation %s)",
        config.script,
        "enabled" if config.debugger.enabled else "disabled",
    )
    try:
        run_path(config.script, config.debugger)
        return 0
    except SystemExit as e:
        # Preserve script's exit code
        if e.code is None:
            return 0
        return e.code if isinstance(e.code, int) else 1
    finally:
        sys.argv = old_argv
        sys.path[:] = old_path
        uninstall_import_hook()
        if runtime is not None:
            try:
                if runtime.store.records:
                    runtime.store.save()
                if config.print_records:
                    runtime.accessor.print_data()
            finally:
                uninstall()


__all__ = ["CliConfig", "main"]
