"""Runtime wiring and the accessor facade.

Instrumented code calls two free names, ``inline_debugger_watch`` and
``inline_debugger_log``. :meth:`InlineDebuggerRuntime.install` publishes them
(plus the ``inline_debugger`` accessor) through :mod:`builtins`, so they
resolve in every module without an import. Importing this package installs a
default runtime unless ``INLINE_DEBUGGER_ENABLED=false``.
"""
from __future__ import annotations

import builtins
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from .config import DebuggerConfig
from .monitor import Monitor
from .store import TraceStore
from .trace_file import format_records, load_trace_records, snapshot_records
from .transform import LOG_ENTRY, WATCH_ENTRY

logger = logging.getLogger(__name__)

ACCESSOR_NAME: str = "inline_debugger"

_default_runtime: Optional["InlineDebuggerRuntime"] = None


class TraceAccessor:
    """Read/write surface over a store, for tests and tooling."""

    def __init__(self, store: TraceStore) -> None:
        self.store = store

    @property
    def path(self) -> Path:
        return self.store.output_file

    def get_data(self) -> List[Dict[str, Any]]:
        """Return the persisted records, or ``[]`` when nothing was written."""
        if not self.path.exists():
            return []
        return load_trace_records(self.path)

    def clear_data(self) -> None:
        self.store.clear()

    def print_data(self) -> None:
        print("Debug Results:")
        for line in format_records(self.get_data()):
            print(line)

    def get_snapshot_data(self) -> List[Dict[str, Any]]:
        return snapshot_records(self.get_data())


class InlineDebuggerRuntime:
    """Owns the store, the monitor and the accessor of one debugging session."""

    def __init__(self, config: Optional[DebuggerConfig] = None) -> None:
        self.config = config if config is not None else DebuggerConfig.from_env()
        self.store = TraceStore(self.config.output_file)
        self.monitor = Monitor(self.store)
        self.accessor = TraceAccessor(self.store)
        self._installed: Dict[str, Any] = {}
        self._shadowed: Dict[str, Any] = {}

    def entry_points(self) -> Dict[str, Callable[..., Any]]:
        """Names instrumented code expects to find, mapped to their callables."""
        return {
            WATCH_ENTRY: self.monitor.watch,
            LOG_ENTRY: self.monitor.log,
        }

    def install(self) -> "InlineDebuggerRuntime":
        """Publish the entry points and the accessor as builtins."""
        names: Dict[str, Any] = dict(self.entry_points())
        names[ACCESSOR_NAME] = self.accessor
        for name, value in names.items():
            if hasattr(builtins, name):
                self._shadowed[name] = getattr(builtins, name)
            setattr(builtins, name, value)
        self._installed = names
        self.store.register_exit_flush()
        logger.debug("inline debugger installed (trace output: %s)", self.store.output_file)
        return self

    def uninstall(self) -> None:
        for name, value in self._installed.items():
            if getattr(builtins, name, None) is not value:
                continue
            if name in self._shadowed:
                setattr(builtins, name, self._shadowed[name])
            else:
                delattr(builtins, name)
        self._installed = {}
        self._shadowed = {}
        self.store.unregister_exit_flush()

    @property
    def installed(self) -> bool:
        return bool(self._installed)


def install(config: Optional[DebuggerConfig] = None) -> InlineDebuggerRuntime:
    """Install a process-wide runtime, replacing any previous one."""
    global _default_runtime
    if _default_runtime is not None:
        _default_runtime.uninstall()
    _default_runtime = InlineDebuggerRuntime(config).install()
    return _default_runtime


def uninstall() -> None:
    global _default_runtime
    if _default_runtime is None:
        return
    _default_runtime.uninstall()
    _default_runtime = None


def get_runtime() -> Optional[InlineDebuggerRuntime]:
    return _default_runtime


def _require_runtime() -> InlineDebuggerRuntime:
    if _default_runtime is None:
        raise RuntimeError("inline debugger is not installed")
    return _default_runtime


def get_data() -> List[Dict[str, Any]]:
    return _require_runtime().accessor.get_data()


def clear_data() -> None:
    _require_runtime().accessor.clear_data()


def print_data() -> None:
    _require_runtime().accessor.print_data()


def get_snapshot_data() -> List[Dict[str, Any]]:
    return _require_runtime().accessor.get_snapshot_data()


async def wait_settled() -> None:
    """Wait for pending awaitable outcomes of the installed runtime to be recorded."""
    if _default_runtime is not None:
        await _default_runtime.monitor.drain()


def _auto_install_from_env() -> None:
    config = DebuggerConfig.from_env()
    if not config.enabled:
        return
    install(config)


_auto_install_from_env()

__all__ = [
    "ACCESSOR_NAME",
    "InlineDebuggerRuntime",
    "TraceAccessor",
    "clear_data",
    "get_data",
    "get_runtime",
    "get_snapshot_data",
    "install",
    "print_data",
    "uninstall",
    "wait_settled",
]
