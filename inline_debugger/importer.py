"""Import hook that instruments source modules as they are loaded."""
from __future__ import annotations

import builtins
import importlib.abc
import importlib.machinery
import importlib.util
import logging
import os
import sys
import types
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import DebuggerConfig
from .transform import compile_source

logger = logging.getLogger(__name__)

_PACKAGE_DIR = Path(__file__).resolve().parent


class InlineDebuggerLoader(importlib.machinery.SourceFileLoader):
    """Source loader compiling through the instrumentation transform.

    Bytecode caching is bypassed: cached ``.pyc`` files would otherwise keep
    serving instrumented code after debugging is switched off, or plain code
    after markers were added.
    """

    def __init__(self, fullname: str, path: str, config: DebuggerConfig) -> None:
        super().__init__(fullname, path)
        self.config = config

    def get_code(self, fullname: str) -> types.CodeType:
        source_path = self.get_filename(fullname)
        return self.source_to_code(self.get_data(source_path), source_path)

    def source_to_code(self, data, path, *, _optimize=-1):  # type: ignore[override]
        source = importlib.util.decode_source(data)
        return compile_source(source, os.fspath(path), self.config)


class InlineDebuggerFinder(importlib.abc.MetaPathFinder):
    """Route modules living under ``roots`` to :class:`InlineDebuggerLoader`."""

    def __init__(self, roots: Iterable[os.PathLike | str], config: DebuggerConfig) -> None:
        self.roots: List[Path] = [Path(root).resolve() for root in roots]
        self.config = config

    def _covers(self, origin: Path) -> bool:
        if origin.is_relative_to(_PACKAGE_DIR):
            return False
        return any(origin.is_relative_to(root) for root in self.roots)

    def find_spec(self, fullname, path=None, target=None):
        spec = importlib.machinery.PathFinder.find_spec(fullname, path)
        if spec is None or spec.origin is None:
            return None
        if not isinstance(spec.loader, importlib.machinery.SourceFileLoader):
            return None
        if not self._covers(Path(spec.origin).resolve()):
            return None
        logger.debug("instrumenting import of %s from %s", fullname, spec.origin)
        return importlib.util.spec_from_file_location(
            fullname,
            spec.origin,
            loader=InlineDebuggerLoader(fullname, spec.origin, self.config),
            submodule_search_locations=spec.submodule_search_locations,
        )


_active_finder: Optional[InlineDebuggerFinder] = None


def install_import_hook(
    roots: Iterable[os.PathLike | str],
    config: Optional[DebuggerConfig] = None,
) -> InlineDebuggerFinder:
    """Instrument every source module imported from under ``roots``."""
    global _active_finder
    uninstall_import_hook()
    finder = InlineDebuggerFinder(roots, config if config is not None else DebuggerConfig.from_env())
    sys.meta_path.insert(0, finder)
    _active_finder = finder
    logger.debug("import hook installed for %s", ", ".join(map(str, finder.roots)))
    return finder


def uninstall_import_hook() -> None:
    global _active_finder
    if _active_finder is None:
        return
    if _active_finder in sys.meta_path:
        sys.meta_path.remove(_active_finder)
    _active_finder = None


def run_path(path: os.PathLike | str, config: Optional[DebuggerConfig] = None) -> Dict[str, Any]:
    """Execute the script at ``path`` as ``__main__`` with its markers active.

    Returns the resulting module globals, like :func:`runpy.run_path`.
    """
    script = Path(path).resolve()
    source = importlib.util.decode_source(script.read_bytes())
    code = compile_source(source, str(script), config)

    module = types.ModuleType("__main__")
    module.__file__ = str(script)
    module.__builtins__ = builtins  # type: ignore[attr-defined]
    previous = sys.modules.get("__main__")
    sys.modules["__main__"] = module
    try:
        exec(code, module.__dict__)
    finally:
        if previous is not None:
            sys.modules["__main__"] = previous
    return module.__dict__


__all__ = [
    "InlineDebuggerFinder",
    "InlineDebuggerLoader",
    "install_import_hook",
    "run_path",
    "uninstall_import_hook",
]
