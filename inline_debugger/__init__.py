"""Inline debugging driven by ``#?`` comments.

Mark a statement with a comment starting with ``?`` and the instrumentation
transform reports its value, exception or awaited outcome to the runtime
monitor, which keeps an ordered trace in ``.debug.data.json``::

    total = add(a, b)  #?
    print("total", total)  #?

Modules are instrumented through :func:`install_import_hook` or by running
a script with ``python -m inline_debugger script.py``. The collected records
are available through :func:`get_data` or the ``inline_debugger`` builtin.
"""

from . import api as _api
from .api import *  # re-export public API symbols
from .config import DebuggerConfig
from .importer import install_import_hook, run_path, uninstall_import_hook
from .records import RecordKind, TraceRecord
from .serializer import UNDEFINED, serialize
from .transform import compile_source, transform_source, transform_tree

__all__ = list(_api.__all__) + [
    "DebuggerConfig",
    "RecordKind",
    "TraceRecord",
    "UNDEFINED",
    "compile_source",
    "install_import_hook",
    "run_path",
    "serialize",
    "transform_source",
    "transform_tree",
    "uninstall_import_hook",
]
