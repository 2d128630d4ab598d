"""Configuration shared by the transform and the runtime.

Both sides read the same two environment variables so that instrumented code
and the monitor it calls agree on whether debugging is active and where the
trace is written.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

ENV_ENABLED: str = "INLINE_DEBUGGER_ENABLED"
ENV_OUTPUT: str = "INLINE_DEBUGGER_OUTPUT"
DEFAULT_OUTPUT_FILE: str = ".debug.data.json"


@dataclass(frozen=True)
class DebuggerConfig:
    """Resolved debugger settings."""

    enabled: bool = True
    output_file: Path = field(default_factory=lambda: Path(DEFAULT_OUTPUT_FILE))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "DebuggerConfig":
        if environ is None:
            environ = os.environ
        enabled = environ.get(ENV_ENABLED, "").strip().lower() != "false"
        output = environ.get(ENV_OUTPUT) or DEFAULT_OUTPUT_FILE
        return cls(enabled=enabled, output_file=Path(output).expanduser())

    def with_output(self, path: os.PathLike | str) -> "DebuggerConfig":
        return DebuggerConfig(enabled=self.enabled, output_file=Path(path))


__all__ = [
    "DEFAULT_OUTPUT_FILE",
    "ENV_ENABLED",
    "ENV_OUTPUT",
    "DebuggerConfig",
]
