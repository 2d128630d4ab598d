"""Ordered, file-backed accumulator of trace records."""
from __future__ import annotations

import atexit
import json
import logging
import os
from pathlib import Path
from typing import List

from .records import TraceRecord

logger = logging.getLogger(__name__)


class TraceStore:
    """Holds the records of one process and mirrors them to ``output_file``.

    Every append rewrites the whole file, so the file is always a complete
    image of :attr:`records`. Write failures propagate to the caller.
    """

    def __init__(self, output_file: os.PathLike | str) -> None:
        self.output_file = Path(output_file)
        self.records: List[TraceRecord] = []
        self._exit_hook_registered = False

    def append(self, record: TraceRecord) -> None:
        if record.suppressed:
            return
        self.records.append(record)
        self.save()

    def save(self) -> None:
        payload = [record.to_json() for record in self.records]
        with open(self.output_file, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        logger.debug("wrote %d trace record(s) to %s", len(payload), self.output_file)

    def clear(self) -> None:
        self.records.clear()
        if self.output_file.exists():
            self.output_file.unlink()

    def register_exit_flush(self) -> None:
        """Flush a non-empty store again when the interpreter exits."""
        if self._exit_hook_registered:
            return
        atexit.register(self._flush_at_exit)
        self._exit_hook_registered = True

    def unregister_exit_flush(self) -> None:
        if self._exit_hook_registered:
            atexit.unregister(self._flush_at_exit)
            self._exit_hook_registered = False

    def _flush_at_exit(self) -> None:
        if self.records:
            self.save()

    def __len__(self) -> int:
        return len(self.records)


__all__ = ["TraceStore"]
