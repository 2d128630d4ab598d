"""Runtime monitor called by instrumented code.

The monitor runs the deferred computation handed over by the transform,
classifies what came back, records it in the store and hands the original
outcome back to the caller: values are returned, exceptions re-raised.
The monitor never awaits an object the program still holds. An awaited
operand comes back wrapped so the program's own ``await`` settles it. A
duplicate made by the thunk is scheduled as a task, or closed when no event
loop runs.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence, Set

from .records import (
    REJECTED_PREFIX,
    RESOLVED_PREFIX,
    UNKNOWN_FILE,
    Deferred,
    RecordKind,
    TraceRecord,
    classify_outcome,
)
from .serializer import serialize
from .store import TraceStore

logger = logging.getLogger(__name__)

_RAISING_KINDS = (RecordKind.ERROR, RecordKind.THROW)


def _is_exception_class(value: Any) -> bool:
    return isinstance(value, type) and issubclass(value, BaseException)


class Monitor:
    """Executes deferred computations and records their outcome in ``store``."""

    def __init__(self, store: TraceStore) -> None:
        self.store = store
        self._pending: Set["asyncio.Future[Any]"] = set()

    # ------------------------------------------------------------------ watch
    def watch(
        self,
        called: Callable[[], Any],
        *,
        kind: RecordKind | str,
        file_path: str = UNKNOWN_FILE,
        line: int = 0,
        label: Optional[str] = None,
        suppressed: bool = False,
        fresh: bool = False,
    ) -> Any:
        """Run ``called`` and record its outcome.

        ``fresh`` tells that ``called`` builds a new object on every call, so an
        awaitable it returns is a duplicate the program never sees.
        """
        record = TraceRecord(
            kind=RecordKind(kind),
            file_path=file_path,
            line=line,
            label=label,
            suppressed=suppressed,
        )
        try:
            value = called()
            if record.kind in _RAISING_KINDS and _is_exception_class(value):
                # `raise Cls` instantiates the class without arguments
                value = value()
        except BaseException as exc:
            self._record_error(record, exc)
            raise

        if isinstance(value, BaseException) and record.kind in _RAISING_KINDS:
            self._record_error(record, value)
            if record.kind is RecordKind.ERROR:
                raise value
            return value

        outcome = classify_outcome(value)
        if isinstance(outcome, Deferred):
            return self._watch_deferred(record, outcome.awaitable, fresh)

        record.outcome = serialize(value)
        self.store.append(record)
        return value

    def _record_error(self, record: TraceRecord, exc: BaseException) -> None:
        record.kind = RecordKind.ERROR
        record.outcome = [str(exc), serialize(exc)]
        self.store.append(record)

    # --------------------------------------------------------------- deferred
    def _watch_deferred(self, record: TraceRecord, awaitable: Awaitable[Any], fresh: bool) -> Any:
        if asyncio.isfuture(awaitable):
            awaitable.add_done_callback(lambda fut: self._settle_future(record, fut))
            return awaitable
        awaited = record.kind is RecordKind.AWAIT
        if not awaited and not fresh:
            # the program holds this object and awaits it itself
            return self._record_placeholder(record, awaitable)

        async def settle() -> Any:
            try:
                result = await awaitable
            except BaseException as exc:
                self._settle(record, REJECTED_PREFIX, exc)
                raise
            self._settle(record, RESOLVED_PREFIX, result)
            return result

        if awaited:
            # the caller awaits the wrapper in place of the original
            return settle()

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "no running event loop for %s:%d; duplicate awaitable discarded",
                record.file_path,
                record.line,
            )
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return self._record_placeholder(record, awaitable)
        task = asyncio.ensure_future(settle())
        self._pending.add(task)
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: "asyncio.Future[Any]") -> None:
        self._pending.discard(task)
        # the rejection is already recorded and nobody awaits the duplicate
        if not task.cancelled():
            task.exception()

    def _record_placeholder(self, record: TraceRecord, awaitable: Awaitable[Any]) -> Any:
        record.outcome = serialize(awaitable)
        self.store.append(record)
        return awaitable

    def _settle_future(self, record: TraceRecord, fut: "asyncio.Future[Any]") -> None:
        if fut.cancelled():
            self._settle(record, REJECTED_PREFIX, asyncio.CancelledError())
        elif fut.exception() is not None:
            self._settle(record, REJECTED_PREFIX, fut.exception())
        else:
            self._settle(record, RESOLVED_PREFIX, fut.result())

    def _settle(self, record: TraceRecord, prefix: str, value: Any) -> None:
        record.outcome_prefix = prefix
        record.outcome = serialize(value)
        self.store.append(record)

    async def drain(self) -> None:
        """Wait until every awaitable handed to :meth:`watch` has settled."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._pending)

    # -------------------------------------------------------------------- log
    def log(
        self,
        log_fn: Callable[..., Any],
        args: Sequence[Any],
        kwargs: Optional[Mapping[str, Any]] = None,
        *,
        file_path: Optional[str] = None,
        line: int = 0,
    ) -> Any:
        result = log_fn(*args, **(kwargs or {}))
        record = TraceRecord(
            kind=RecordKind.LOG,
            file_path=file_path or UNKNOWN_FILE,
            line=line,
            outcome=[serialize(arg) for arg in args],
        )
        self.store.append(record)
        return result


__all__ = ["Monitor"]
