"""Unit tests for the runtime monitor."""
from __future__ import annotations

import asyncio
import gc
import inspect
import json
import warnings
from pathlib import Path

import pytest

from inline_debugger.monitor import Monitor
from inline_debugger.records import RecordKind
from inline_debugger.store import TraceStore


@pytest.fixture
def monitor(tmp_path: Path) -> Monitor:
    return Monitor(TraceStore(tmp_path / "trace.json"))


def _stored(monitor: Monitor):
    return [record.to_json() for record in monitor.store.records]


def test_watch_returns_value_and_records_it(monitor: Monitor) -> None:
    result = monitor.watch(lambda: 2 + 3, kind="variable", file_path="a.py", line=1, label="a")

    assert result == 5
    assert _stored(monitor) == [
        {"kind": "variable", "filePath": "a.py", "line": 1, "label": "a", "outcome": "5"}
    ]


def test_watch_defaults_to_unknown_location(monitor: Monitor) -> None:
    monitor.watch(lambda: "x", kind=RecordKind.EXPRESSION)

    assert _stored(monitor) == [
        {"kind": "expression", "filePath": "unknown", "line": 0, "outcome": "x"}
    ]


def test_watch_records_and_reraises_errors(monitor: Monitor) -> None:
    with pytest.raises(ZeroDivisionError):
        monitor.watch(lambda: 1 / 0, kind="return", file_path="a.py", line=2)

    (record,) = _stored(monitor)
    assert record["kind"] == "error"
    message, serialized = record["outcome"]
    assert message == "division by zero"
    assert json.loads(serialized)["name"] == "ZeroDivisionError"


def test_error_kind_raises_returned_exception(monitor: Monitor) -> None:
    error = KeyError("k")

    with pytest.raises(KeyError) as caught:
        monitor.watch(lambda: error, kind="error")

    assert caught.value is error
    assert _stored(monitor)[0]["kind"] == "error"


def test_throw_kind_records_error_and_hands_exception_back(monitor: Monitor) -> None:
    error = ValueError("Name is required")

    result = monitor.watch(lambda: error, kind="throw", file_path="users.py", line=9)

    assert result is error
    (record,) = _stored(monitor)
    assert record["kind"] == "error"
    assert record["outcome"][0] == "Name is required"


def test_suppressed_watch_is_computed_but_not_stored(monitor: Monitor) -> None:
    assert monitor.watch(lambda: 1, kind="variable", suppressed=True) == 1
    assert _stored(monitor) == []


def test_log_calls_once_and_records_arguments(monitor: Monitor) -> None:
    calls = []

    result = monitor.log(
        lambda *args, **kwargs: calls.append((args, kwargs)),
        ("x", 1),
        {"sep": "-"},
        file_path="a.py",
        line=4,
    )

    assert result is None
    assert calls == [(("x", 1), {"sep": "-"})]
    assert monitor.log(lambda *args: "sent", ("y",)) == "sent"
    assert _stored(monitor)[0] == {
        "kind": "log",
        "filePath": "a.py",
        "line": 4,
        "outcome": ["x", "1"],
    }


def test_log_propagates_failures_without_recording(monitor: Monitor) -> None:
    def broken(*_args):
        raise RuntimeError("closed")

    with pytest.raises(RuntimeError):
        monitor.log(broken, ("x",))

    assert _stored(monitor) == []


async def _value(value, delay: float = 0):
    await asyncio.sleep(delay)
    return value


async def _failure(message: str):
    await asyncio.sleep(0)
    raise RuntimeError(message)


def test_awaitable_resolution_is_recorded_with_prefix(monitor: Monitor) -> None:
    async def scenario():
        pending = monitor.watch(lambda: _value(42), kind="await", line=3)
        assert _stored(monitor) == []
        result = await pending
        await monitor.drain()
        return result

    assert asyncio.run(scenario()) == 42
    assert _stored(monitor) == [
        {
            "kind": "await",
            "filePath": "unknown",
            "line": 3,
            "outcome": "42",
            "outcomePrefix": "Resolved ",
        }
    ]


def test_awaitable_rejection_is_recorded_and_propagated(monitor: Monitor) -> None:
    async def scenario():
        pending = monitor.watch(lambda: _failure("boom!"), kind="await")
        with pytest.raises(RuntimeError, match="boom!"):
            await pending
        await monitor.drain()

    asyncio.run(scenario())

    (record,) = _stored(monitor)
    assert record["kind"] == "await"
    assert record["outcomePrefix"] == "Rejected "
    assert json.loads(record["outcome"]) == {"name": "RuntimeError", "message": "boom!"}


def test_futures_are_returned_untouched(monitor: Monitor) -> None:
    async def scenario():
        future = asyncio.get_running_loop().create_future()
        assert monitor.watch(lambda: future, kind="await") is future
        future.set_result("done")
        await future
        await asyncio.sleep(0)

    asyncio.run(scenario())

    assert _stored(monitor)[0]["outcome"] == "done"
    assert _stored(monitor)[0]["outcomePrefix"] == "Resolved "


def test_records_follow_settlement_order(monitor: Monitor) -> None:
    async def scenario():
        slow = monitor.watch(lambda: _value("slow", 0.05), kind="return", fresh=True)
        fast = monitor.watch(lambda: _value("fast"), kind="return", fresh=True)
        assert monitor.pending == 2
        await monitor.drain()
        return await slow, await fast

    assert asyncio.run(scenario()) == ("slow", "fast")
    assert [r["outcome"] for r in _stored(monitor)] == ["fast", "slow"]
    assert monitor.pending == 0


def test_coroutine_without_running_loop_is_left_to_the_caller(monitor: Monitor) -> None:
    pending = monitor.watch(lambda: _value(7), kind="await")

    assert _stored(monitor) == []
    assert asyncio.run(pending) == 7
    assert _stored(monitor)[0]["outcome"] == "7"


def test_awaited_operand_settles_when_the_caller_awaits(monitor: Monitor) -> None:
    async def scenario():
        coro = _value(42)
        wrapped = monitor.watch(lambda: coro, kind="await")
        assert monitor.pending == 0
        return await wrapped

    assert asyncio.run(scenario()) == 42
    assert [(r["outcomePrefix"], r["outcome"]) for r in _stored(monitor)] == [("Resolved ", "42")]


def test_held_awaitable_is_recorded_as_placeholder(monitor: Monitor) -> None:
    async def scenario():
        coro = _value(5)
        assert monitor.watch(lambda: coro, kind="variable", label="c") is coro
        return await coro

    assert asyncio.run(scenario()) == 5
    assert _stored(monitor) == [
        {"kind": "variable", "filePath": "unknown", "line": 0, "label": "c", "outcome": "Awaitable"}
    ]


def test_fresh_duplicate_without_loop_is_closed(monitor: Monitor) -> None:
    coro = _value(1)

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        returned = monitor.watch(lambda: coro, kind="return", fresh=True)
        del returned
        gc.collect()

    assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED
    assert _stored(monitor)[0]["outcome"] == "Awaitable"
    assert not [w for w in caught if issubclass(w.category, RuntimeWarning)]


@pytest.mark.parametrize("kind", ["throw", "error"])
def test_exception_classes_are_instantiated(monitor: Monitor, kind: str) -> None:
    if kind == "throw":
        result = monitor.watch(lambda: ValueError, kind=kind)
        assert isinstance(result, ValueError)
    else:
        with pytest.raises(ValueError):
            monitor.watch(lambda: ValueError, kind=kind)

    (record,) = _stored(monitor)
    assert record["kind"] == "error"
    assert record["outcome"][0] == ""
    assert json.loads(record["outcome"][1]) == {"name": "ValueError", "message": ""}


def test_exception_classes_are_plain_values_elsewhere(monitor: Monitor) -> None:
    assert monitor.watch(lambda: ValueError, kind="variable") is ValueError
    assert _stored(monitor)[0]["outcome"] == repr(ValueError)
