"""Example: awaited values, an awaited failure and a traced lambda."""

from __future__ import annotations

import asyncio

import inline_debugger


async def double(n: int) -> int:
    await asyncio.sleep(0)
    return n * 2


async def fail(message: str) -> int:
    await asyncio.sleep(0)
    raise RuntimeError(message)


async def main() -> int:
    doubled = await double(21)  #?
    try:
        await fail("boom!")  #?
    except RuntimeError as e:
        print("handled", e)  #?

    handlers = {}
    handlers["square"] = lambda x: x * x  #?

    await inline_debugger.wait_settled()
    return handlers["square"](doubled)


if __name__ == "__main__":
    print("ok", asyncio.run(main()))
