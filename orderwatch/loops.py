# orderwatch/loops.py
import asyncio
import contextlib
from typing import Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")


async def wait_done(done: asyncio.Event, timeout: float) -> bool:
    """Sleep up to timeout; True as soon as done is set."""
    try:
        await asyncio.wait_for(done.wait(), timeout)
        return True
    except asyncio.TimeoutError:
        return False


async def get_or_done(queue: "asyncio.Queue[T]", done: asyncio.Event) -> Optional[T]:
    """Next queue item, or None once done is set."""
    if done.is_set():
        return None
    get_task = asyncio.ensure_future(queue.get())
    done_task = asyncio.ensure_future(done.wait())
    try:
        await asyncio.wait({get_task, done_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for t in (get_task, done_task):
            if not t.done():
                t.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await t
    # an item already taken off the queue is never lost
    if get_task.done() and not get_task.cancelled():
        return get_task.result()
    return None


async def run_every(interval_s: float, done: asyncio.Event, tick: Callable[[], Awaitable[object]]) -> None:
    """Call tick every interval_s until done; the first call happens one interval after start."""
    while not done.is_set():
        if await wait_done(done, interval_s):
            return
        await tick()
