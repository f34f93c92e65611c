# backend/billsync/client/clock.py
import asyncio
import time
from typing import Any, Awaitable, Coroutine, Optional, Protocol, Set, TypeVar

from billsync.core.exceptions import ClientTimeoutError

T = TypeVar("T")


class Clock(Protocol):
    def now(self) -> float:
        ...


class Scheduler(Protocol):
    def spawn(self, coro: Coroutine[Any, Any, T]) -> "asyncio.Task[T]":
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Monotonic seconds; wall-clock jumps never expire a cache entry early."""

    def now(self) -> float:
        return time.monotonic()


class AsyncioScheduler:
    """Runs background work on the current event loop."""

    def __init__(self):
        # Strong references; the loop only keeps weak ones
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, T]) -> "asyncio.Task[T]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


def _consume_result(task: asyncio.Future) -> None:
    if not task.cancelled():
        task.exception()


async def with_timeout(
    scheduler: Scheduler,
    awaitable: Awaitable[T],
    seconds: Optional[float],
    operation: str,
) -> T:
    """
    Race ``awaitable`` against a scheduler timer.

    On timeout the operation keeps running and its result is dropped; a
    network call in flight cannot be recalled, only ignored.

    Raises:
        ClientTimeoutError: the timer fired first
    """
    work = asyncio.ensure_future(awaitable)
    if seconds is None:
        return await work

    timer = scheduler.spawn(scheduler.sleep(seconds))
    try:
        done, _ = await asyncio.wait({work, timer}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        timer.cancel()
        raise

    if work in done:
        timer.cancel()
        return work.result()

    work.add_done_callback(_consume_result)
    raise ClientTimeoutError(f"{operation} timed out after {seconds}s", timeout=seconds)
