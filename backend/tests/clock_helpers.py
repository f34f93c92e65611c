# tests/clock_helpers.py
"""Deterministic clock and scheduler doubles for client tests"""

import asyncio
from typing import List, Tuple


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def now(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class ManualScheduler:
    """Sleeps only end when the test fires them"""

    def __init__(self):
        self.sleeps: List[Tuple[float, asyncio.Future]] = []

    def spawn(self, coro):
        return asyncio.get_running_loop().create_task(coro)

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self.sleeps.append((seconds, future))
        await future

    def pending(self, seconds: float) -> int:
        return sum(1 for duration, future in self.sleeps if duration == seconds and not future.done())

    def fire(self, seconds: float) -> None:
        for duration, future in self.sleeps:
            if duration == seconds and not future.done():
                future.set_result(None)


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)
