"""Randomized human-like pauses between outbound actions."""
from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable

Sleep = Callable[[float], Awaitable[None]]


class HumanPacer:
    """Waits a uniformly drawn delay; random source and sleep are injectable."""

    def __init__(
        self,
        rng: random.Random | None = None,
        sleep: Sleep | None = None,
        default_range: tuple[float, float] = (1.5, 4.5),
    ) -> None:
        self.rng = rng or random.Random()
        self._sleep = sleep or asyncio.sleep
        self.default_range = default_range

    def draw(self, low: float | None = None, high: float | None = None) -> float:
        lo = self.default_range[0] if low is None else low
        hi = self.default_range[1] if high is None else high
        return self.rng.uniform(lo, hi)

    async def pause(self, low: float | None = None, high: float | None = None) -> float:
        delay = self.draw(low, high)
        await self._sleep(delay)
        return delay
