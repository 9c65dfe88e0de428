from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

# Minecraft-style hosts tick 20 times per second.
DEFAULT_TICK_SECONDS = 0.05


class AsyncioTickScheduler:
    """Tick scheduler on top of the running asyncio loop."""

    def __init__(self, *, tick_seconds: float = DEFAULT_TICK_SECONDS) -> None:
        self.tick_seconds = tick_seconds

    def run_deferred(self, callback: Callable[[], Any], delay_ticks: int) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0, delay_ticks) * self.tick_seconds, callback)

    def run_next_tick(self, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.run_deferred(callback, 1)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()
