"""
FORMCOACH Coach Service - Rest Timer

One-second asyncio ticker that drives a session's rest countdown. Each
timer is tagged with the session generation it was started for so ticks
belonging to a switched or stopped session are dropped.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

# (session_id, generation) -> True when the timer should stop
TickCallback = Callable[[str, int], Awaitable[bool]]


class RestTimer:
    """Periodic tick task for one rest interval."""

    def __init__(
        self,
        session_id: str,
        generation: int,
        on_tick: TickCallback,
        interval: float = 1.0
    ):
        self.session_id = session_id
        self.generation = generation
        self.interval = interval
        self._on_tick = on_tick
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Start ticking on the running event loop."""
        if self.running:
            return

        async def tick_loop():
            while True:
                await asyncio.sleep(self.interval)
                if await self._on_tick(self.session_id, self.generation):
                    break

        self._task = asyncio.create_task(tick_loop())
        logger.debug(
            f"⏱️ Rest timer started for {self.session_id} "
            f"(generation {self.generation}, interval {self.interval}s)"
        )

    def cancel(self):
        """Stop the timer immediately."""
        if self._task and not self._task.done():
            self._task.cancel()
            logger.debug(f"Rest timer cancelled for {self.session_id}")
        self._task = None
