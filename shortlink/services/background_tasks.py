"""
Background Task Helpers

Periodic maintenance jobs (expiry sweep, click compaction) run outside the
request path on their own cadence.

Design:
- PeriodicTask runs one coroutine function every interval seconds
- A failed run is logged and the next run happens on schedule
- stop() lets the current run finish before the task exits
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs job() every interval seconds until stopped."""

    def __init__(self, name: str, job: Callable[[], Awaitable[object]], interval: float):
        self.name = name
        self.job = job
        self.interval = interval
        self.runs = 0
        self.failures = 0
        self._stopping = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> Optional[object]:
        """Run the job now; failures are logged, not raised."""
        try:
            result = await self.job()
        except Exception as e:
            self.failures += 1
            logger.error(f"Background task '{self.name}' failed: {e}", exc_info=True)
            return None
        self.runs += 1
        return result

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.run_once()

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            logger.warning(f"Background task '{self.name}' already running")
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(f"Background task '{self.name}' started (every {self.interval}s)")

    async def stop(self) -> None:
        self._stopping.set()
        if self._task is not None:
            await self._task
            self._task = None
            logger.info(f"Background task '{self.name}' stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
