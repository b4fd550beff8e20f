"""Debounced autosave on the running asyncio loop."""
import asyncio
from typing import Awaitable, Callable, Optional

from ..utils.logging import get_logger

logger = get_logger("autosave")


class AutosaveTimer:
    """Run a coroutine once the buffer has been quiet for ``interval`` seconds."""

    def __init__(self, interval: float, callback: Callable[[], Awaitable[None]]):
        self.interval = interval
        self.callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def reset(self) -> bool:
        """
        Restart the countdown.

        Returns:
            False when no event loop is running (nothing scheduled)
        """
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; autosave not scheduled")
            return False
        self._task = loop.create_task(self._run())
        return True

    def cancel(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self):
        await asyncio.sleep(self.interval)
        await self.callback()
