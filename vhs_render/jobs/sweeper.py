"""Periodic eviction of finished render jobs and stale scratch files."""

import asyncio
import logging
from typing import Optional

from vhs_render.jobs.render_queue import RenderQueue
from vhs_render.storage.workspace import RenderWorkspace

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Runs ``queue.cleanup_expired()`` every ``interval_seconds``."""

    def __init__(
        self,
        queue: RenderQueue,
        interval_seconds: float = 3600,
        workspace: Optional[RenderWorkspace] = None,
    ):
        self._queue = queue
        self._interval = interval_seconds
        self._workspace = workspace
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def sweep(self) -> int:
        """One pass. Returns the number of job records removed."""
        removed = self._queue.cleanup_expired()
        if self._workspace is not None:
            dirs = self._workspace.cleanup_expired()
            if dirs:
                logger.info("Removed %d stale render workspace dir(s)", dirs)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Retention sweep failed")
