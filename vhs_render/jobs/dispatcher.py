"""Render runner interface (local ffmpeg or remote worker)."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from vhs_render.jobs.models import RenderJob

if TYPE_CHECKING:
    from vhs_render.jobs.render_queue import RenderQueue


class RenderRunner(ABC):
    """Performs the render step for one job handed over by the queue driver.

    Implementations report through the queue's status API: any number of
    ``update_status(id, PROCESSING, progress=...)`` calls, then exactly one
    of ``update_status(id, COMPLETED, result_url=...)`` or
    ``update_status(id, ERROR, error=...)``. Nothing may be reported after
    the terminal update; the queue does not police this. Returning without a
    terminal update counts as a failed render.
    """

    @abstractmethod
    async def run(self, job: RenderJob, queue: "RenderQueue") -> None:
        """Render ``job`` (a snapshot) and report progress to ``queue``."""
        ...
