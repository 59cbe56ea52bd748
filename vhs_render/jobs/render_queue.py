"""In-process render job queue.

One worker slot: the driver task pulls job ids off a FIFO queue, marks the
job processing and hands it to the render step, then waits for the job to
reach a terminal status before moving on. Everything runs on one asyncio
event loop, so handlers and the driver interleave without locks. Anything
reporting from another thread must go through ``loop.call_soon_threadsafe``.
"""

import asyncio
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Union

from vhs_render.jobs.dispatcher import RenderRunner
from vhs_render.jobs.errors import InvalidTransitionError, JobValidationError
from vhs_render.jobs.fifo import FifoQueue
from vhs_render.jobs.models import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    JobStatus,
    QueueStats,
    RenderJob,
    Segment,
    utcnow,
)
from vhs_render.jobs.store import JobRecordStore

logger = logging.getLogger(__name__)


class RenderQueue:
    """Render job service: record store, FIFO queue and the driver task."""

    def __init__(
        self,
        runner: Optional[RenderRunner] = None,
        *,
        drain_delay: float = 0.1,
        render_timeout: Optional[float] = None,
        strict_transitions: bool = False,
        retention: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        runner: performs the render step. Without one, the step is whatever
            external worker reports through ``update_status``.
        render_timeout: seconds before an unfinished render step is failed.
            None waits forever, so a hung step stalls the queue.
        strict_transitions: reject status changes outside ALLOWED_TRANSITIONS.
        """
        self._store = JobRecordStore()
        self._fifo = FifoQueue()
        self._runner = runner
        self._drain_delay = drain_delay
        self._render_timeout = render_timeout
        self._strict = strict_transitions
        self._retention = retention
        self._clock = clock
        self._is_processing = False
        self._task: Optional[asyncio.Task] = None
        self._terminal_events: Dict[str, asyncio.Event] = {}

    @property
    def store(self) -> JobRecordStore:
        return self._store

    @property
    def queue_length(self) -> int:
        return len(self._fifo)

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    async def start(self) -> None:
        """Drain anything enqueued before the event loop was running."""
        self._ensure_draining()

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self._is_processing = False

    # ------------------------------------------------------------------
    # Status API
    # ------------------------------------------------------------------

    def create_job(
        self,
        user_id: str,
        file_id: str,
        source_url: str,
        segments: Iterable[Union[Segment, dict]] = (),
    ) -> RenderJob:
        """Store a queued job, enqueue it and wake the driver if idle.

        Returns a copy; later changes go through ``update_status`` only.
        """
        required = (("user_id", user_id), ("file_id", file_id), ("source_url", source_url))
        missing = [name for name, value in required if not value or not str(value).strip()]
        if missing:
            raise JobValidationError(f"Missing required field(s): {', '.join(missing)}")

        parsed = [s if isinstance(s, Segment) else Segment.model_validate(s) for s in segments]
        job = self._store.create(
            user_id, file_id, source_url, parsed, created_at=self._clock()
        )
        self._fifo.enqueue(job.id)
        logger.info("Render job created: %s (queue size %d)", job.id, len(self._fifo))

        self._ensure_draining()
        return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Optional[RenderJob]:
        job = self._store.get(job_id)
        return job.model_copy(deep=True) if job else None

    def get_user_jobs(self, user_id: str) -> List[RenderJob]:
        return [job.model_copy(deep=True) for job in self._store.list_by_user(user_id)]

    def update_status(
        self,
        job_id: str,
        status: Union[JobStatus, str],
        *,
        progress: Optional[int] = None,
        result_url: Optional[str] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Apply a status change. Unknown ids are logged and ignored (False).

        Any status may follow any other unless strict mode is on, in which
        case an illegal edge raises InvalidTransitionError untouched.
        """
        job = self._store.get(job_id)
        if job is None:
            logger.error("Job not found: %s", job_id)
            return False

        status = JobStatus(status)
        if self._strict and status not in ALLOWED_TRANSITIONS[job.status]:
            raise InvalidTransitionError(job_id, job.status, status)

        job.status = status
        if progress is not None:
            job.progress = max(0, min(100, int(progress)))
        if result_url:
            job.result_url = result_url
        if error:
            job.error = error

        now = self._clock()
        if status == JobStatus.PROCESSING and job.started_at is None:
            job.started_at = now
        if status in TERMINAL_STATUSES:
            if job.completed_at is None:
                job.completed_at = now
            self._signal_terminal(job_id)

        level = logging.DEBUG if status == JobStatus.PROCESSING else logging.INFO
        logger.log(level, "Job %s updated: %s (%d%%)", job_id, status.value, job.progress)
        return True

    def get_stats(self) -> QueueStats:
        jobs = self._store.all()
        counts = Counter(job.status for job in jobs)
        return QueueStats(
            total=len(jobs),
            queued=counts[JobStatus.QUEUED],
            processing=counts[JobStatus.PROCESSING],
            completed=counts[JobStatus.COMPLETED],
            error=counts[JobStatus.ERROR],
            queue_length=len(self._fifo),
            is_processing=self._is_processing,
        )

    def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Delete terminal jobs whose completion is at least one retention window old."""
        cutoff = (now or self._clock()) - self._retention
        expired = [
            job.id
            for job in self._store.all()
            if job.is_terminal and job.completed_at is not None and job.completed_at <= cutoff
        ]
        for job_id in expired:
            self._store.delete(job_id)
        if expired:
            logger.info("Cleaned %d old render jobs", len(expired))
        return len(expired)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def _ensure_draining(self) -> None:
        if self._is_processing or not self._fifo:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; jobs stay queued until start()")
            return
        self._is_processing = True
        self._task = loop.create_task(self._drain())

    async def _drain(self) -> None:
        """Process queued jobs one at a time until the queue is empty."""
        try:
            while True:
                job_id = self._fifo.dequeue()
                if job_id is None:
                    logger.info("Render queue is empty")
                    return

                job = self._store.get(job_id)
                if job is None:
                    logger.warning("Job not found in store, skipping: %s", job_id)
                    continue
                if job.is_terminal:
                    logger.info("Job %s already %s, skipping", job_id, job.status.value)
                    continue

                logger.info("Processing job: %s", job_id)
                try:
                    self._mark_processing(job_id)
                except Exception as exc:
                    logger.exception("Error starting job %s", job_id)
                    self._record_failure(job_id, str(exc) or type(exc).__name__)
                    continue

                await self._render(job_id)
                await asyncio.sleep(self._drain_delay)
        finally:
            self._is_processing = False
            self._task = None

    def _mark_processing(self, job_id: str) -> None:
        self.update_status(job_id, JobStatus.PROCESSING, progress=0)

    async def _render(self, job_id: str) -> None:
        done = asyncio.Event()
        self._terminal_events[job_id] = done
        step = asyncio.ensure_future(self._run_step(job_id, done))
        try:
            # Only the deadline counts as a timeout; a TimeoutError raised by
            # the runner itself is an ordinary render failure.
            finished, _ = await asyncio.wait({step}, timeout=self._render_timeout)
            if not finished:
                await self._cancel_step(job_id, step)
                logger.error("Job %s: render timed out after %ss", job_id, self._render_timeout)
                self._record_failure(
                    job_id, f"Render timed out after {self._render_timeout:g} seconds"
                )
                return
            if step.cancelled():
                self._record_failure(job_id, "Render step was cancelled")
                return
            exc = step.exception()
            if exc is not None:
                logger.error("Job %s: render step failed", job_id, exc_info=exc)
                self._record_failure(job_id, f"{type(exc).__name__}: {exc}")
        except asyncio.CancelledError:
            step.cancel()
            raise
        finally:
            self._terminal_events.pop(job_id, None)

    async def _cancel_step(self, job_id: str, step: asyncio.Future) -> None:
        step.cancel()
        try:
            await step
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Job %s: render step failed while being cancelled", job_id)

    async def _run_step(self, job_id: str, done: asyncio.Event) -> None:
        job = self._store.get(job_id)
        if job is None:
            return
        if self._runner is not None:
            await self._runner.run(job.model_copy(deep=True), self)
            job = self._store.get(job_id)
            if job is not None and not job.is_terminal:
                logger.warning("Job %s: runner returned without a final status", job_id)
                self._record_failure(job_id, "Render step finished without reporting a result")
            return
        # No runner: an external worker reports through update_status.
        await done.wait()

    def _record_failure(self, job_id: str, message: str) -> None:
        job = self._store.get(job_id)
        if job is None or job.is_terminal:
            return
        # queued/processing -> error is legal, so strict mode never rejects this.
        self.update_status(job_id, JobStatus.ERROR, error=message)

    def _signal_terminal(self, job_id: str) -> None:
        event = self._terminal_events.get(job_id)
        if event is not None:
            event.set()
