"""Render job API: submit renders, poll status, report worker progress."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from vhs_render.auth.supabase_auth import get_current_user_id
from vhs_render.jobs.errors import InvalidTransitionError, JobValidationError
from vhs_render.jobs.models import JobStatus, QueueStats, RenderJob, Segment

router = APIRouter()

# Set by main.py during lifespan
_queue = None


def set_queue(queue):
    global _queue
    _queue = queue


def _require_queue():
    if _queue is None:
        raise HTTPException(status_code=503, detail="Render queue not initialized")
    return _queue


class RenderJobRequest(BaseModel):
    file_id: str
    source_url: str
    segments: List[Segment] = Field(default_factory=list)


class StatusUpdateRequest(BaseModel):
    status: JobStatus
    progress: Optional[int] = None
    result_url: Optional[str] = None
    error: Optional[str] = None


@router.post("/render-jobs", response_model=RenderJob, status_code=201)
async def create_render_job(
    request: RenderJobRequest, user_id: str = Depends(get_current_user_id)
):
    """Queue a render. Poll GET /api/v1/render-jobs/{id} for progress."""
    queue = _require_queue()
    try:
        return queue.create_job(
            user_id=user_id,
            file_id=request.file_id,
            source_url=request.source_url,
            segments=request.segments,
        )
    except JobValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/render-jobs", response_model=List[RenderJob])
async def list_render_jobs(user_id: str = Depends(get_current_user_id)):
    """The caller's render jobs, newest first."""
    jobs = _require_queue().get_user_jobs(user_id)
    return sorted(jobs, key=lambda j: j.created_at, reverse=True)


@router.get("/render-jobs/stats", response_model=QueueStats)
async def render_queue_stats(user_id: str = Depends(get_current_user_id)):
    return _require_queue().get_stats()


@router.get("/render-jobs/{job_id}", response_model=RenderJob)
async def get_render_job(job_id: str, user_id: str = Depends(get_current_user_id)):
    job = _require_queue().get_job(job_id)
    # Someone else's job is reported as missing
    if job is None or job.user_id != user_id:
        raise HTTPException(status_code=404, detail="Render job not found")
    return job


@router.patch("/render-jobs/{job_id}/status", response_model=RenderJob)
async def update_render_job_status(
    job_id: str,
    request: StatusUpdateRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Progress callback for render workers running outside this process."""
    queue = _require_queue()
    job = queue.get_job(job_id)
    if job is None or job.user_id != user_id:
        raise HTTPException(status_code=404, detail="Render job not found")
    try:
        updated = queue.update_status(
            job_id,
            request.status,
            progress=request.progress,
            result_url=request.result_url,
            error=request.error,
        )
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    if not updated:
        raise HTTPException(status_code=404, detail="Render job not found")
    return queue.get_job(job_id)
