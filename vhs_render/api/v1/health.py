"""Health check endpoint."""

import platform
import shutil
import sys

from fastapi import APIRouter

from vhs_render.api.v1 import render_jobs
from vhs_render.config import settings

router = APIRouter()


@router.get("/health")
async def health_check():
    """Service health, queue snapshot and system info."""
    queue = render_jobs._queue
    return {
        "status": "healthy" if queue is not None else "starting",
        "dispatch_mode": settings.render_dispatch_mode,
        "ffmpeg_available": shutil.which(settings.ffmpeg_binary) is not None,
        "queue": queue.get_stats().model_dump() if queue is not None else None,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
