"""VHS Render Backend - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from vhs_render.config import settings
from vhs_render.api.v1.router import v1_router
from vhs_render.api.v1.health import router as health_root_router
from vhs_render.api.v1 import render_jobs as render_jobs_api
from vhs_render.jobs.render_queue import RenderQueue
from vhs_render.jobs.sweeper import RetentionSweeper
from vhs_render.render.ffmpeg import FFmpegRenderRunner
from vhs_render.storage.object_store import ObjectStore
from vhs_render.storage.workspace import RenderWorkspace

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_queue(workspace: RenderWorkspace) -> RenderQueue:
    """Queue wired for the configured dispatch mode.

    "local" renders in-process with ffmpeg; "external" leaves the render
    step to workers that report through PATCH /render-jobs/{id}/status.
    """
    runner = None
    if settings.render_dispatch_mode == "local":
        runner = FFmpegRenderRunner(
            workspace=workspace,
            object_store=ObjectStore(settings),
            ffmpeg_binary=settings.ffmpeg_binary,
            download_timeout=settings.download_timeout_seconds,
        )
    return RenderQueue(
        runner=runner,
        drain_delay=settings.queue_drain_delay_seconds,
        render_timeout=settings.render_timeout_seconds,
        strict_transitions=settings.strict_transitions,
        retention=timedelta(hours=settings.job_retention_hours),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    logger.info("Starting VHS Render Backend on port %d", settings.port)
    logger.info("Dispatch mode: %s", settings.render_dispatch_mode)
    logger.info("Render temp dir: %s", settings.render_temp_dir)

    workspace = RenderWorkspace(settings.render_temp_dir, ttl_hours=settings.workspace_ttl_hours)
    queue = build_queue(workspace)
    await queue.start()

    sweeper = RetentionSweeper(
        queue, interval_seconds=settings.sweep_interval_seconds, workspace=workspace
    )
    await sweeper.start()
    logger.info("Render queue and retention sweeper started")

    render_jobs_api.set_queue(queue)

    yield

    logger.info("Shutting down VHS Render Backend")
    render_jobs_api.set_queue(None)
    await sweeper.stop()
    await queue.stop()
    workspace.cleanup_expired()


app = FastAPI(
    title="VHS Render Service",
    description="Render queue for VHS-style footage edits",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(health_root_router, tags=["health"])  # GET /health at root
app.include_router(v1_router)  # All /api/v1/* endpoints
