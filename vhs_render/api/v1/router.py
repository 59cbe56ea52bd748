"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from vhs_render.api.v1.health import router as health_router
from vhs_render.api.v1.render_jobs import router as render_jobs_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(render_jobs_router, tags=["render-jobs"])
