import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import FastAPI, Header
from fastapi.testclient import TestClient

from vhs_render.api.v1 import render_jobs as render_jobs_api
from vhs_render.api.v1.health import router as health_root_router
from vhs_render.api.v1.router import v1_router
from vhs_render.auth.supabase_auth import get_current_user_id
from vhs_render.jobs.render_queue import RenderQueue


class FakeClock:
    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def queue(clock):
    return RenderQueue(drain_delay=0.01, clock=clock)


@pytest.fixture()
def wait_until():
    async def _wait(predicate, timeout=2.0, interval=0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)

    return _wait


def _fake_user(x_test_user: str = Header("user-1")) -> str:
    return x_test_user


def _build_app(authenticated=True):
    app = FastAPI()
    app.include_router(health_root_router)
    app.include_router(v1_router)
    if authenticated:
        app.dependency_overrides[get_current_user_id] = _fake_user
    return app


def _client_for(queue, authenticated=True):
    render_jobs_api.set_queue(queue)
    # Context manager keeps one event loop alive so the driver task survives
    # between requests.
    with TestClient(_build_app(authenticated)) as client:
        yield client
    render_jobs_api.set_queue(None)


@pytest.fixture()
def api_queue():
    return RenderQueue(drain_delay=0.01)


@pytest.fixture()
def app_client(api_queue):
    yield from _client_for(api_queue)


@pytest.fixture()
def strict_client():
    yield from _client_for(RenderQueue(drain_delay=0.01, strict_transitions=True))


@pytest.fixture()
def anonymous_client(api_queue):
    yield from _client_for(api_queue, authenticated=False)
