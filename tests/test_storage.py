import os
import re
import time

import pytest

from vhs_render.config import Settings
from vhs_render.storage.object_store import ObjectStore
from vhs_render.storage.workspace import RenderWorkspace


def _storage_settings(**overrides):
    values = dict(
        storage_endpoint_url="https://acct.r2.cloudflarestorage.com",
        storage_access_key_id="key",
        storage_secret_access_key="secret",
        storage_bucket="renders",
        storage_public_base_url="https://cdn.example.com/",
    )
    values.update(overrides)
    return Settings(**values)


def test_generate_key_sanitizes_filename():
    key = ObjectStore.generate_key("rendered", "my clip (final).mp4")
    assert re.fullmatch(r"rendered/\d+-my_clip__final_\.mp4", key)


def test_upload_returns_public_url(mocker):
    client = mocker.Mock()
    store = ObjectStore(_storage_settings(), client=client)

    url = store.upload_file("/tmp/out.mp4", "rendered/1-out.mp4", "video/mp4")

    assert url == "https://cdn.example.com/rendered/1-out.mp4"
    client.upload_file.assert_called_once_with(
        "/tmp/out.mp4", "renders", "rendered/1-out.mp4", ExtraArgs={"ContentType": "video/mp4"}
    )


def test_unconfigured_store_refuses_upload():
    store = ObjectStore(_storage_settings(storage_access_key_id=""))
    assert not store.is_configured()
    with pytest.raises(RuntimeError, match="not configured"):
        store.upload_file("/tmp/out.mp4", "k")


def test_workspace_job_dirs(tmp_path):
    ws = RenderWorkspace(str(tmp_path), ttl_hours=1)
    path = ws.path_for("job_1", "segment-0.mp4")
    assert os.path.isdir(os.path.dirname(path))

    ws.remove_job_dir("job_1")
    assert not os.path.exists(os.path.join(str(tmp_path), "job_1"))


def test_workspace_cleanup_removes_only_stale_dirs(tmp_path):
    ws = RenderWorkspace(str(tmp_path), ttl_hours=1)
    stale = ws.get_job_dir("stale")
    fresh = ws.get_job_dir("fresh")
    two_hours_ago = time.time() - 2 * 3600
    os.utime(stale, (two_hours_ago, two_hours_ago))

    assert ws.cleanup_expired() == 1
    assert not os.path.exists(stale)
    assert os.path.exists(fresh)
