"""Scratch directories for in-flight renders, with TTL-based cleanup."""

import os
import shutil
import tempfile
import time
from typing import Optional


class RenderWorkspace:
    """One directory per job for downloads, cut segments and the output file.

    The runner removes its directory when done; ``cleanup_expired`` catches
    whatever a crash left behind.
    """

    def __init__(self, base_dir: Optional[str] = None, ttl_hours: float = 2):
        if base_dir:
            self._base_dir = base_dir
        else:
            self._base_dir = os.path.join(tempfile.gettempdir(), "vhs_render")
        os.makedirs(self._base_dir, exist_ok=True)
        self._ttl_seconds = ttl_hours * 3600

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def get_job_dir(self, job_id: str) -> str:
        """Get or create the directory for a job's scratch files."""
        job_dir = os.path.join(self._base_dir, job_id)
        os.makedirs(job_dir, exist_ok=True)
        return job_dir

    def path_for(self, job_id: str, filename: str) -> str:
        return os.path.join(self.get_job_dir(job_id), filename)

    def remove_job_dir(self, job_id: str) -> None:
        shutil.rmtree(os.path.join(self._base_dir, job_id), ignore_errors=True)

    def cleanup_expired(self) -> int:
        """Remove job directories older than TTL. Returns count of removed dirs."""
        now = time.time()
        removed = 0
        if not os.path.exists(self._base_dir):
            return 0
        for entry in os.listdir(self._base_dir):
            job_dir = os.path.join(self._base_dir, entry)
            if not os.path.isdir(job_dir):
                continue
            if now - os.path.getmtime(job_dir) > self._ttl_seconds:
                shutil.rmtree(job_dir, ignore_errors=True)
                removed += 1
        return removed
