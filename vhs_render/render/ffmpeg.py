"""FFmpeg render runner: cut the requested segments, join them, upload.

The pipeline is synchronous (download, subprocess, upload) and runs in a
thread executor. Progress is posted back onto the event loop so the queue
is only ever touched from the loop thread.
"""

import asyncio
import logging
import os
import shutil
import subprocess
import threading
from typing import Callable, List, Sequence

import requests

from vhs_render.jobs.dispatcher import RenderRunner
from vhs_render.jobs.models import JobStatus, RenderJob, Segment
from vhs_render.storage.object_store import ObjectStore
from vhs_render.storage.workspace import RenderWorkspace

logger = logging.getLogger(__name__)

# H.264/AAC, streaming-friendly
ENCODE_OPTIONS: List[str] = [
    "-c:v", "libx264",
    "-preset", "fast",
    "-crf", "23",
    "-c:a", "aac",
    "-b:a", "128k",
    "-movflags", "+faststart",
]


def build_cut_command(ffmpeg: str, source: str, segment: Segment, output: str) -> List[str]:
    return [
        ffmpeg, "-y", "-nostdin", "-hide_banner", "-loglevel", "error",
        "-ss", f"{segment.start:g}",
        "-i", source,
        "-t", f"{segment.duration:g}",
        *ENCODE_OPTIONS,
        output,
    ]


def build_transcode_command(ffmpeg: str, source: str, output: str) -> List[str]:
    return [
        ffmpeg, "-y", "-nostdin", "-hide_banner", "-loglevel", "error",
        "-i", source,
        *ENCODE_OPTIONS,
        output,
    ]


def build_concat_command(ffmpeg: str, list_file: str, output: str) -> List[str]:
    return [
        ffmpeg, "-y", "-nostdin", "-hide_banner", "-loglevel", "error",
        "-f", "concat", "-safe", "0",
        "-i", list_file,
        "-c", "copy",
        output,
    ]


def _run_ffmpeg(cmd: Sequence[str]) -> None:
    """Run ffmpeg and raise with stderr tail on failure for better diagnostics."""
    proc = subprocess.run(list(cmd), stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    if proc.returncode != 0:
        stderr_tail = proc.stderr.decode("utf-8", errors="ignore")[-2000:]
        raise RuntimeError(f"ffmpeg failed (code {proc.returncode}):\n{stderr_tail}")


class FFmpegRenderRunner(RenderRunner):
    def __init__(
        self,
        workspace: RenderWorkspace,
        object_store: ObjectStore,
        ffmpeg_binary: str = "ffmpeg",
        download_timeout: int = 60,
    ):
        self._workspace = workspace
        self._object_store = object_store
        self._ffmpeg = ffmpeg_binary
        self._download_timeout = download_timeout

    async def run(self, job: RenderJob, queue) -> None:
        loop = asyncio.get_running_loop()
        cancelled = threading.Event()

        def post_progress(percent: int) -> None:
            if not cancelled.is_set():
                queue.update_status(job.id, JobStatus.PROCESSING, progress=percent)

        def on_progress(percent: int) -> None:
            loop.call_soon_threadsafe(post_progress, percent)

        try:
            result_url = await loop.run_in_executor(None, self.render, job, on_progress)
        except asyncio.CancelledError:
            # The thread keeps going; make sure it can no longer report.
            cancelled.set()
            raise
        except Exception as exc:
            logger.exception("Job %s: failed to process video", job.id)
            cancelled.set()
            queue.update_status(job.id, JobStatus.ERROR, error=str(exc) or type(exc).__name__)
            return

        cancelled.set()
        logger.info("Job %s: processing complete, final URL %s", job.id, result_url)
        queue.update_status(
            job.id, JobStatus.COMPLETED, progress=100, result_url=result_url
        )

    def render(self, job: RenderJob, on_progress: Callable[[int], None]) -> str:
        """Blocking pipeline. Returns the public URL of the rendered file."""
        job_dir = self._workspace.get_job_dir(job.id)
        try:
            on_progress(10)
            source = self._download(job.source_url, job_dir)
            logger.info("Job %s: video downloaded to %s", job.id, source)
            on_progress(30)

            output = os.path.join(job_dir, f"rendered-{job.id}.mp4")
            if job.segments:
                parts = []
                for i, segment in enumerate(job.segments):
                    part = os.path.join(job_dir, f"segment-{i}.mp4")
                    _run_ffmpeg(build_cut_command(self._ffmpeg, source, segment, part))
                    parts.append(part)
                    on_progress(30 + (30 * (i + 1)) // len(job.segments))
                self._concat(parts, output, job_dir)
            else:
                _run_ffmpeg(build_transcode_command(self._ffmpeg, source, output))
                on_progress(60)
            on_progress(80)

            key = self._object_store.generate_key("rendered", os.path.basename(output))
            return self._object_store.upload_file(output, key, "video/mp4")
        finally:
            self._workspace.remove_job_dir(job.id)

    def _concat(self, parts: List[str], output: str, job_dir: str) -> None:
        if len(parts) == 1:
            shutil.move(parts[0], output)
            return
        list_file = os.path.join(job_dir, "concat.txt")
        with open(list_file, "w", encoding="utf-8") as f:
            f.write("\n".join(f"file '{p}'" for p in parts))
        _run_ffmpeg(build_concat_command(self._ffmpeg, list_file, output))

    def _download(self, url: str, job_dir: str) -> str:
        """Fetch http(s) sources; copy local paths."""
        name = os.path.basename(url.split("?", 1)[0]) or "source.mp4"
        local = os.path.join(job_dir, f"in-{name}")
        if url.startswith("http://") or url.startswith("https://"):
            with requests.get(url, stream=True, timeout=self._download_timeout) as r:
                r.raise_for_status()
                with open(local, "wb") as f:
                    for chunk in r.iter_content(chunk_size=1024 * 1024):
                        if chunk:
                            f.write(chunk)
            return local
        if os.path.exists(url):
            shutil.copy(url, local)
            return local
        raise FileNotFoundError(url)
