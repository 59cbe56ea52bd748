"""In-memory job record store.

Pure data holder: no locking, no scheduling. Owned by RenderQueue, which
routes every mutation through its status API.
"""

import time
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from vhs_render.jobs.models import RenderJob, Segment


def new_job_id() -> str:
    return f"job_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class JobRecordStore:
    def __init__(self):
        self._jobs: Dict[str, RenderJob] = {}

    def create(
        self,
        user_id: str,
        file_id: str,
        source_url: str,
        segments: Iterable[Segment] = (),
        created_at: Optional[datetime] = None,
    ) -> RenderJob:
        job = RenderJob(
            id=new_job_id(),
            user_id=user_id,
            file_id=file_id,
            source_url=source_url,
            segments=list(segments),
        )
        if created_at is not None:
            job.created_at = created_at
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[RenderJob]:
        return self._jobs.get(job_id)

    def list_by_user(self, user_id: str) -> List[RenderJob]:
        return [job for job in self._jobs.values() if job.user_id == user_id]

    def delete(self, job_id: str) -> bool:
        return self._jobs.pop(job_id, None) is not None

    def all(self) -> List[RenderJob]:
        return list(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._jobs
