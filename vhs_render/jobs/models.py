"""Render job data model and state machine."""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset(
    {JobStatus.COMPLETED, JobStatus.ERROR}
)

# Legal edges, only enforced when the queue runs in strict mode.
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING, JobStatus.ERROR}),
    JobStatus.PROCESSING: frozenset(
        {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.ERROR}
    ),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.ERROR: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Segment(BaseModel):
    """A [start, end) time range of the source, in seconds."""
    model_config = ConfigDict(frozen=True)

    start: float = Field(ge=0)
    end: float = Field(ge=0)

    @model_validator(mode="after")
    def _check_order(self) -> "Segment":
        if self.end <= self.start:
            raise ValueError(
                f"segment end ({self.end}) must be greater than start ({self.start})"
            )
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class RenderJob(BaseModel):
    """Tracks the lifecycle of one requested render."""
    id: str
    user_id: str
    file_id: str
    source_url: str
    segments: List[Segment] = Field(default_factory=list)
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    result_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class QueueStats(BaseModel):
    """Point-in-time aggregate over every job record."""
    total: int
    queued: int
    processing: int
    completed: int
    error: int
    queue_length: int
    is_processing: bool
