"""Errors raised by the render job queue."""


class JobValidationError(ValueError):
    """A render request is missing required fields."""


class InvalidTransitionError(ValueError):
    """Strict mode rejected a status change."""

    def __init__(self, job_id: str, current, requested):
        self.job_id = job_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Job {job_id}: illegal transition {current.value} -> {requested.value}"
        )
