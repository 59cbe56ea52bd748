"""FIFO queue of pending job ids."""

from collections import deque
from typing import Deque, Optional, Set


class FifoQueue:
    """Ordered pending ids. Holds each id at most once; never reorders.

    Whether a dequeued id still has a record is the driver's concern.
    """

    def __init__(self):
        self._ids: Deque[str] = deque()
        self._members: Set[str] = set()

    def enqueue(self, job_id: str) -> bool:
        if job_id in self._members:
            return False
        self._ids.append(job_id)
        self._members.add(job_id)
        return True

    def dequeue(self) -> Optional[str]:
        if not self._ids:
            return None
        job_id = self._ids.popleft()
        self._members.discard(job_id)
        return job_id

    def peek(self) -> Optional[str]:
        return self._ids[0] if self._ids else None

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._members
