"""FIFO job queue backed by the repository."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from core import Job, JobKind, JobStatus

logger = logging.getLogger(__name__)


class JobQueue:
    """Creates queued jobs and hands out the oldest one.

    Ordering is strict creation order: ``created_at`` then the insertion
    counter for jobs created within the same clock tick.
    """

    def __init__(self, repo) -> None:
        self._repo = repo

    def enqueue(self, kind: Union[JobKind, str], payload: Optional[Dict[str, Any]] = None) -> Job:
        """Create a queued job. Raises ValueError for an unknown kind or a payload that does not fit it."""
        job = self._repo.create_job(JobKind(kind), payload)
        logger.info("job_enqueued job_id=%s kind=%s", job.id, job.kind.value)
        return job

    def next_queued(self) -> Optional[Job]:
        queued = self._repo.queued_jobs()
        return queued[0] if queued else None

    def size(self) -> int:
        return len(self._repo.queued_jobs())

    def has_pending(self, kind: JobKind) -> bool:
        """True when a job of ``kind`` is queued or running."""
        pending = self._repo.queued_jobs() + self._repo.running_jobs()
        return any(job.kind == kind for job in pending)

    def running(self) -> Optional[Job]:
        running = self._repo.running_jobs()
        return running[0] if running else None

    def counts(self) -> Dict[str, int]:
        jobs = self._repo.list_jobs()
        return {status.value: sum(1 for job in jobs if job.status == status) for status in JobStatus}
