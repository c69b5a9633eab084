"""Single-flight job worker and stale-job sweep."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import List, Mapping, Optional, Set

from config import WorkerSettings, get_worker_settings
from core import ErrorKind, Job, JobKind, JobStatus, ScriptStatus, StageOutcome
from pipeline.stages import Handler
from utils.exceptions import ConfigurationError
from .queue import JobQueue

logger = logging.getLogger(__name__)

STALE_MESSAGE = "Job timed out (stale)"
CANCELLED_MESSAGE = "Job cancelled"


class ProgressReporter:
    """Writes monotonically non-decreasing progress for one running job."""

    def __init__(self, repo, job_id: str) -> None:
        self._repo = repo
        self._job_id = job_id
        self.last = 0

    def __call__(self, pct: int) -> None:
        value = max(0, min(100, int(pct)))
        if value <= self.last:
            return
        self.last = value
        current = self._repo.get_job(self._job_id)
        if current is None or current.status != JobStatus.RUNNING:
            return
        self._repo.update_job(self._job_id, progress=value)


class JobWorker:
    """Runs at most one job at a time.

    The slot is an ``asyncio.Lock`` taken only when free; ``run_next`` also
    refuses to start while storage shows any job running, so a job left
    running by a previous process blocks the queue until the stale sweep
    reclaims it.
    """

    def __init__(
        self,
        repo,
        handlers: Mapping[JobKind, Handler],
        *,
        queue: Optional[JobQueue] = None,
        settings: Optional[WorkerSettings] = None,
    ) -> None:
        missing = [kind.value for kind in JobKind if kind not in handlers]
        if missing:
            raise ConfigurationError("job handlers missing", {"kinds": missing})
        self._repo = repo
        self._handlers = dict(handlers)
        self._queue = queue or JobQueue(repo)
        self._settings = settings or get_worker_settings()
        self._slot = asyncio.Lock()
        self._current_job_id: Optional[str] = None
        self._current_task: Optional[asyncio.Task] = None
        self._reclaimed: Set[str] = set()

    @property
    def busy(self) -> bool:
        return self._slot.locked()

    async def run_next(self) -> Optional[Job]:
        """Execute the oldest queued job. Returns the finished job, or None when nothing ran."""
        if self._slot.locked():
            return None
        async with self._slot:
            running = self._repo.running_jobs()
            if running:
                logger.debug("worker_idle reason=job_running job_id=%s", running[0].id)
                return None
            job = self._queue.next_queued()
            if job is None:
                return None
            return await self.execute(job)

    async def execute(self, job: Job) -> Optional[Job]:
        self._repo.update_job(job.id, status=JobStatus.RUNNING, progress=0, error=None)
        logger.info("job_start job_id=%s kind=%s", job.id, job.kind.value)

        reporter = ProgressReporter(self._repo, job.id)
        task = asyncio.ensure_future(self._dispatch(job, reporter))
        self._current_job_id, self._current_task = job.id, task
        try:
            outcome = await task
        except asyncio.CancelledError:
            if job.id in self._reclaimed:
                self._reclaimed.discard(job.id)
                logger.warning("job_abandoned job_id=%s kind=%s reason=stale", job.id, job.kind.value)
                return self._repo.get_job(job.id)
            self._fail(job, CANCELLED_MESSAGE)
            raise
        except Exception as exc:
            logger.exception("job_failed job_id=%s kind=%s error=%s", job.id, job.kind.value, exc)
            outcome = StageOutcome.failure(ErrorKind.UPSTREAM_FAILURE, str(exc) or exc.__class__.__name__)
        finally:
            self._current_job_id, self._current_task = None, None

        return self._finish(job, outcome)

    async def _dispatch(self, job: Job, reporter: ProgressReporter) -> StageOutcome:
        handler = self._handlers[job.kind]
        outcome = await handler(job.payload, reporter)
        if not isinstance(outcome, StageOutcome):
            raise TypeError(f"handler for {job.kind.value} returned {type(outcome).__name__}")
        return outcome

    def _finish(self, job: Job, outcome: StageOutcome) -> Optional[Job]:
        current = self._repo.get_job(job.id)
        if current is None or current.status != JobStatus.RUNNING:
            logger.warning(
                "job_result_discarded job_id=%s status=%s",
                job.id,
                current.status.value if current else None,
            )
            return current
        if outcome.ok:
            logger.info("job_done job_id=%s kind=%s message=%s", job.id, job.kind.value, outcome.message)
            return self._repo.update_job(job.id, status=JobStatus.DONE, progress=100, error=None)
        logger.warning(
            "job_error job_id=%s kind=%s error_kind=%s message=%s",
            job.id,
            job.kind.value,
            outcome.error_kind.value if outcome.error_kind else None,
            outcome.message,
        )
        return self._fail(job, outcome.message)

    def _fail(self, job: Job, message: str) -> Optional[Job]:
        updated = self._repo.update_job(job.id, status=JobStatus.ERROR, error=message)
        if job.script_id:
            self._repo.update_script(job.script_id, status=ScriptStatus.ERROR, error=message)
        return updated

    def sweep_stale(self, now: Optional[datetime] = None) -> List[str]:
        """Mark running jobs without a recent update as failed. Returns the reclaimed job ids."""
        now = now or self._repo.now()
        cutoff = now - timedelta(seconds=self._settings.stale_after)
        reclaimed: List[str] = []
        for job in self._repo.running_jobs():
            if job.updated_at >= cutoff:
                continue
            self._fail(job, STALE_MESSAGE)
            reclaimed.append(job.id)
            logger.warning("job_stale job_id=%s kind=%s updated_at=%s", job.id, job.kind.value, job.updated_at.isoformat())
            task = self._current_task
            if job.id == self._current_job_id and task is not None and not task.done():
                self._reclaimed.add(job.id)
                task.cancel()
        return reclaimed
