"""Scheduler owning the worker poll, stale sweep and auto-fetch loops."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from config import WorkerSettings, get_worker_settings
from core import Job, JobKind
from pipeline.throttle import IngestionThrottle
from .queue import JobQueue
from .worker import JobWorker

logger = logging.getLogger(__name__)


class Scheduler:
    """Explicit start/stop lifecycle for the background loops.

    ``start`` sweeps stale jobs once before the loops begin, so a job left
    ``running`` by a crashed process does not block the queue for a full
    sweep interval.
    """

    def __init__(
        self,
        worker: JobWorker,
        queue: JobQueue,
        throttle: IngestionThrottle,
        *,
        settings: Optional[WorkerSettings] = None,
    ) -> None:
        self._worker = worker
        self._queue = queue
        self._throttle = throttle
        self._settings = settings or get_worker_settings()
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def start(self) -> None:
        if self.running:
            return
        self._worker.sweep_stale()
        self._tasks = [
            asyncio.create_task(self._poll_loop(), name="worker-poll"),
            asyncio.create_task(self._sweep_loop(), name="stale-sweep"),
        ]
        if self._settings.auto_fetch_enabled:
            self._tasks.append(asyncio.create_task(self._auto_fetch_loop(), name="auto-fetch"))
        logger.info(
            "scheduler_started poll=%ss sweep=%ss auto_fetch=%s",
            self._settings.poll_interval,
            self._settings.sweep_interval,
            self._settings.auto_fetch_interval if self._settings.auto_fetch_enabled else "off",
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("scheduler_stopped")

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.gather(*self._tasks)
        finally:
            await self.stop()

    def enqueue_auto_fetch(self) -> Optional[Job]:
        """Enqueue fetch_topics when the quota allows and none is already pending."""
        quota = self._throttle.can_admit_more()
        if not quota.allowed:
            logger.info("auto_fetch_skipped reason=quota remaining_daily=%s remaining_hourly=%s", quota.remaining_daily, quota.remaining_hourly)
            return None
        if self._queue.has_pending(JobKind.FETCH_TOPICS):
            logger.debug("auto_fetch_skipped reason=pending")
            return None
        return self._queue.enqueue(JobKind.FETCH_TOPICS)

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self._worker.run_next()
            except Exception:
                logger.exception("worker_poll_failed")
            await asyncio.sleep(self._settings.poll_interval)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.sweep_interval)
            try:
                self._worker.sweep_stale()
            except Exception:
                logger.exception("stale_sweep_failed")

    async def _auto_fetch_loop(self) -> None:
        while True:
            await asyncio.sleep(self._settings.auto_fetch_interval)
            try:
                self.enqueue_auto_fetch()
            except Exception:
                logger.exception("auto_fetch_failed")
