"""Orchestrator service layer: job submission, topic selection and component wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from core import Job, JobKind, JobStatus, Script, TopicStatus
from intelligence import ContentProvider
from pipeline import (
    AntiCopyValidator,
    GenerationOrchestrator,
    IngestionThrottle,
    StageHandlers,
    TopicIntakePipeline,
)
from pipeline.intake import FeedFetcher
from storage import InMemoryRepository
from .queue import JobQueue
from .scheduler import Scheduler
from .worker import JobWorker

logger = logging.getLogger(__name__)


class JobService:
    """Facade used by the HTTP and CLI surfaces."""

    def __init__(self, repo, queue: JobQueue, throttle: IngestionThrottle) -> None:
        self._repo = repo
        self._queue = queue
        self._throttle = throttle

    def enqueue(self, kind: Union[JobKind, str], payload: Optional[Dict[str, Any]] = None) -> Job:
        return self._queue.enqueue(kind, payload)

    def get_job(self, job_id: str) -> Optional[Job]:
        return self._repo.get_job(job_id)

    def list_jobs(self, *, status: Optional[JobStatus] = None, limit: int = 50) -> List[Job]:
        return self._repo.list_jobs(status=status, limit=limit)

    def select_topic(
        self,
        topic_id: str,
        *,
        style_preset: str = "news",
        duration_sec: int = 60,
        language: Optional[str] = None,
        platform: str = "youtube_shorts",
        generate: bool = True,
    ) -> Optional[Tuple[Script, Optional[Job]]]:
        """Mark a topic selected and create its script; returns None for an unknown topic.

        A topic owns one script: selecting it again reuses the existing one,
        and a new generate_all job resumes it.
        """
        topic = self._repo.get_topic(topic_id)
        if topic is None:
            return None
        if topic.status != TopicStatus.SELECTED:
            self._repo.update_topic(topic_id, status=TopicStatus.SELECTED)

        existing = self._repo.list_scripts(topic_id=topic_id)
        if existing:
            script = existing[0]
        else:
            script = self._repo.create_script(
                topic_id=topic_id,
                style_preset=style_preset,
                duration_sec=duration_sec,
                language=language or topic.language,
                platform=platform,
                keywords=list(topic.tags),
            )
            logger.info("script_created script_id=%s topic_id=%s", script.id, topic_id)

        job = self.enqueue(JobKind.GENERATE_ALL, {"script_id": script.id}) if generate else None
        return script, job

    def get_script(self, script_id: str) -> Optional[Script]:
        return self._repo.get_script(script_id)

    def ingestion_status(self) -> Dict[str, Any]:
        return self._throttle.status()

    def queue_counts(self) -> Dict[str, int]:
        return self._queue.counts()


def render_package_text(script: Script) -> str:
    """Plain-text export bundle for one script."""
    parts = [f"# {script.seo.seo_title if script.seo else script.id}", ""]
    if script.hook:
        parts += ["## Hook", script.hook, ""]
    if script.on_screen_text or script.voice_text:
        parts += ["## Script", script.on_screen_text or script.voice_text or "", ""]
    if script.storyboard:
        parts.append("## Storyboard")
        for scene in script.storyboard:
            parts.append(f"{scene.scene_number}. [{scene.duration_hint}] {scene.visual} | {scene.on_screen_text}")
        parts.append("")
    if script.music:
        parts += ["## Music", f"{script.music.genre}, {script.music.mood}, {script.music.bpm} BPM", ""]
    if script.seo:
        parts += ["## SEO", *script.seo.seo_title_options, " ".join(script.seo.hashtags), ""]
    return "\n".join(parts).rstrip() + "\n"


@dataclass
class FactoryRuntime:
    repo: InMemoryRepository
    throttle: IngestionThrottle
    queue: JobQueue
    provider: ContentProvider
    stages: StageHandlers
    orchestrator: GenerationOrchestrator
    worker: JobWorker
    scheduler: Scheduler
    service: JobService


def build_runtime(
    *,
    repo: Optional[InMemoryRepository] = None,
    provider: Optional[ContentProvider] = None,
    fetcher: Optional[FeedFetcher] = None,
    **stage_kwargs: Any,
) -> FactoryRuntime:
    """Wire every component around one repository."""
    repo = repo or InMemoryRepository()
    provider = provider or ContentProvider.from_settings()
    throttle = IngestionThrottle(repo)
    queue = JobQueue(repo)
    intake = TopicIntakePipeline(repo, throttle, fetcher=fetcher)
    stages = StageHandlers(repo, provider, intake=intake, validator=AntiCopyValidator(repo), **stage_kwargs)
    orchestrator = GenerationOrchestrator(repo, stages)

    handlers = stages.dispatch_table()
    handlers[JobKind.GENERATE_ALL] = orchestrator.handle
    worker = JobWorker(repo, handlers, queue=queue)
    return FactoryRuntime(
        repo=repo,
        throttle=throttle,
        queue=queue,
        provider=provider,
        stages=stages,
        orchestrator=orchestrator,
        worker=worker,
        scheduler=Scheduler(worker, queue, throttle),
        service=JobService(repo, queue, throttle),
    )
