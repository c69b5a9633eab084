"""Thread-safe in-memory persistence for jobs, sources, topics and scripts."""

from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from itertools import count
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, TypeVar
from uuid import uuid4

from pydantic import BaseModel

from core import (
    FeedSource,
    Job,
    JobKind,
    JobStatus,
    Script,
    Topic,
    TopicStatus,
    TrendSignal,
    build_payload,
)
from utils.exceptions import StorageError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id(prefix: str, now: datetime) -> str:
    return f"{prefix}_{now.strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


class InMemoryRepository:
    """Per-entity CRUD with partial-field merges and a few filtered lists.

    Every read returns a deep copy, so callers never mutate stored state
    except through an ``update_*`` call.
    """

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or _utcnow
        self._jobs: Dict[str, Job] = {}
        self._sources: Dict[str, FeedSource] = {}
        self._topics: Dict[str, Topic] = {}
        self._scripts: Dict[str, Script] = {}
        self._trend_signals: Dict[str, TrendSignal] = {}
        self._settings: Dict[str, Any] = {}
        self._seq = count(1)
        self._lock = Lock()

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    def create_job(self, kind: JobKind, payload: Optional[Dict[str, Any]] = None) -> Job:
        """Create a queued job; the payload is validated against ``kind``."""
        kind = JobKind(kind)
        validated = build_payload(kind, payload)
        with self._lock:
            now = self._clock()
            job = Job(
                id=_new_id("job", now),
                kind=kind,
                payload=validated,
                seq=next(self._seq),
                created_at=now,
                updated_at=now,
            )
            self._jobs[job.id] = job
            return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def update_job(self, job_id: str, **fields: Any) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None
            fields.setdefault("updated_at", self._clock())
            updated = job.model_copy(update=fields)
            self._jobs[job_id] = updated
            return updated.model_copy(deep=True)

    def list_jobs(self, *, status: Optional[JobStatus] = None, limit: Optional[int] = None) -> List[Job]:
        """Newest first."""
        with self._lock:
            jobs = [job for job in self._jobs.values() if status is None or job.status == status]
        jobs.sort(key=lambda job: (job.created_at, job.seq), reverse=True)
        if limit is not None:
            jobs = jobs[: max(0, int(limit))]
        return [job.model_copy(deep=True) for job in jobs]

    def queued_jobs(self) -> List[Job]:
        """Queued jobs in strict creation order."""
        with self._lock:
            jobs = [job for job in self._jobs.values() if job.status == JobStatus.QUEUED]
        jobs.sort(key=lambda job: (job.created_at, job.seq))
        return [job.model_copy(deep=True) for job in jobs]

    def running_jobs(self) -> List[Job]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._jobs.values() if job.status == JobStatus.RUNNING]

    # ------------------------------------------------------------------
    # Feed sources
    # ------------------------------------------------------------------
    def create_source(self, **fields: Any) -> FeedSource:
        with self._lock:
            now = self._clock()
            fields.setdefault("created_at", now)
            source = FeedSource(id=fields.pop("id", None) or _new_id("src", now), **fields)
            if source.id in self._sources:
                raise StorageError("source already exists", {"source_id": source.id})
            self._sources[source.id] = source
            return source.model_copy(deep=True)

    def get_source(self, source_id: str) -> Optional[FeedSource]:
        with self._lock:
            source = self._sources.get(source_id)
            return source.model_copy(deep=True) if source else None

    def update_source(self, source_id: str, **fields: Any) -> Optional[FeedSource]:
        return self._update(self._sources, source_id, fields)

    def list_sources(self, *, enabled_only: bool = False, category_id: Optional[str] = None) -> List[FeedSource]:
        with self._lock:
            sources = list(self._sources.values())
        if enabled_only:
            sources = [src for src in sources if src.is_enabled]
        if category_id is not None:
            sources = [src for src in sources if src.category_id == category_id]
        sources.sort(key=lambda src: (-src.priority, src.created_at))
        return [src.model_copy(deep=True) for src in sources]

    def delete_source(self, source_id: str) -> bool:
        """Remove a source together with its topics and their scripts."""
        with self._lock:
            if source_id not in self._sources:
                return False
            del self._sources[source_id]
            topic_ids = {tid for tid, topic in self._topics.items() if topic.source_id == source_id}
            for tid in topic_ids:
                del self._topics[tid]
            for sid in [sid for sid, script in self._scripts.items() if script.topic_id in topic_ids]:
                del self._scripts[sid]
            return True

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------
    def create_topic(self, **fields: Any) -> Topic:
        with self._lock:
            now = self._clock()
            fields.setdefault("created_at", now)
            topic = Topic(id=fields.pop("id", None) or _new_id("topic", now), **fields)
            self._topics[topic.id] = topic
            return topic.model_copy(deep=True)

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        with self._lock:
            topic = self._topics.get(topic_id)
            return topic.model_copy(deep=True) if topic else None

    def update_topic(self, topic_id: str, **fields: Any) -> Optional[Topic]:
        return self._update(self._topics, topic_id, fields)

    def list_topics(self, *, status: Optional[TopicStatus] = None, source_id: Optional[str] = None) -> List[Topic]:
        """Newest first."""
        with self._lock:
            topics = list(self._topics.values())
        if status is not None:
            topics = [topic for topic in topics if topic.status == status]
        if source_id is not None:
            topics = [topic for topic in topics if topic.source_id == source_id]
        topics.sort(key=lambda topic: topic.created_at, reverse=True)
        return [topic.model_copy(deep=True) for topic in topics]

    def topics_since(self, days: int, *, now: Optional[datetime] = None) -> List[Topic]:
        """Topics created within the trailing ``days`` window."""
        cutoff = (now or self._clock()) - timedelta(days=days)
        with self._lock:
            return [topic.model_copy(deep=True) for topic in self._topics.values() if topic.created_at > cutoff]

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------
    def create_script(self, **fields: Any) -> Script:
        with self._lock:
            now = self._clock()
            fields.setdefault("created_at", now)
            fields.setdefault("updated_at", now)
            script = Script(id=fields.pop("id", None) or _new_id("script", now), **fields)
            self._scripts[script.id] = script
            return script.model_copy(deep=True)

    def get_script(self, script_id: str) -> Optional[Script]:
        with self._lock:
            script = self._scripts.get(script_id)
            return script.model_copy(deep=True) if script else None

    def update_script(self, script_id: str, **fields: Any) -> Optional[Script]:
        fields.setdefault("updated_at", self._clock())
        return self._update(self._scripts, script_id, fields)

    def list_scripts(self, *, topic_id: Optional[str] = None) -> List[Script]:
        with self._lock:
            scripts = list(self._scripts.values())
        if topic_id is not None:
            scripts = [script for script in scripts if script.topic_id == topic_id]
        return [script.model_copy(deep=True) for script in scripts]

    # ------------------------------------------------------------------
    # Trend signals
    # ------------------------------------------------------------------
    def create_trend_signal(self, **fields: Any) -> TrendSignal:
        with self._lock:
            now = self._clock()
            fields.setdefault("created_at", now)
            signal = TrendSignal(id=_new_id("trend", now), **fields)
            self._trend_signals[signal.id] = signal
            return signal.model_copy(deep=True)

    def list_trend_signals(self) -> List[TrendSignal]:
        with self._lock:
            return [signal.model_copy(deep=True) for signal in self._trend_signals.values()]

    # ------------------------------------------------------------------
    # Settings key/value
    # ------------------------------------------------------------------
    def get_setting(self, key: str) -> Optional[Any]:
        with self._lock:
            return copy.deepcopy(self._settings.get(key))

    def set_setting(self, key: str, value: Any) -> None:
        with self._lock:
            self._settings[key] = copy.deepcopy(value)

    def _update(self, bucket: Dict[str, ModelT], entity_id: str, fields: Dict[str, Any]) -> Optional[ModelT]:
        with self._lock:
            current = bucket.get(entity_id)
            if current is None:
                return None
            updated = current.model_copy(update=fields)
            bucket[entity_id] = updated
            return updated.model_copy(deep=True)
