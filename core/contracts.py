"""Canonical data contracts for the topic intake and script generation pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobKind(str, Enum):
    """Every unit of work the worker knows how to dispatch."""

    FETCH_TOPICS = "fetch_topics"
    EXTRACT_CONTENT = "extract_content"
    TRANSLATE_TOPIC = "translate_topic"
    GENERATE_HOOK = "generate_hook"
    GENERATE_SCRIPT = "generate_script"
    GENERATE_STORYBOARD = "generate_storyboard"
    GENERATE_VOICE = "generate_voice"
    PICK_MUSIC = "pick_music"
    GENERATE_SEO = "generate_seo"
    EXPORT_PACKAGE = "export_package"
    GENERATE_ALL = "generate_all"
    HEALTH_CHECK = "health_check"
    HEALTH_CHECK_ALL = "health_check_all"
    AUTO_DISCOVERY = "auto_discovery"
    EXTRACT_TRENDS = "extract_trends"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class TopicStatus(str, Enum):
    NEW = "new"
    SELECTED = "selected"
    IGNORED = "ignored"


class ExtractionStatus(str, Enum):
    PENDING = "pending"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


class ScriptStatus(str, Enum):
    DRAFT = "draft"
    GENERATING = "generating"
    READY = "ready"
    ERROR = "error"
    EXPORTED = "exported"


class SourceType(str, Enum):
    RSS = "rss"
    ATOM = "atom"
    URL = "url"
    MANUAL = "manual"


class SourceHealthStatus(str, Enum):
    PENDING = "pending"
    OK = "ok"
    WARNING = "warning"
    DEAD = "dead"


class ErrorKind(str, Enum):
    """Failure taxonomy carried by StageOutcome."""

    NOT_FOUND = "not_found"
    DUPLICATE_CONTENT = "duplicate_content"
    UPSTREAM_FAILURE = "upstream_failure"
    INVALID_PAYLOAD = "invalid_payload"
    STALE = "stale"


# ---------------------------------------------------------------------------
# Job payloads: one model per payload shape, discriminated on ``kind``.
# ---------------------------------------------------------------------------

class FetchTopicsPayload(BaseModel):
    kind: Literal["fetch_topics"] = "fetch_topics"


class ExtractContentPayload(BaseModel):
    kind: Literal["extract_content"] = "extract_content"
    topic_id: str


class TranslateTopicPayload(BaseModel):
    kind: Literal["translate_topic"] = "translate_topic"
    topic_id: str
    target_language: str = "ru"


class ScriptPayload(BaseModel):
    """Payload shared by every kind that operates on one script artifact."""

    kind: Literal[
        "generate_hook",
        "generate_script",
        "generate_storyboard",
        "generate_voice",
        "pick_music",
        "generate_seo",
        "export_package",
        "generate_all",
    ]
    script_id: str


class HealthCheckPayload(BaseModel):
    kind: Literal["health_check"] = "health_check"
    source_id: str


class CategoryPayload(BaseModel):
    kind: Literal["health_check_all", "auto_discovery", "extract_trends"]
    category_id: Optional[str] = None


JobPayload = Annotated[
    Union[
        FetchTopicsPayload,
        ExtractContentPayload,
        TranslateTopicPayload,
        ScriptPayload,
        HealthCheckPayload,
        CategoryPayload,
    ],
    Field(discriminator="kind"),
]

_PAYLOAD_ADAPTER: TypeAdapter = TypeAdapter(JobPayload)


def build_payload(kind: Union[JobKind, str], data: Optional[Dict[str, Any]] = None) -> BaseModel:
    """Validate a raw payload dict against the model registered for ``kind``.

    Accepts camelCase keys (``topicId``) as well as snake_case ones so that
    payloads posted by older clients still validate.
    """
    kind_value = JobKind(kind).value
    raw: Dict[str, Any] = {}
    for key, value in dict(data or {}).items():
        raw[_snake(key)] = value
    raw["kind"] = kind_value
    return _PAYLOAD_ADAPTER.validate_python(raw)


def _snake(key: str) -> str:
    out = []
    for ch in str(key):
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


class Job(BaseModel):
    """Unit of asynchronous work with a kind, payload, and lifecycle status."""

    id: str
    kind: JobKind
    payload: JobPayload
    status: JobStatus = JobStatus.QUEUED
    progress: int = 0
    error: Optional[str] = None
    seq: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _payload_matches_kind(self) -> "Job":
        if self.payload.kind != self.kind.value:
            raise ValueError(f"payload kind {self.payload.kind!r} does not match job kind {self.kind.value!r}")
        return self

    @property
    def script_id(self) -> Optional[str]:
        if isinstance(self.payload, ScriptPayload):
            return self.payload.script_id
        return None


# ---------------------------------------------------------------------------
# Feed sources and topics
# ---------------------------------------------------------------------------

class SourceHealth(BaseModel):
    status: SourceHealthStatus = SourceHealthStatus.PENDING
    http_code: Optional[int] = None
    avg_latency_ms: Optional[int] = None
    last_success_at: Optional[datetime] = None
    failures_count: int = 0
    freshness_hours: Optional[float] = None
    last_error: Optional[str] = None
    item_count: int = 0


class FeedSource(BaseModel):
    id: str
    type: SourceType = SourceType.RSS
    name: str
    category_id: Optional[str] = None
    url: Optional[str] = None
    language: Optional[str] = None
    description: str = ""
    is_enabled: bool = True
    priority: int = 3
    health: SourceHealth = Field(default_factory=SourceHealth)
    last_check_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("name", mode="before")
    @classmethod
    def _non_empty_name(cls, value: Any) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text

    def resolved_language(self) -> str:
        """Explicit language, else guessed from a Cyrillic description."""
        if self.language:
            return self.language
        return "ru" if "рус" in self.description.lower() else "en"


class FeedItem(BaseModel):
    """Normalized item returned by the feed-fetch collaborator."""

    title: str
    link: str = ""
    description: str = ""
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None


class TopicInsights(BaseModel):
    key_facts: List[str] = Field(default_factory=list)
    trending_angles: List[str] = Field(default_factory=list)
    emotional_hooks: List[str] = Field(default_factory=list)
    target_audience: Optional[str] = None
    viral_potential: int = 50
    summary: str = ""


class Topic(BaseModel):
    id: str
    source_id: str
    title: str
    translated_title: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    raw_text: Optional[str] = None
    full_content: Optional[str] = None
    insights: Optional[TopicInsights] = None
    tags: List[str] = Field(default_factory=list)
    score: int = 0
    language: str = "en"
    status: TopicStatus = TopicStatus.NEW
    extraction_status: ExtractionStatus = ExtractionStatus.PENDING
    published_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_grounded(self) -> bool:
        return bool(self.full_content or self.insights)


# ---------------------------------------------------------------------------
# Script artifact
# ---------------------------------------------------------------------------

class StoryboardScene(BaseModel):
    scene_number: int
    visual: str
    on_screen_text: str = ""
    sfx: str = ""
    duration_hint: str = ""
    stock_keywords: List[str] = Field(default_factory=list)
    ai_prompt: str = ""


class MusicSelection(BaseModel):
    mood: str
    bpm: int
    genre: str
    references: List[str] = Field(default_factory=list)
    license_note: str = ""


class VoiceAsset(BaseModel):
    """Result of the text-to-speech stage; ``file_url`` is None without a TTS backend."""

    file_url: Optional[str] = None
    provider: str = "none"
    characters: int = 0


class SeoBlock(BaseModel):
    seo_title: str
    seo_title_options: List[str] = Field(default_factory=list)
    hashtags: List[str] = Field(default_factory=list)


class ExportAssets(BaseModel):
    export_url: Optional[str] = None
    exported_at: Optional[datetime] = None


class Script(BaseModel):
    """Multi-stage generation artifact owned by one topic.

    Each stage owns one field; a populated field means the stage is done.
    """

    id: str
    topic_id: str
    style_preset: str = "news"
    duration_sec: int = 60
    language: str = "en"
    platform: str = "youtube_shorts"
    keywords: List[str] = Field(default_factory=list)
    hook: Optional[str] = None
    voice_text: Optional[str] = None
    on_screen_text: Optional[str] = None
    storyboard: List[StoryboardScene] = Field(default_factory=list)
    voice: Optional[VoiceAsset] = None
    music: Optional[MusicSelection] = None
    seo: Optional[SeoBlock] = None
    assets: ExportAssets = Field(default_factory=ExportAssets)
    status: ScriptStatus = ScriptStatus.DRAFT
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("duration_sec")
    @classmethod
    def _known_duration(cls, value: int) -> int:
        if int(value) not in (30, 45, 60, 120):
            raise ValueError("duration_sec must be one of 30, 45, 60, 120")
        return int(value)


class TrendSignal(BaseModel):
    id: str
    platform: str = "general"
    category_id: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    angles: List[str] = Field(default_factory=list)
    hook_patterns: List[str] = Field(default_factory=list)
    pacing_hint: Literal["fast", "medium", "slow"] = "medium"
    duration_modes: List[str] = Field(default_factory=list)
    score: int = 0
    created_at: datetime = Field(default_factory=_utcnow)


# ---------------------------------------------------------------------------
# Ingestion quota
# ---------------------------------------------------------------------------

class IngestionQuotaState(BaseModel):
    """Single persisted quota record; counters reset when date/hour roll over."""

    date: str
    hour: int
    daily_count: int = 0
    hourly_count: int = 0
    last_fetch_at: Optional[datetime] = None


class QuotaCheck(BaseModel):
    allowed: bool
    remaining_daily: int
    remaining_hourly: int


# ---------------------------------------------------------------------------
# Stage results
# ---------------------------------------------------------------------------

class StageOutcome(BaseModel):
    """Explicit result of a stage handler, the orchestrator, or a dispatch."""

    ok: bool
    error_kind: Optional[ErrorKind] = None
    message: str = ""
    detail: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: str = "", **detail: Any) -> "StageOutcome":
        return cls(ok=True, message=message, detail=detail)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str, **detail: Any) -> "StageOutcome":
        return cls(ok=False, error_kind=kind, message=message, detail=detail)

    @classmethod
    def not_found(cls, entity: str, entity_id: str) -> "StageOutcome":
        return cls.failure(ErrorKind.NOT_FOUND, f"{entity} not found: {entity_id}", entity=entity, entity_id=entity_id)
