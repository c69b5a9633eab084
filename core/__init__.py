"""Core contracts and shared types for the job pipeline."""

from .contracts import (
    CategoryPayload,
    ErrorKind,
    ExportAssets,
    ExtractContentPayload,
    ExtractionStatus,
    FeedItem,
    FeedSource,
    FetchTopicsPayload,
    HealthCheckPayload,
    IngestionQuotaState,
    Job,
    JobKind,
    JobStatus,
    MusicSelection,
    QuotaCheck,
    Script,
    ScriptPayload,
    ScriptStatus,
    SeoBlock,
    SourceHealth,
    SourceHealthStatus,
    SourceType,
    StageOutcome,
    StoryboardScene,
    Topic,
    TopicInsights,
    TopicStatus,
    TranslateTopicPayload,
    TrendSignal,
    VoiceAsset,
    build_payload,
)

__all__ = [
    "CategoryPayload",
    "ErrorKind",
    "ExportAssets",
    "ExtractContentPayload",
    "ExtractionStatus",
    "FeedItem",
    "FeedSource",
    "FetchTopicsPayload",
    "HealthCheckPayload",
    "IngestionQuotaState",
    "Job",
    "JobKind",
    "JobStatus",
    "MusicSelection",
    "QuotaCheck",
    "Script",
    "ScriptPayload",
    "ScriptStatus",
    "SeoBlock",
    "SourceHealth",
    "SourceHealthStatus",
    "SourceType",
    "StageOutcome",
    "StoryboardScene",
    "Topic",
    "TopicInsights",
    "TopicStatus",
    "TranslateTopicPayload",
    "TrendSignal",
    "VoiceAsset",
    "build_payload",
]
