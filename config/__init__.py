"""
Configuration Management Module
统一配置管理
"""
from .settings import (
    IngestionSettings,
    LLMSettings,
    Settings,
    SimilaritySettings,
    WorkerSettings,
    get_settings,
    get_ingestion_settings,
    get_llm_settings,
    get_similarity_settings,
    get_worker_settings,
)

__all__ = [
    "IngestionSettings",
    "LLMSettings",
    "Settings",
    "SimilaritySettings",
    "WorkerSettings",
    "get_settings",
    "get_ingestion_settings",
    "get_llm_settings",
    "get_similarity_settings",
    "get_worker_settings",
]
