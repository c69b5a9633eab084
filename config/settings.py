"""
Settings Configuration
使用 Pydantic 进行配置验证和管理
"""
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class IngestionSettings(BaseSettings):
    """Topic intake quota and feed fetch configuration"""
    daily_limit: int = Field(default=300, description="Topics admitted per calendar day")
    hourly_limit: int = Field(default=35, description="Topics admitted per hour-of-day bucket")
    per_run_cap: int = Field(default=5, description="Topics admitted by one fetch run")
    max_items_per_feed: int = Field(default=10, description="Items kept from one feed response")
    fetch_concurrency: int = Field(default=8, description="Parallel feed requests")
    fetch_timeout: float = Field(default=10.0, description="Per-feed request timeout (seconds)")
    dedup_window_days: int = Field(default=7, description="Topic dedup comparison window")
    quota_timezone: str = Field(default="UTC", description="Zone used for date/hour buckets")
    min_title_chars: int = Field(default=30, description="Thin-content title length floor")
    min_title_words: int = Field(default=4, description="Thin-content title word floor")
    description_max_chars: int = Field(default=500, description="Stored raw text length")

    class Config:
        env_prefix = "INGESTION_"


class SimilaritySettings(BaseSettings):
    """Near-duplicate detection thresholds"""
    topic_threshold: float = Field(default=0.7, description="Topic dedup threshold")
    script_threshold: float = Field(default=0.35, description="Anti-copy script threshold")
    ngram_size: int = Field(default=4, description="Body/script fingerprint n")
    min_ngrams: int = Field(default=3, description="Smallest fingerprint that carries signal")
    min_script_chars: int = Field(default=50, description="Existing scripts shorter than this are ignored")
    opening_words: int = Field(default=4, description="Words compared by the opening-words block")
    max_regen_attempts: int = Field(default=2, description="Extra generation attempts after a rejection")

    class Config:
        env_prefix = "SIMILARITY_"


class WorkerSettings(BaseSettings):
    """Job worker and scheduler timers"""
    poll_interval: float = Field(default=1.0, description="Queue poll interval (seconds)")
    stale_after: float = Field(default=60.0, description="Running job with no update for this long is stale")
    sweep_interval: float = Field(default=120.0, description="Stale sweep interval (seconds)")
    auto_fetch_interval: float = Field(default=180.0, description="Automatic fetch_topics interval (seconds)")
    auto_fetch_enabled: bool = Field(default=True, description="Enqueue fetch_topics on a timer")
    auto_start: bool = Field(default=False, description="Start the scheduler with the web app")

    class Config:
        env_prefix = "WORKER_"


class LLMSettings(BaseSettings):
    """LLM 配置"""
    provider: str = Field(default="none", description="LLM提供商: none, openai, anthropic")
    model_name: Optional[str] = Field(default=None, description="模型名称(不填则使用默认)")
    temperature: float = Field(default=0.7, description="生成温度")
    max_tokens: int = Field(default=1500, description="最大生成token数")
    strict_upstream: bool = Field(default=False, description="Raise on LLM failure instead of using templates")

    # API Keys
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API Key")
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API Key")

    class Config:
        env_prefix = "LLM_"


class Settings(BaseSettings):
    """主配置类 - 聚合所有子配置"""

    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    similarity: SimilaritySettings = Field(default_factory=SimilaritySettings)
    worker: WorkerSettings = Field(default_factory=WorkerSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @classmethod
    def load_from_env_file(cls, env_path: Optional[Path] = None) -> "Settings":
        """从指定的 .env 文件加载配置"""
        if env_path is None:
            # 默认查找 config/.env
            env_path = Path(__file__).parent / ".env"

        if env_path.exists():
            from dotenv import load_dotenv
            load_dotenv(env_path)

        return cls(
            ingestion=IngestionSettings(),
            similarity=SimilaritySettings(),
            worker=WorkerSettings(),
            llm=LLMSettings(),
        )


@lru_cache()
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings.load_from_env_file()


# 便捷访问
def get_ingestion_settings() -> IngestionSettings:
    return get_settings().ingestion


def get_similarity_settings() -> SimilaritySettings:
    return get_settings().similarity


def get_worker_settings() -> WorkerSettings:
    return get_settings().worker


def get_llm_settings() -> LLMSettings:
    return get_settings().llm
