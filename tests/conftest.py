from __future__ import annotations

from datetime import datetime, timezone
from typing import List

import pytest

from config import IngestionSettings, SimilaritySettings, WorkerSettings
from core import FeedItem
from intelligence import BaseLLM, ContentProvider
from intelligence.llm import LLMResponse, Message
from orchestrator import build_runtime
from storage import InMemoryRepository


class ScriptedLLM(BaseLLM):
    """Answers each prompt family with a canned response and counts calls."""

    def __init__(self, *, script_text: str = "", fail: bool = False) -> None:
        super().__init__(model="scripted")
        self.calls: List[str] = []
        self.script_text = script_text or (
            "[Hook]\n"
            "- Small towns are quietly winning the electric bus race.\n"
            "[Context]\n"
            "- Three regional councils ordered forty vehicles this month alone.\n"
            "[CTA]\n"
            "- Follow to see which town goes fully electric first."
        )
        self.fail = fail

    @property
    def provider(self) -> str:
        return "scripted"

    async def acomplete(self, messages: List[Message], **kwargs) -> LLMResponse:
        prompt = messages[-1].content
        if self.fail:
            self.calls.append("error")
            raise RuntimeError("upstream unavailable")
        if "storyboard scenes" in prompt:
            self.calls.append("storyboard")
            content = (
                '{"scenes": [{"scene_number": 1, "visual": "Bus depot at dawn", "on_screen_text": "Electric buses",'
                ' "duration_hint": "5s"}]}'
            )
        elif "SEO metadata" in prompt:
            self.calls.append("seo")
            content = '{"seo_title": "Towns vs cities", "seo_title_options": ["a", "b", "c"], "hashtags": ["#bus"]}'
        elif "opening hook" in prompt and "Format rules" not in prompt:
            self.calls.append("hook")
            content = "Your next bus ride might be silent."
        elif "Format rules" in prompt:
            self.calls.append("script")
            content = self.script_text
        elif "Translate this headline" in prompt:
            self.calls.append("translate")
            content = "Маленькие города и электробусы"
        else:
            self.calls.append("insights")
            content = '{"key_facts": ["Forty buses were ordered."], "summary": "Councils ordered buses."}'
        return LLMResponse(content=content, model=self.model)


@pytest.fixture
def repo() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def ingestion_settings() -> IngestionSettings:
    return IngestionSettings(per_run_cap=10, fetch_concurrency=2)


@pytest.fixture
def similarity_settings() -> SimilaritySettings:
    return SimilaritySettings()


@pytest.fixture
def worker_settings() -> WorkerSettings:
    return WorkerSettings(stale_after=60.0, auto_fetch_enabled=True)


def fixed_clock(value: datetime):
    def _clock() -> datetime:
        return value

    return _clock


def feed_items(*titles: str, image_url=None) -> List[FeedItem]:
    return [FeedItem(title=title, link=f"https://example.com/{idx}", image_url=image_url) for idx, title in enumerate(titles)]


def make_fetcher(by_url: dict):
    """Fake feed fetcher: a list of items per URL, or an exception to raise."""

    async def _fetch(url: str, *, max_items: int = 10, timeout: float = 10.0):
        result = by_url.get(url, [])
        if isinstance(result, BaseException):
            raise result
        return list(result)[:max_items]

    return _fetch


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def runtime_factory(repo):
    def _build(llm=None, *, fetcher=None, strict_upstream: bool = False):
        provider = ContentProvider(llm, strict_upstream=strict_upstream)
        return build_runtime(
            repo=repo,
            provider=provider,
            fetcher=fetcher or make_fetcher({}),
            article_fetcher=_no_article,
        )

    return _build


async def _no_article(url: str) -> str:
    return ""


UTC_NOON = datetime(2026, 3, 10, 12, 15, tzinfo=timezone.utc)
