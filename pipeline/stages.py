"""Generation stage handlers: one coroutine per job kind, each returning a StageOutcome.

Handlers look up the entities their payload names, make at most one content
call and write only the fields they own. Failures are returned as outcomes;
exceptions from collaborators propagate to the worker.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

from core import (
    ErrorKind,
    ExportAssets,
    ExtractionStatus,
    JobKind,
    Script,
    ScriptStatus,
    StageOutcome,
    Topic,
)
from intelligence import ContentProvider, GenerationContext
from sources import check_all_sources, check_source, discover_all, discover_for_category, fetch_article_text
from utils.exceptions import FeedFetchError
from .anticopy import AntiCopyValidator, voiceover_lines, voiceover_text
from .intake import TopicIntakePipeline
from .similarity import first_words_collision
from .trends import detect_angles, extract_trends, signals_for_generation, trend_hints

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int], None]
Handler = Callable[[BaseModel, ProgressFn], Awaitable[StageOutcome]]

# Field whose presence marks a script stage as done.
STAGE_FIELDS: Dict[JobKind, str] = {
    JobKind.GENERATE_HOOK: "hook",
    JobKind.GENERATE_SCRIPT: "voice_text",
    JobKind.GENERATE_STORYBOARD: "storyboard",
    JobKind.GENERATE_VOICE: "voice",
    JobKind.PICK_MUSIC: "music",
    JobKind.GENERATE_SEO: "seo",
}


def stage_done(script: Script, kind: JobKind) -> bool:
    return bool(getattr(script, STAGE_FIELDS[kind]))


def download_url(script_id: str) -> str:
    return f"/api/scripts/{script_id}/download"


class StageHandlers:
    def __init__(
        self,
        repo,
        provider: ContentProvider,
        *,
        intake: TopicIntakePipeline,
        validator: Optional[AntiCopyValidator] = None,
        article_fetcher: Optional[Callable[[str], Awaitable[str]]] = None,
        trend_lookup: Optional[Callable[..., list]] = None,
    ) -> None:
        self._repo = repo
        self._provider = provider
        self._intake = intake
        self._validator = validator or AntiCopyValidator(repo)
        self._fetch_article = article_fetcher or fetch_article_text
        self._trend_lookup = trend_lookup or signals_for_generation

    def dispatch_table(self) -> Dict[JobKind, Handler]:
        """Handlers for every kind except generate_all, which the orchestrator owns."""
        return {
            JobKind.FETCH_TOPICS: self.fetch_topics,
            JobKind.EXTRACT_CONTENT: self.extract_content,
            JobKind.TRANSLATE_TOPIC: self.translate_topic,
            JobKind.GENERATE_HOOK: self.generate_hook,
            JobKind.GENERATE_SCRIPT: self.generate_script,
            JobKind.GENERATE_STORYBOARD: self.generate_storyboard,
            JobKind.GENERATE_VOICE: self.generate_voice,
            JobKind.PICK_MUSIC: self.pick_music,
            JobKind.GENERATE_SEO: self.generate_seo,
            JobKind.EXPORT_PACKAGE: self.export_package,
            JobKind.HEALTH_CHECK: self.health_check,
            JobKind.HEALTH_CHECK_ALL: self.health_check_all,
            JobKind.AUTO_DISCOVERY: self.auto_discovery,
            JobKind.EXTRACT_TRENDS: self.extract_trends,
        }

    # ------------------------------------------------------------------
    # Topic-level jobs
    # ------------------------------------------------------------------
    async def fetch_topics(self, payload, progress: ProgressFn) -> StageOutcome:
        report = await self._intake.run(progress)
        if report.quota_exhausted and not report.added:
            return StageOutcome.success("Ingestion quota exhausted", **report.as_dict())
        return StageOutcome.success(f"Added {report.added} topics", **report.as_dict())

    async def extract_content(self, payload, progress: ProgressFn) -> StageOutcome:
        topic = self._repo.get_topic(payload.topic_id)
        if topic is None:
            return StageOutcome.not_found("topic", payload.topic_id)

        self._repo.update_topic(topic.id, extraction_status=ExtractionStatus.EXTRACTING)
        try:
            progress(20)
            content = ""
            if topic.url:
                try:
                    content = await self._fetch_article(topic.url)
                except FeedFetchError as exc:
                    logger.warning("article_fetch_failed topic_id=%s url=%s error=%s", topic.id, topic.url, exc)
            content = content or topic.raw_text or topic.title
            progress(60)
            insights = await self._provider.extract_insights(
                content,
                topic.language,
                angles=detect_angles(topic.title, content),
            )
        except Exception:
            self._repo.update_topic(topic.id, extraction_status=ExtractionStatus.FAILED)
            raise

        self._repo.update_topic(
            topic.id,
            full_content=content,
            insights=insights,
            extraction_status=ExtractionStatus.DONE,
        )
        return StageOutcome.success("Content extracted", characters=len(content), facts=len(insights.key_facts))

    async def translate_topic(self, payload, progress: ProgressFn) -> StageOutcome:
        topic = self._repo.get_topic(payload.topic_id)
        if topic is None:
            return StageOutcome.not_found("topic", payload.topic_id)
        progress(30)
        translated = await self._provider.translate_title(topic.title, payload.target_language)
        self._repo.update_topic(topic.id, translated_title=translated)
        return StageOutcome.success("Title translated", target_language=payload.target_language)

    # ------------------------------------------------------------------
    # Script stages
    # ------------------------------------------------------------------
    async def generate_hook(self, payload, progress: ProgressFn) -> StageOutcome:
        return await self._script_stage(JobKind.GENERATE_HOOK, payload.script_id, progress)

    async def generate_script(self, payload, progress: ProgressFn) -> StageOutcome:
        return await self._script_stage(JobKind.GENERATE_SCRIPT, payload.script_id, progress)

    async def generate_storyboard(self, payload, progress: ProgressFn) -> StageOutcome:
        return await self._script_stage(JobKind.GENERATE_STORYBOARD, payload.script_id, progress)

    async def generate_voice(self, payload, progress: ProgressFn) -> StageOutcome:
        return await self._script_stage(JobKind.GENERATE_VOICE, payload.script_id, progress)

    async def pick_music(self, payload, progress: ProgressFn) -> StageOutcome:
        return await self._script_stage(JobKind.PICK_MUSIC, payload.script_id, progress)

    async def generate_seo(self, payload, progress: ProgressFn) -> StageOutcome:
        return await self._script_stage(JobKind.GENERATE_SEO, payload.script_id, progress)

    async def _script_stage(self, kind: JobKind, script_id: str, progress: ProgressFn) -> StageOutcome:
        script = self._repo.get_script(script_id)
        if script is None:
            return StageOutcome.not_found("script", script_id)
        topic = self._repo.get_topic(script.topic_id)
        if topic is None:
            return StageOutcome.not_found("topic", script.topic_id)

        self._repo.update_script(script_id, status=ScriptStatus.GENERATING)
        progress(10)
        outcome = await self.run_stage(kind, script, topic)
        if outcome.ok:
            self._repo.update_script(script_id, status=ScriptStatus.DRAFT, error=None)
        return outcome

    async def run_stage(self, kind: JobKind, script: Script, topic: Topic) -> StageOutcome:
        """Run one script stage and persist its field; status is left to the caller."""
        runners = {
            JobKind.GENERATE_HOOK: self._hook,
            JobKind.GENERATE_SCRIPT: self._script,
            JobKind.GENERATE_STORYBOARD: self._storyboard,
            JobKind.GENERATE_VOICE: self._voice,
            JobKind.PICK_MUSIC: self._music,
            JobKind.GENERATE_SEO: self._seo,
        }
        outcome = await runners[kind](script, topic)
        logger.info("stage_finished script_id=%s stage=%s ok=%s", script.id, kind.value, outcome.ok)
        return outcome

    def _context(self, script: Script, topic: Topic) -> GenerationContext:
        title = topic.title
        if topic.translated_title and script.language != topic.language:
            title = topic.translated_title
        ctx = GenerationContext(
            title=title,
            language=script.language,
            style_preset=script.style_preset,
            duration_sec=script.duration_sec,
            platform=script.platform,
            keywords=list(script.keywords or topic.tags),
        )
        if not topic.is_grounded:
            return ctx

        insights = topic.insights
        if insights is not None:
            ctx.key_facts = list(insights.key_facts)
            ctx.angles = list(insights.trending_angles)
            ctx.emotional_hooks = list(insights.emotional_hooks)
            ctx.summary = insights.summary
        if not ctx.summary and topic.full_content:
            ctx.summary = topic.full_content[:300]

        source = self._repo.get_source(topic.source_id)
        try:
            signals = self._trend_lookup(
                self._repo,
                category_id=source.category_id if source else None,
                platform=script.platform,
            )
            ctx.trend_hints = trend_hints(signals)
        except Exception as exc:
            logger.warning("trend_lookup_failed script_id=%s error=%s", script.id, exc)
        return ctx

    async def _hook(self, script: Script, topic: Topic) -> StageOutcome:
        hook = await self._provider.generate_hook(self._context(script, topic))
        self._repo.update_script(script.id, hook=hook)
        return StageOutcome.success("Hook generated")

    async def _script(self, script: Script, topic: Topic) -> StageOutcome:
        ctx = self._context(script, topic)
        seeds = [title for title in (topic.title, topic.translated_title) if title]
        hook = script.hook or ""
        if hook and first_words_collision(hook, seeds) is not None:
            hook = ""

        async def produce(attempt: int) -> str:
            return await self._provider.generate_script(ctx, hook, attempt)

        outcome = await self._validator.generate(produce, seeds, exclude_script_id=script.id)
        if not outcome.ok:
            return outcome

        text = outcome.detail["text"]
        self._repo.update_script(script.id, voice_text=voiceover_text(text), on_screen_text=text)
        return StageOutcome.success("Script generated", attempts=outcome.detail["attempts"])

    async def _storyboard(self, script: Script, topic: Topic) -> StageOutcome:
        if not script.voice_text:
            return StageOutcome.failure(ErrorKind.INVALID_PAYLOAD, "Script text is required before storyboard")
        lines: List[str] = voiceover_lines(script.on_screen_text or "") or script.voice_text.splitlines()
        scenes = await self._provider.generate_storyboard(
            self._context(script, topic),
            script.on_screen_text or script.voice_text,
            lines,
        )
        self._repo.update_script(script.id, storyboard=scenes)
        return StageOutcome.success("Storyboard generated", scenes=len(scenes))

    async def _voice(self, script: Script, topic: Topic) -> StageOutcome:
        if not script.voice_text:
            return StageOutcome.failure(ErrorKind.INVALID_PAYLOAD, "Script text is required before voice generation")
        voice = await self._provider.synthesize_voice(script.voice_text, script.style_preset)
        self._repo.update_script(script.id, voice=voice)
        return StageOutcome.success("Voice generated", provider=voice.provider)

    async def _music(self, script: Script, topic: Topic) -> StageOutcome:
        music = self._provider.pick_music(script.style_preset)
        self._repo.update_script(script.id, music=music)
        return StageOutcome.success("Music picked", genre=music.genre)

    async def _seo(self, script: Script, topic: Topic) -> StageOutcome:
        seo = await self._provider.generate_seo(self._context(script, topic))
        self._repo.update_script(script.id, seo=seo)
        return StageOutcome.success("SEO generated")

    async def export_package(self, payload, progress: ProgressFn) -> StageOutcome:
        script = self._repo.get_script(payload.script_id)
        if script is None:
            return StageOutcome.not_found("script", payload.script_id)
        if not script.voice_text:
            return StageOutcome.failure(ErrorKind.INVALID_PAYLOAD, "Script text is required before export")
        progress(50)
        assets = ExportAssets(export_url=download_url(script.id), exported_at=self._repo.now())
        self._repo.update_script(script.id, assets=assets, status=ScriptStatus.EXPORTED, error=None)
        return StageOutcome.success("Package exported", export_url=assets.export_url)

    # ------------------------------------------------------------------
    # Source maintenance
    # ------------------------------------------------------------------
    async def health_check(self, payload, progress: ProgressFn) -> StageOutcome:
        source = await check_source(self._repo, payload.source_id)
        if source is None:
            return StageOutcome.not_found("source", payload.source_id)
        return StageOutcome.success("Source checked", status=source.health.status.value, enabled=source.is_enabled)

    async def health_check_all(self, payload, progress: ProgressFn) -> StageOutcome:
        summary = await check_all_sources(self._repo, category_id=payload.category_id)
        return StageOutcome.success(f"Checked {summary['checked']} sources", **summary)

    async def auto_discovery(self, payload, progress: ProgressFn) -> StageOutcome:
        if payload.category_id:
            results = [await discover_for_category(self._repo, payload.category_id)]
        else:
            results = await discover_all(self._repo)
        added = sum(result.added for result in results)
        return StageOutcome.success(f"Discovered {added} sources", added=added, categories=len(results))

    async def extract_trends(self, payload, progress: ProgressFn) -> StageOutcome:
        signals = extract_trends(self._repo, payload.category_id)
        return StageOutcome.success(f"Extracted {len(signals)} trend signals", count=len(signals))
