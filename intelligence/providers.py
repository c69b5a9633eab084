"""
Content Provider
LLM 生成 + 模板降级：每个方法在无 LLM 或调用失败时返回确定性模板结果
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from core import MusicSelection, SeoBlock, StoryboardScene, TopicInsights, VoiceAsset
from utils.exceptions import LLMError
from .llm import BaseLLM, get_llm
from .templates import (
    DURATION_CONFIG,
    STYLE_TONES,
    GenerationContext,
    fallback_hook,
    fallback_insights,
    fallback_music,
    fallback_script,
    fallback_seo,
    fallback_storyboard,
)


logger = logging.getLogger(__name__)


SYSTEM_PROMPT = (
    "You write scripts for vertical short videos (YouTube Shorts, TikTok, Reels). "
    "Write in the requested language. Never copy the source headline word for word."
)

HOOK_PROMPT = """Write one opening hook line for a {duration}-second {style} short video.
Tone: {tone}. At most {hook_words} words. Language: {language}.
Do not start with the words of the headline.

Headline: {title}
{grounding}
Return only the hook line."""

SCRIPT_PROMPT = """Write a {duration}-second short video script in the "{style}" style.
Tone: {tone}. Structure: {structure}. About {script_words} spoken words. Language: {language}.
Beats in order: {arc}.

Headline: {title}
Opening hook: {hook}
{grounding}
Format rules:
1. Put each beat name on its own line in square brackets.
2. Every line the narrator speaks starts with "- ".
3. The first spoken line is the opening hook.
4. Never begin a line with the headline's first words; retell the story in your own words.
{retry_note}"""

STORYBOARD_PROMPT = """Split this short video script into exactly {scenes} storyboard scenes for a vertical 9:16 video.
Language for on-screen text: {language}.

Script:
{script}

Return only JSON:
{{"scenes": [{{"scene_number": 1, "visual": "...", "on_screen_text": "max 52 chars", "sfx": "...",
"duration_hint": "5s", "stock_keywords": ["..."], "ai_prompt": "..."}}]}}"""

SEO_PROMPT = """Write SEO metadata for a {platform} short video. Language: {language}.

Topic: {title}
Keywords: {keywords}

Return only JSON:
{{"seo_title": "max 100 chars", "seo_title_options": ["...", "...", "..."], "hashtags": ["#...", "..."]}}
Give 3 title options and 10 hashtags."""

INSIGHTS_PROMPT = """Read this article and extract material for a short video. Language: {language}.

Article:
{content}

Return only JSON:
{{"key_facts": ["..."], "trending_angles": ["..."], "emotional_hooks": ["..."],
"target_audience": "...", "viral_potential": 0-100, "summary": "two sentences"}}"""

TRANSLATE_PROMPT = """Translate this headline into {language}. Keep names and numbers. Return only the translation.

{title}"""

_LANGUAGE_NAMES = {"en": "English", "ru": "Russian"}


def extract_json_dict(content: str) -> Optional[Dict[str, Any]]:
    """Parse the first JSON object found in an LLM response."""
    text = str(content or "").strip()
    if not text:
        return None
    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    starts = [idx for idx, ch in enumerate(text) if ch == "{"]
    for start in starts:
        depth = 0
        for end in range(start, len(text)):
            ch = text[end]
            if ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        parsed = json.loads(text[start : end + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(parsed, dict):
                        return parsed
                    break
    return None


def _grounding_block(ctx: GenerationContext) -> str:
    if not ctx.grounded:
        return ""
    parts = []
    if ctx.summary:
        parts.append(f"Summary: {ctx.summary}")
    if ctx.key_facts:
        parts.append("Key facts:\n" + "\n".join(f"* {fact}" for fact in ctx.key_facts[:6]))
    if ctx.angles:
        parts.append("Angles that work: " + ", ".join(ctx.angles[:4]))
    if ctx.trend_hints:
        parts.append("Current trends: " + "; ".join(ctx.trend_hints[:5]))
    return "\n".join(parts) + "\n"


class ContentProvider:
    """
    内容生成提供者

    Wraps an optional BaseLLM. Each public coroutine makes at most one model
    call; on a missing model, an empty answer or (unless ``strict_upstream``)
    a model failure it returns the template result instead.
    """

    def __init__(self, llm: Optional[BaseLLM] = None, *, strict_upstream: bool = False):
        self.llm = llm
        self.strict_upstream = strict_upstream

    @classmethod
    def from_settings(cls) -> "ContentProvider":
        from config import get_llm_settings

        settings = get_llm_settings()
        return cls(get_llm(), strict_upstream=settings.strict_upstream)

    @property
    def provider_name(self) -> str:
        return self.llm.provider if self.llm is not None else "template"

    async def _ask(self, prompt: str, label: str, *, temperature: Optional[float] = None) -> Optional[str]:
        if self.llm is None:
            return None
        kwargs: Dict[str, Any] = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            text = await self.llm.achat(prompt, system_prompt=SYSTEM_PROMPT, **kwargs)
        except Exception as exc:
            if self.strict_upstream:
                raise LLMError(f"{label} generation failed: {exc}", provider=self.llm.provider) from exc
            logger.warning("llm_fallback label=%s provider=%s error=%s", label, self.llm.provider, exc)
            return None
        text = str(text or "").strip()
        return text or None

    async def extract_insights(self, content: str, language: str = "en", *, angles: Optional[List[str]] = None) -> TopicInsights:
        answer = await self._ask(
            INSIGHTS_PROMPT.format(language=_LANGUAGE_NAMES.get(language, language), content=content[:6000]),
            "insights",
            temperature=0.2,
        )
        parsed = extract_json_dict(answer) if answer else None
        if parsed:
            try:
                return TopicInsights.model_validate(parsed)
            except ValueError as exc:
                logger.warning("llm_invalid_json label=insights error=%s", exc)
        return fallback_insights(content, angles)

    async def translate_title(self, title: str, target_language: str = "ru") -> str:
        answer = await self._ask(
            TRANSLATE_PROMPT.format(language=_LANGUAGE_NAMES.get(target_language, target_language), title=title),
            "translate",
            temperature=0.2,
        )
        return (answer or title).splitlines()[0].strip()

    async def generate_hook(self, ctx: GenerationContext, attempt: int = 0) -> str:
        tone = STYLE_TONES.get(ctx.style_preset, STYLE_TONES["news"])
        config = DURATION_CONFIG.get(ctx.duration_sec, DURATION_CONFIG[60])
        answer = await self._ask(
            HOOK_PROMPT.format(
                duration=ctx.duration_sec,
                style=ctx.style_preset,
                tone=tone["tone"],
                hook_words=config["hook_words"],
                language=_LANGUAGE_NAMES.get(ctx.lang, ctx.lang),
                title=ctx.title,
                grounding=_grounding_block(ctx),
            ),
            "hook",
        )
        if answer:
            return answer.splitlines()[0].strip().strip('"')
        return fallback_hook(ctx, attempt)

    async def generate_script(self, ctx: GenerationContext, hook: str, attempt: int = 0) -> str:
        tone = STYLE_TONES.get(ctx.style_preset, STYLE_TONES["news"])
        config = DURATION_CONFIG.get(ctx.duration_sec, DURATION_CONFIG[60])
        retry_note = ""
        if attempt:
            retry_note = f"5. Attempt {attempt + 1}: the previous draft was too close to existing material. Take a clearly different angle."
        answer = await self._ask(
            SCRIPT_PROMPT.format(
                duration=ctx.duration_sec,
                style=ctx.style_preset,
                tone=tone["tone"],
                structure=tone["structure"],
                script_words=config["script_words"],
                language=_LANGUAGE_NAMES.get(ctx.lang, ctx.lang),
                arc=", ".join(config["arc"]),
                title=ctx.title,
                hook=hook,
                grounding=_grounding_block(ctx),
                retry_note=retry_note,
            ),
            "script",
            temperature=min(1.0, 0.7 + 0.1 * attempt),
        )
        return answer or fallback_script(ctx, hook, attempt)

    async def generate_storyboard(self, ctx: GenerationContext, script_text: str, voice_lines: List[str]) -> List[StoryboardScene]:
        config = DURATION_CONFIG.get(ctx.duration_sec, DURATION_CONFIG[60])
        answer = await self._ask(
            STORYBOARD_PROMPT.format(
                scenes=config["scenes"],
                language=_LANGUAGE_NAMES.get(ctx.lang, ctx.lang),
                script=script_text,
            ),
            "storyboard",
            temperature=0.4,
        )
        parsed = extract_json_dict(answer) if answer else None
        if parsed and isinstance(parsed.get("scenes"), list):
            try:
                scenes = [StoryboardScene.model_validate(scene) for scene in parsed["scenes"]]
            except ValueError as exc:
                logger.warning("llm_invalid_json label=storyboard error=%s", exc)
            else:
                if scenes:
                    return scenes
        return fallback_storyboard(ctx, voice_lines)

    async def generate_seo(self, ctx: GenerationContext) -> SeoBlock:
        answer = await self._ask(
            SEO_PROMPT.format(
                platform=ctx.platform,
                language=_LANGUAGE_NAMES.get(ctx.lang, ctx.lang),
                title=ctx.title,
                keywords=", ".join(ctx.keywords) or "-",
            ),
            "seo",
            temperature=0.5,
        )
        parsed = extract_json_dict(answer) if answer else None
        if parsed:
            try:
                return SeoBlock.model_validate(parsed)
            except ValueError as exc:
                logger.warning("llm_invalid_json label=seo error=%s", exc)
        return fallback_seo(ctx)

    def pick_music(self, style_preset: str) -> MusicSelection:
        return fallback_music(style_preset)

    async def synthesize_voice(self, text: str, style_preset: str) -> VoiceAsset:
        """No TTS backend is wired in; the asset records the text size only."""
        return VoiceAsset(file_url=None, provider="none", characters=len(text))
