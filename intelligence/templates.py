"""
Template Fallbacks
无 LLM 时的确定性模板生成 (hook / script / storyboard / SEO / music / insights)
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core import MusicSelection, SeoBlock, StoryboardScene, TopicInsights


@dataclass
class GenerationContext:
    """Everything a content stage knows about the topic it writes for."""

    title: str
    language: str = "en"
    style_preset: str = "news"
    duration_sec: int = 60
    platform: str = "youtube_shorts"
    keywords: List[str] = field(default_factory=list)
    key_facts: List[str] = field(default_factory=list)
    angles: List[str] = field(default_factory=list)
    emotional_hooks: List[str] = field(default_factory=list)
    summary: str = ""
    trend_hints: List[str] = field(default_factory=list)

    @property
    def grounded(self) -> bool:
        return bool(self.key_facts or self.summary)

    @property
    def lang(self) -> str:
        return "ru" if self.language == "ru" else "en"


STYLE_TONES: Dict[str, Dict[str, str]] = {
    "news": {"tone": "neutral, factual", "structure": "lead with key facts, supporting details"},
    "crime": {"tone": "suspenseful, thriller", "structure": "clues, tension, revelation"},
    "storytelling": {"tone": "personal, emotional", "structure": "setup, conflict, transformation, lesson"},
    "comedy": {"tone": "humorous, punchy", "structure": "setup, punch, escalation, punchline"},
    "howto": {"tone": "instructional, clear", "structure": "problem, steps, result, tip"},
    "mythbusting": {"tone": "debunking, contrasting", "structure": "myth stated, evidence, truth revealed"},
    "hottakes": {"tone": "provocative, bold", "structure": "hot take, evidence, challenge the audience"},
    "science": {"tone": "educational, simplified", "structure": "question, explanation, wow factor"},
}

DURATION_CONFIG: Dict[int, Dict[str, object]] = {
    30: {"hook_words": 10, "script_words": 60, "scenes": 4,
         "arc": ["Hook", "Context", "Payoff", "CTA"]},
    45: {"hook_words": 12, "script_words": 90, "scenes": 6,
         "arc": ["Hook", "Context", "Rising Action", "Climax", "Resolution", "CTA"]},
    60: {"hook_words": 15, "script_words": 120, "scenes": 8,
         "arc": ["Hook", "Background", "Rising Action", "Conflict", "Climax", "Falling Action", "Resolution", "CTA"]},
    120: {"hook_words": 25, "script_words": 240, "scenes": 14,
          "arc": ["Hook", "Background", "Context", "Rising Action", "Complication", "Second Push", "Conflict",
                  "Climax", "Twist", "Falling Action", "Resolution", "Lesson", "Callback", "CTA"]},
}

MUSIC_TABLE: Dict[str, Dict[str, object]] = {
    "news": {"mood": "Serious, Trustworthy", "bpm": 85, "genre": "News / Corporate",
             "references": ["News broadcast music", "Documentary underscore", "Tension build"]},
    "crime": {"mood": "Epic, Emotional", "bpm": 75, "genre": "Thriller / Suspense",
              "references": ["Dark mystery", "Tension build", "Noir soundtrack"]},
    "storytelling": {"mood": "Epic, Emotional", "bpm": 85, "genre": "Emotional / Cinematic",
                     "references": ["Personal journey", "Emotional strings", "Nostalgic piano"]},
    "comedy": {"mood": "Quirky, Playful", "bpm": 120, "genre": "Comedy / Playful",
               "references": ["Comedic timing", "Funny sound", "Upbeat quirky"]},
    "howto": {"mood": "Balanced, Neutral", "bpm": 110, "genre": "Tutorial / Uplifting",
              "references": ["Educational background", "Positive energy", "Clear focus"]},
    "mythbusting": {"mood": "Serious, Trustworthy", "bpm": 95, "genre": "Documentary / Reveal",
                    "references": ["Fact reveal", "Scientific discovery", "Tension release"]},
    "hottakes": {"mood": "Energetic, Upbeat", "bpm": 125, "genre": "Bold / Provocative",
                 "references": ["Controversial vibes", "Bold statement", "Debate energy"]},
    "science": {"mood": "Professional, Clean", "bpm": 100, "genre": "Educational / Wonder",
                "references": ["Discovery moment", "Scientific wonder", "Explainer vibe"]},
}

# Spoken lines open with a topic anchor; fixed wording between anchors stays
# under four words.
_HOOKS: Dict[str, List[str]] = {
    "en": [
        "{A}: almost nobody noticed.",
        "Stop scrolling: {s}.",
        "{A} in {duration}: {s}.",
        "Remember {a}.",
        "{A}: unreal, yet true.",
    ],
    "ru": [
        "{A}: мало кто заметил.",
        "Стоп, {s}.",
        "{A} за {duration}: {s}.",
        "Запомните: {a}.",
        "{A}: невероятно, но правда.",
    ],
}

_BEAT_LINES: Dict[str, List[str]] = {
    "en": [
        "{A}, in short: {s}.",
        "{A} is central here.",
        "{A} and {b}: details matter.",
        "{fact}",
        "{A} changes the picture.",
        "{A}, then {b}, then {s}.",
        "{A} divides opinion on {b}.",
        "{A}: watch {b} closely.",
        "{A}. What next for {b}?",
    ],
    "ru": [
        "{A}, если коротко: {s}.",
        "{A} здесь главное.",
        "{A} и {b}: важны детали.",
        "{fact}",
        "{A} меняет картину.",
        "{A}, затем {b}, затем {s}.",
        "{A} делит мнения про {b}.",
        "{A}: следите за {b}.",
        "{A}. Что дальше с {b}?",
    ],
}

_CTA: Dict[str, str] = {
    "en": "{A}? Follow for more.",
    "ru": "{A}? Подписывайтесь и пишите.",
}

_VISUALS: Dict[str, List[str]] = {
    "en": ["Headline graphic", "Presenter shot", "B-roll footage", "Data visualization",
           "Expert quote card", "Map or location", "Summary card", "Sign-off frame"],
    "ru": ["Графика заголовка", "Кадр ведущего", "B-roll материал", "Визуализация данных",
           "Карточка с цитатой", "Карта или локация", "Карточка итогов", "Финальная плашка"],
}

_POPULAR_TAGS: Dict[str, List[str]] = {
    "en": ["#shorts", "#news", "#viral", "#trending", "#fyp"],
    "ru": ["#shorts", "#новости", "#тренды", "#интересно", "#рекомендации"],
}

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"\w+", re.UNICODE)


def format_duration(duration_sec: int, language: str) -> str:
    if language == "ru":
        return f"{duration_sec} секунд"
    return f"{duration_sec} seconds"


def _subject(ctx: GenerationContext) -> str:
    return ctx.title.rstrip(" .!?")


def _anchors(ctx: GenerationContext) -> List[str]:
    """Topic words a spoken line can open with: keywords first, then long title words."""
    anchors: List[str] = []
    seen = set()
    candidates = list(ctx.keywords) + [word.strip(",.:;!?\"'«»()") for word in _subject(ctx).split()]
    for index, word in enumerate(candidates):
        word = str(word or "").strip()
        if not word or (index >= len(ctx.keywords) and len(word) <= 3) or word.lower() in seen:
            continue
        seen.add(word.lower())
        anchors.append(word)
    return anchors or [_subject(ctx) or "this"]


def _opening(text: str, count: int = 4) -> List[str]:
    return [word.lower() for word in _WORD.findall(str(text or ""))[:count]]


def _fill(template: str, ctx: GenerationContext, anchors: List[str], offset: int) -> str:
    first = anchors[offset % len(anchors)]
    second = anchors[(offset + 1) % len(anchors)] if len(anchors) > 1 else _subject(ctx)
    return (
        template.replace("{A}", first[:1].upper() + first[1:])
        .replace("{a}", first)
        .replace("{b}", second)
        .replace("{s}", _subject(ctx))
        .replace("{duration}", format_duration(ctx.duration_sec, ctx.lang))
    )


def fallback_hook(ctx: GenerationContext, attempt: int = 0) -> str:
    if ctx.emotional_hooks:
        return ctx.emotional_hooks[attempt % len(ctx.emotional_hooks)]
    pool = _HOOKS[ctx.lang]
    template = pool[(len(ctx.title) + attempt) % len(pool)]
    return _fill(template, ctx, _anchors(ctx), attempt)


def fallback_script(ctx: GenerationContext, hook: str, attempt: int = 0) -> str:
    """Arc-structured script; voice-over lines start with "- ", beat headers are bracketed."""
    arc: List[str] = list(DURATION_CONFIG.get(ctx.duration_sec, DURATION_CONFIG[60])["arc"])
    lines_pool = _BEAT_LINES[ctx.lang]
    anchors = _anchors(ctx)
    title_opening = _opening(ctx.title)
    facts = [
        fact
        for fact in (list(ctx.key_facts) or ([ctx.summary] if ctx.summary else []))
        if _opening(fact) != title_opening
    ]
    if facts:
        shift = attempt % len(facts)
        facts = facts[shift:] + facts[:shift]
    fact_index = 0

    out: List[str] = []
    for position, beat in enumerate(arc):
        out.append(f"[{beat}]")
        if position == 0:
            line = hook or fallback_hook(ctx, attempt)
        elif beat == "CTA":
            line = _fill(_CTA[ctx.lang], ctx, anchors, attempt)
        else:
            template = lines_pool[(position + attempt * 3) % len(lines_pool)]
            if template == "{fact}" and fact_index < len(facts):
                line = facts[fact_index]
                fact_index += 1
            else:
                if template == "{fact}":
                    template = lines_pool[(position + attempt * 3 + 1) % len(lines_pool)]
                line = _fill(template, ctx, anchors, position + attempt)
        out.append(f"- {line}")
    return "\n".join(out)


def fallback_storyboard(ctx: GenerationContext, voice_lines: List[str]) -> List[StoryboardScene]:
    config = DURATION_CONFIG.get(ctx.duration_sec, DURATION_CONFIG[60])
    count = int(config["scenes"])
    per_scene = max(1, ctx.duration_sec // count)
    visuals = _VISUALS[ctx.lang]
    keywords = list(ctx.keywords)[:3] or [word for word in _subject(ctx).split() if len(word) > 3][:3]

    scenes: List[StoryboardScene] = []
    for index in range(count):
        text = voice_lines[index] if index < len(voice_lines) else ""
        visual = visuals[index % len(visuals)]
        scenes.append(
            StoryboardScene(
                scene_number=index + 1,
                visual=visual,
                on_screen_text=text[:52],
                sfx="whoosh" if index == 0 else "",
                duration_hint=f"{per_scene}s",
                stock_keywords=keywords,
                ai_prompt=f"{visual}, vertical 9:16, {STYLE_TONES.get(ctx.style_preset, STYLE_TONES['news'])['tone']}",
            )
        )
    return scenes


def fallback_seo(ctx: GenerationContext) -> SeoBlock:
    subject = _subject(ctx)
    if ctx.lang == "ru":
        options = [f"{subject}: что произошло", f"{subject} — главное за минуту", f"Разбираем: {subject}"]
    else:
        options = [f"{subject}: what happened", f"{subject} in under a minute", f"Explained: {subject}"]
    options = [option[:100] for option in options]

    hashtags: List[str] = []
    for keyword in ctx.keywords:
        tag = "#" + re.sub(r"\W+", "", keyword.lower())
        if len(tag) > 2 and tag not in hashtags:
            hashtags.append(tag)
        if len(hashtags) >= 8:
            break
    for tag in _POPULAR_TAGS[ctx.lang]:
        if len(hashtags) >= 10:
            break
        if tag not in hashtags:
            hashtags.append(tag)
    return SeoBlock(seo_title=options[0], seo_title_options=options, hashtags=hashtags)


def fallback_music(style_preset: str) -> MusicSelection:
    entry = MUSIC_TABLE.get(style_preset, MUSIC_TABLE["news"])
    return MusicSelection(
        mood=str(entry["mood"]),
        bpm=int(entry["bpm"]),
        genre=str(entry["genre"]),
        references=list(entry["references"]),
        license_note="Use royalty-free tracks from Bensound, Artlist or Epidemic Sound",
    )


def fallback_insights(content: str, angles: Optional[List[str]] = None) -> TopicInsights:
    text = re.sub(r"\s+", " ", str(content or "")).strip()
    sentences = [s.strip() for s in _SENTENCE_SPLIT.split(text) if len(s.strip()) > 40]
    return TopicInsights(
        key_facts=sentences[:5],
        trending_angles=list(angles or []),
        emotional_hooks=[],
        viral_potential=50,
        summary=text[:200],
    )
