"""Trend signals derived from high-score topics, used to enrich grounded generation."""

from __future__ import annotations

import logging
from typing import List, Optional

from core import TrendSignal
from .similarity import normalize_text, tokenize
from .tags import STOP_WORDS_EN, STOP_WORDS_RU, frequent_keywords

logger = logging.getLogger(__name__)

MIN_TOPIC_SCORE = 70
MAX_TOPICS_PER_RUN = 10
SIGNALS_FOR_GENERATION = 5

# (phrase, hook type, weight)
VIRAL_HOOK_PATTERNS = [
    ("никто не знает", "mystery", 0.9),
    ("вы не поверите", "disbelief", 0.85),
    ("топ 5", "listicle", 0.8),
    ("почему", "curiosity", 0.75),
    ("как на самом деле", "revelation", 0.85),
    ("что будет если", "experiment", 0.8),
    ("срочно", "urgency", 0.7),
    ("шок", "shock", 0.65),
    ("это изменит", "transformation", 0.8),
    ("секрет", "secret", 0.75),
    ("nobody knows", "mystery", 0.9),
    ("you won t believe", "disbelief", 0.85),
    ("top 5", "listicle", 0.8),
    ("why", "curiosity", 0.75),
    ("the truth about", "revelation", 0.85),
    ("what happens when", "experiment", 0.8),
    ("breaking", "urgency", 0.7),
    ("shocking", "shock", 0.65),
    ("this will change", "transformation", 0.8),
    ("secret", "secret", 0.75),
]

_ANGLE_MARKERS = [
    ("controversy", ("vs", "против", "сравн")),
    ("insider_knowledge", ("секрет", "secret", "никто не")),
    ("before_after", ("до и после", "before", "after")),
    ("myth_vs_reality", ("миф", "myth", "правда")),
    ("life_hack", ("лайфхак", "hack", "совет")),
]


def detect_hook_patterns(title: str) -> List[str]:
    padded = f" {normalize_text(title)} "
    found: List[str] = []
    for phrase, hook_type, _weight in VIRAL_HOOK_PATTERNS:
        if f" {phrase} " in padded and hook_type not in found:
            found.append(hook_type)
    return found or ["standard"]


def detect_angles(title: str, description: str = "") -> List[str]:
    combined = normalize_text(f"{title} {description}")
    words = set(tokenize(combined))
    angles: List[str] = []
    for angle, markers in _ANGLE_MARKERS:
        for marker in markers:
            hit = marker in words if marker == "vs" else marker in combined
            if hit:
                angles.append(angle)
                break
    return angles or ["standard"]


def pacing_for(duration_sec: int) -> str:
    if duration_sec <= 30:
        return "fast"
    if duration_sec <= 60:
        return "medium"
    return "slow"


def signal_score(hook_patterns: List[str]) -> int:
    weights = {hook_type: weight for _phrase, hook_type, weight in VIRAL_HOOK_PATTERNS}
    score = 50.0 + sum(weights.get(pattern, 0.0) * 20 for pattern in hook_patterns)
    return min(100, int(round(score)))


def build_signal_fields(title: str, description: str, category_id: Optional[str], platform: str = "general", duration_sec: int = 60) -> dict:
    hooks = detect_hook_patterns(title)
    return {
        "platform": platform,
        "category_id": category_id,
        "keywords": frequent_keywords(f"{title} {description}", STOP_WORDS_EN | STOP_WORDS_RU, limit=8),
        "angles": detect_angles(title, description),
        "hook_patterns": hooks,
        "pacing_hint": pacing_for(duration_sec),
        "duration_modes": [str(duration_sec)],
        "score": signal_score(hooks),
    }


def extract_trends(repo, category_id: Optional[str] = None) -> List[TrendSignal]:
    """Persist one signal per high-score topic (first 10), optionally limited to a category."""
    topics = repo.list_topics()
    if category_id:
        source_ids = {source.id for source in repo.list_sources(category_id=category_id)}
        topics = [topic for topic in topics if topic.source_id in source_ids]

    created: List[TrendSignal] = []
    for topic in [topic for topic in topics if topic.score >= MIN_TOPIC_SCORE][:MAX_TOPICS_PER_RUN]:
        fields = build_signal_fields(topic.title, topic.raw_text or "", category_id)
        created.append(repo.create_trend_signal(**fields))
    logger.info("trends_extracted category_id=%s count=%s", category_id, len(created))
    return created


def signals_for_generation(repo, *, category_id: Optional[str] = None, platform: str = "youtube_shorts") -> List[TrendSignal]:
    """Top signals for a platform ("general" signals always apply), best score first."""
    selected = []
    for signal in repo.list_trend_signals():
        if platform and signal.platform not in (platform, "general"):
            continue
        if category_id and signal.category_id and signal.category_id != category_id:
            continue
        selected.append(signal)
    selected.sort(key=lambda signal: signal.score, reverse=True)
    return selected[:SIGNALS_FOR_GENERATION]


def trend_hints(signals: List[TrendSignal]) -> List[str]:
    """Short prompt lines summarising hook patterns, angles and pacing."""
    if not signals:
        return []
    hooks = list(dict.fromkeys(p for s in signals for p in s.hook_patterns if p != "standard"))[:3]
    angles = list(dict.fromkeys(a for s in signals for a in s.angles if a != "standard"))[:3]
    hints = []
    if hooks:
        hints.append("hook patterns: " + ", ".join(hooks))
    if angles:
        hints.append("angles: " + ", ".join(angles))
    hints.append("pacing: " + signals[0].pacing_hint)
    return hints
