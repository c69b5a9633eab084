"""Text fingerprinting and near-duplicate scoring for topics and scripts."""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Set

from config import SimilaritySettings, get_similarity_settings

_NON_WORD = re.compile(r"[^\w\s]|_", re.UNICODE)
_SPACES = re.compile(r"\s+")


@dataclass
class SimilarityResult:
    """Outcome of one dedup check; ``highest_similarity`` is rounded to 2 decimals."""

    passed: bool
    highest_similarity: float = 0.0
    similar_id: Optional[str] = None
    similar_title: Optional[str] = None

    @property
    def percent(self) -> int:
        return int(round(self.highest_similarity * 100))


def normalize_text(text: str) -> str:
    """Lowercase, fold diacritics, drop punctuation, collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", str(text or "").lower())
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    folded = _NON_WORD.sub(" ", folded)
    return _SPACES.sub(" ", folded).strip()


def tokenize(text: str) -> List[str]:
    normalized = normalize_text(text)
    return normalized.split(" ") if normalized else []


def fingerprint(text: str, n: int = 4) -> Set[str]:
    """Set of contiguous ``n``-token substrings of the normalized text."""
    size = max(1, int(n))
    tokens = tokenize(text)
    return {" ".join(tokens[i : i + size]) for i in range(len(tokens) - size + 1)}


def jaccard(a: Set[str], b: Set[str], *, min_size: int = 3) -> float:
    """|A∩B| / |A∪B|, or 0.0 when either set is too small to carry signal."""
    if len(a) < min_size or len(b) < min_size:
        return 0.0
    union = a | b
    if not union:
        return 0.0
    return len(a & b) / len(union)


def opening_words(text: str, count: int = 4) -> tuple:
    return tuple(tokenize(text)[: max(1, int(count))])


def topic_similarity(
    new_title: str,
    new_body: Optional[str],
    existing_title: str,
    existing_body: Optional[str],
    *,
    settings: Optional[SimilaritySettings] = None,
) -> float:
    """Title-word Jaccard, blended 0.4/0.6 with body n-grams when both bodies carry signal.

    Identical normalized titles score 1.0 on the title side however short they are.
    """
    cfg = settings or get_similarity_settings()
    normalized = normalize_text(new_title)
    if normalized and normalized == normalize_text(existing_title):
        title_sim = 1.0
    else:
        title_sim = jaccard(fingerprint(new_title, 1), fingerprint(existing_title, 1), min_size=cfg.min_ngrams)

    new_grams = fingerprint(new_body or "", cfg.ngram_size)
    old_grams = fingerprint(existing_body or "", cfg.ngram_size)
    if len(new_grams) >= cfg.min_ngrams and len(old_grams) >= cfg.min_ngrams:
        body_sim = jaccard(new_grams, old_grams, min_size=cfg.min_ngrams)
        return title_sim * 0.4 + body_sim * 0.6
    return title_sim


def check_topic_similarity(
    repo,
    title: str,
    body: Optional[str] = None,
    *,
    window_days: int = 7,
    exclude_topic_id: Optional[str] = None,
    now: Optional[datetime] = None,
    settings: Optional[SimilaritySettings] = None,
) -> SimilarityResult:
    """Compare a candidate topic against topics created in the trailing window."""
    cfg = settings or get_similarity_settings()
    highest = 0.0
    match_id: Optional[str] = None
    match_title: Optional[str] = None

    for topic in repo.topics_since(window_days, now=now):
        if exclude_topic_id and topic.id == exclude_topic_id:
            continue
        score = topic_similarity(title, body, topic.title, topic.raw_text, settings=cfg)
        if score > highest:
            highest, match_id, match_title = score, topic.id, topic.title

    passed = highest < cfg.topic_threshold
    return SimilarityResult(
        passed=passed,
        highest_similarity=round(highest, 2),
        similar_id=None if passed else match_id,
        similar_title=None if passed else match_title,
    )


def check_script_similarity(
    repo,
    text: str,
    *,
    exclude_script_id: Optional[str] = None,
    settings: Optional[SimilaritySettings] = None,
) -> SimilarityResult:
    """Compare candidate voice-over text against every stored script, with no recency window."""
    cfg = settings or get_similarity_settings()
    candidate = fingerprint(text, cfg.ngram_size)
    if len(candidate) < cfg.min_ngrams:
        return SimilarityResult(passed=True)

    highest = 0.0
    match_id: Optional[str] = None
    match_title: Optional[str] = None
    for script in repo.list_scripts():
        if exclude_script_id and script.id == exclude_script_id:
            continue
        existing = str(script.voice_text or "")
        if len(existing) < cfg.min_script_chars:
            continue
        score = jaccard(candidate, fingerprint(existing, cfg.ngram_size), min_size=cfg.min_ngrams)
        if score > highest:
            highest, match_id, match_title = score, script.id, script.hook or script.topic_id

    passed = highest < cfg.script_threshold
    return SimilarityResult(
        passed=passed,
        highest_similarity=round(highest, 2),
        similar_id=None if passed else match_id,
        similar_title=None if passed else match_title,
    )


def first_words_collision(text: str, seed_titles: Iterable[str], count: int = 4) -> Optional[str]:
    """Return the seed title whose opening words equal the text's, if any."""
    head = opening_words(text, count)
    if not head:
        return None
    for seed in seed_titles:
        if seed and opening_words(seed, count) == head:
            return seed
    return None
