from __future__ import annotations

from datetime import timedelta

from config import SimilaritySettings
from pipeline.similarity import (
    check_script_similarity,
    check_topic_similarity,
    fingerprint,
    first_words_collision,
    jaccard,
    normalize_text,
    topic_similarity,
)

EXISTING_VOICE = "alpha bravo charlie delta echo foxtrot golf hotel india juliet"
CANDIDATE_VOICE = "alpha bravo charlie delta echo foxtrot golf xray yankee zulu"


def test_normalize_text_folds_case_punctuation_and_diacritics() -> None:
    assert normalize_text("  Café, CRÈME!!  brûlée ") == "cafe creme brulee"
    assert normalize_text("Москва: суд   решил") == "москва суд решил"


def test_fingerprint_builds_word_ngrams() -> None:
    grams = fingerprint("one two three four five", 4)
    assert grams == {"one two three four", "two three four five"}
    assert fingerprint("one two", 4) == set()


def test_jaccard_ignores_sets_without_signal() -> None:
    assert jaccard({"a", "b"}, {"a", "b"}) == 0.0
    assert jaccard({"a", "b", "c"}, {"a", "b", "c"}) == 1.0
    assert jaccard({"a", "b", "c", "d"}, {"a", "b", "c", "e"}) == 3 / 5


def test_moscow_court_titles_are_duplicates(repo) -> None:
    settings = SimilaritySettings()
    score = topic_similarity("Moscow court rules on the case", None, "Moscow court rules on this case", None, settings=settings)
    assert round(score, 2) == 0.71
    assert score >= settings.topic_threshold

    source = repo.create_source(name="Feed", url="https://example.com/rss")
    first = repo.create_topic(source_id=source.id, title="Moscow court rules on the case")
    result = check_topic_similarity(repo, "Moscow court rules on this case", settings=settings)
    assert result.passed is False
    assert result.similar_id == first.id
    assert result.similar_title == "Moscow court rules on the case"


def test_topic_similarity_blends_bodies_when_both_carry_signal() -> None:
    settings = SimilaritySettings()
    body = "the council approved a new budget for public transport upgrades across the region"
    score = topic_similarity("Council approves new budget", body, "Council approves new budget", body, settings=settings)
    assert score == 1.0

    other = "volcanic ash grounded flights over northern europe for a second consecutive day"
    blended = topic_similarity("Council approves new budget", body, "Council approves new budget", other, settings=settings)
    assert round(blended, 2) == 0.4


def test_topic_dedup_only_looks_back_seven_days(repo) -> None:
    source = repo.create_source(name="Feed", url="https://example.com/rss")
    old = repo.now() - timedelta(days=8)
    repo.create_topic(source_id=source.id, title="Moscow court rules on the case", created_at=old)

    result = check_topic_similarity(repo, "Moscow court rules on this case", settings=SimilaritySettings())
    assert result.passed is True
    assert result.similar_id is None


def test_script_similarity_reports_rounded_score(repo) -> None:
    existing = repo.create_script(topic_id="topic_a", voice_text=EXISTING_VOICE)
    result = check_script_similarity(repo, CANDIDATE_VOICE, settings=SimilaritySettings())
    assert result.passed is False
    assert result.highest_similarity == 0.4
    assert result.percent == 40
    assert result.similar_id == existing.id


def test_script_similarity_skips_excluded_and_short_scripts(repo) -> None:
    own = repo.create_script(topic_id="topic_a", voice_text=EXISTING_VOICE)
    repo.create_script(topic_id="topic_b", voice_text="alpha bravo charlie delta")

    result = check_script_similarity(repo, CANDIDATE_VOICE, exclude_script_id=own.id, settings=SimilaritySettings())
    assert result.passed is True
    assert result.highest_similarity == 0.0


def test_first_words_collision_compares_normalized_openings() -> None:
    seeds = ["Moscow Court rules on the case"]
    assert first_words_collision("moscow court, RULES on appeal today", seeds) == seeds[0]
    assert first_words_collision("Yesterday a Moscow court ruled", seeds) is None


def test_identical_short_titles_are_duplicates(repo) -> None:
    settings = SimilaritySettings()
    assert topic_similarity("Weekly Digest", None, "weekly  digest!", None, settings=settings) == 1.0
    assert topic_similarity("Weekly Digest", None, "Monthly Digest", None, settings=settings) == 0.0

    source = repo.create_source(name="Feed", url="https://example.com/rss")
    first = repo.create_topic(source_id=source.id, title="Weekly Digest", raw_text="Curated notes")
    result = check_topic_similarity(repo, "Weekly Digest", "Curated notes", settings=settings)
    assert result.passed is False
    assert result.similar_id == first.id
