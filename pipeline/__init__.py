"""Topic intake and script generation pipeline."""

from .anticopy import AntiCopyValidator, voiceover_lines, voiceover_text
from .generate_all import GenerationOrchestrator
from .intake import IntakeReport, TopicIntakePipeline, is_thin
from .similarity import (
    SimilarityResult,
    check_script_similarity,
    check_topic_similarity,
    fingerprint,
    jaccard,
    normalize_text,
)
from .stages import StageHandlers, stage_done
from .tags import extract_tags
from .throttle import IngestionThrottle
from .trends import extract_trends, signals_for_generation

__all__ = [
    "AntiCopyValidator",
    "GenerationOrchestrator",
    "IngestionThrottle",
    "IntakeReport",
    "SimilarityResult",
    "StageHandlers",
    "TopicIntakePipeline",
    "check_script_similarity",
    "check_topic_similarity",
    "extract_tags",
    "extract_trends",
    "fingerprint",
    "is_thin",
    "jaccard",
    "normalize_text",
    "signals_for_generation",
    "stage_done",
    "voiceover_lines",
    "voiceover_text",
]
