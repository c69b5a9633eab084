"""Bounded-retry quality gate in front of the script-text stage."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, List, Optional

from config import SimilaritySettings, get_similarity_settings
from core import ErrorKind, StageOutcome
from .similarity import SimilarityResult, check_script_similarity, first_words_collision

logger = logging.getLogger(__name__)

Producer = Callable[[int], Awaitable[str]]

_VOICE_MARKERS = ("-", "—", "–")


def voiceover_lines(script_text: str) -> List[str]:
    """Narrator lines of a script: those starting with a dash, marker removed."""
    lines: List[str] = []
    for raw in str(script_text or "").splitlines():
        line = raw.strip()
        if line[:1] in _VOICE_MARKERS:
            spoken = line.lstrip("".join(_VOICE_MARKERS)).strip()
            if spoken:
                lines.append(spoken)
    return lines


def voiceover_text(script_text: str) -> str:
    """Voice-over text stored on the script; the whole text when no dash lines exist."""
    lines = voiceover_lines(script_text)
    return "\n".join(lines) if lines else str(script_text or "").strip()


@dataclass
class AntiCopyVerdict:
    passed: bool
    reason: str = ""
    copied_title: Optional[str] = None
    similarity: Optional[SimilarityResult] = None


def too_similar_message(result: SimilarityResult) -> str:
    return f"Content too similar ({result.percent}%) to existing script. Try different angle or topic."


class AntiCopyValidator:
    """Rejects candidates that reuse a seed title's opening or paraphrase an existing script."""

    def __init__(self, repo, settings: Optional[SimilaritySettings] = None) -> None:
        self._repo = repo
        self._settings = settings or get_similarity_settings()

    @property
    def max_attempts(self) -> int:
        return 1 + max(0, self._settings.max_regen_attempts)

    def check(self, script_text: str, seed_titles: Iterable[str], *, exclude_script_id: Optional[str] = None) -> AntiCopyVerdict:
        seeds = [title for title in seed_titles if title]
        voice = voiceover_text(script_text)

        for line in [voice] + voiceover_lines(script_text):
            copied = first_words_collision(line, seeds, self._settings.opening_words)
            if copied is not None:
                return AntiCopyVerdict(
                    passed=False,
                    reason=f'Script opens with the source title "{copied}". Try different angle or topic.',
                    copied_title=copied,
                )

        result = check_script_similarity(self._repo, voice, exclude_script_id=exclude_script_id, settings=self._settings)
        if not result.passed:
            return AntiCopyVerdict(passed=False, reason=too_similar_message(result), similarity=result)
        return AntiCopyVerdict(passed=True, similarity=result)

    async def generate(
        self,
        produce: Producer,
        seed_titles: Iterable[str],
        *,
        exclude_script_id: Optional[str] = None,
    ) -> StageOutcome:
        """Call ``produce(attempt)`` until a candidate passes or attempts run out.

        On success ``detail["text"]`` carries the accepted script text.
        """
        seeds = list(seed_titles)
        verdict = AntiCopyVerdict(passed=False, reason="No script produced")
        for attempt in range(self.max_attempts):
            candidate = await produce(attempt)
            verdict = self.check(candidate, seeds, exclude_script_id=exclude_script_id)
            if verdict.passed:
                return StageOutcome.success("script accepted", text=candidate, attempts=attempt + 1)
            logger.info(
                "anticopy_rejected attempt=%s/%s reason=%s similar_id=%s",
                attempt + 1,
                self.max_attempts,
                "opening_words" if verdict.copied_title else "similarity",
                verdict.similarity.similar_id if verdict.similarity else None,
            )

        detail = {"attempts": self.max_attempts}
        if verdict.similarity is not None:
            detail["similarity"] = verdict.similarity.highest_similarity
            detail["similar_id"] = verdict.similarity.similar_id
        if verdict.copied_title is not None:
            detail["copied_title"] = verdict.copied_title
        return StageOutcome.failure(ErrorKind.DUPLICATE_CONTENT, verdict.reason, **detail)
