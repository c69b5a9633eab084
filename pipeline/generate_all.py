"""Resumable "generate all" run over every script stage."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from core import JobKind, ScriptStatus, StageOutcome
from .stages import StageHandlers, stage_done

logger = logging.getLogger(__name__)

# Stage order with the progress reported once the stage is done or skipped.
STAGE_ORDER: List[Tuple[JobKind, int]] = [
    (JobKind.GENERATE_HOOK, 15),
    (JobKind.GENERATE_SCRIPT, 35),
    (JobKind.GENERATE_STORYBOARD, 55),
    (JobKind.GENERATE_VOICE, 65),
    (JobKind.PICK_MUSIC, 75),
    (JobKind.GENERATE_SEO, 90),
]


class GenerationOrchestrator:
    """Drives every stage for one script, skipping stages whose field is populated.

    Re-running after a partial failure resumes at the first missing field.
    """

    def __init__(self, repo, stages: StageHandlers) -> None:
        self._repo = repo
        self._stages = stages

    async def run(self, script_id: str, progress: Optional[Callable[[int], None]] = None) -> StageOutcome:
        report = progress or (lambda _pct: None)
        script = self._repo.get_script(script_id)
        if script is None:
            return StageOutcome.not_found("script", script_id)
        topic = self._repo.get_topic(script.topic_id)
        if topic is None:
            return StageOutcome.not_found("topic", script.topic_id)

        self._repo.update_script(script_id, status=ScriptStatus.GENERATING)
        ran: List[str] = []
        skipped: List[str] = []
        for kind, pct in STAGE_ORDER:
            script = self._repo.get_script(script_id)
            if script is None:
                return StageOutcome.not_found("script", script_id)
            if stage_done(script, kind):
                skipped.append(kind.value)
            else:
                outcome = await self._stages.run_stage(kind, script, topic)
                if not outcome.ok:
                    logger.info("generate_all_stopped script_id=%s stage=%s error=%s", script_id, kind.value, outcome.message)
                    return outcome
                ran.append(kind.value)
            report(pct)

        self._repo.update_script(script_id, status=ScriptStatus.READY, error=None)
        logger.info("generate_all_done script_id=%s ran=%s skipped=%s", script_id, ran, skipped)
        return StageOutcome.success("All stages complete", ran=ran, skipped=skipped)

    async def handle(self, payload, progress: Callable[[int], None]) -> StageOutcome:
        return await self.run(payload.script_id, progress)
