"""Stage summary compaction.

A summary sub-stage condenses every agent's response to the preceding
stage into a single StageSummary, which later stages receive instead of
the full responses. When the Reasoner fails a deterministic digest (the
first sentence of each speaker) is used, so summarization never stalls
the pipeline.
"""

import logging
import re
import time
from typing import Optional, Sequence

from providers.base import Reasoner, ReasonerResult

from .agent import sanitize_output
from .interaction_log import InteractionLog
from .models import (
    SUMMARIZED_STAGE,
    DialogueStage,
    InteractionRecord,
    InteractionStatus,
    Language,
    PersonalityProfile,
    StageResponse,
    StageSummary,
)
from .prompts import render_summary

logger = logging.getLogger(__name__)

SUMMARIZER_ID = "stage-summarizer"
MAX_POSITION_CHARS = 200

_SENTENCE_END = re.compile(r"(?<=[.!?。！？])\s*")
_POSITION_LINE = re.compile(r"^\s*[-*•]\s*\**(?P<speaker>[^:：*]+?)\**\s*[:：]\s*(?P<position>.+)$")


def first_sentence(text: str, limit: int = MAX_POSITION_CHARS) -> str:
    text = " ".join(text.split())
    sentence = _SENTENCE_END.split(text, maxsplit=1)[0] if text else ""
    if len(sentence) > limit:
        sentence = sentence[:limit].rstrip() + "..."
    return sentence


def parse_positions(content: str, agents: Sequence[PersonalityProfile]) -> dict[str, str]:
    """Map "- Name: position" lines back to agent ids.

    Lines naming an unknown speaker are ignored.
    """
    lookup: dict[str, str] = {}
    for agent in agents:
        for name in agent.all_aliases():
            lookup[name.lower()] = agent.id

    positions: dict[str, str] = {}
    for line in content.splitlines():
        match = _POSITION_LINE.match(line)
        if not match:
            continue
        speaker = match.group("speaker").strip().lower()
        agent_id = lookup.get(speaker)
        if agent_id and agent_id not in positions:
            positions[agent_id] = match.group("position").strip()
    return positions


class StageSummarizer:
    """Produces one condensed record per summary sub-stage."""

    def __init__(
        self,
        reasoner: Optional[Reasoner] = None,
        interaction_log: Optional[InteractionLog] = None,
        language: Language = Language.EN,
    ):
        self.reasoner = reasoner
        self.interaction_log = interaction_log
        self.language = language

    def fallback_summary(
        self,
        responses: Sequence[StageResponse],
        agents: Sequence[PersonalityProfile],
    ) -> tuple[str, dict[str, str]]:
        names = {a.id: a.name for a in agents}
        positions = {r.agent_id: first_sentence(r.content) for r in responses}
        content = "\n".join(
            f"- {names.get(agent_id, agent_id)}: {position}"
            for agent_id, position in positions.items()
        )
        return content, positions

    async def summarize(
        self,
        session_id: str,
        stage: DialogueStage,
        responses: Sequence[StageResponse],
        agents: Sequence[PersonalityProfile],
        sequence_number: int = 1,
        language: Optional[Language] = None,
    ) -> StageSummary:
        """Condense the responses of the stage that ``stage`` summarizes.

        Args:
            session_id: Session the responses belong to
            stage: A summary sub-stage (e.g. mutual-reflection-summary)
            responses: Responses of the summarized stage
            agents: Session agents
            sequence_number: Current cycle
            language: Summary instruction language (defaults to the summarizer's)

        Returns:
            StageSummary for the summarized stage
        """
        summarized = SUMMARIZED_STAGE.get(stage, stage)
        if not responses:
            return StageSummary(stage=summarized, content="", sequence_number=sequence_number)

        names = {a.id: a.name for a in agents}
        logs = "\n\n".join(
            f"{names.get(r.agent_id, r.agent_id)}: {r.content.strip()}" for r in responses
        )
        prompt = render_summary(
            summarized,
            [a.name for a in agents],
            logs,
            language or self.language,
        )

        result = await self._execute(prompt)
        content = sanitize_output(result.content) if result.success else ""
        positions = parse_positions(content, agents) if content else {}

        if not content:
            logger.warning(
                f"[{session_id}] Summary of {summarized.value} fell back to digest: "
                f"{result.error or 'empty response'}"
            )
            content, positions = self.fallback_summary(responses, agents)

        if self.interaction_log is not None and self.reasoner is not None:
            self.interaction_log.record(InteractionRecord(
                session_id=session_id,
                agent_id=SUMMARIZER_ID,
                agent_name="Stage Summarizer",
                stage=stage,
                sequence_number=sequence_number,
                prompt=prompt,
                output=content,
                duration_ms=result.duration_ms,
                status=InteractionStatus.SUCCESS if result.success else InteractionStatus.ERROR,
                error=result.error,
            ))

        return StageSummary(
            stage=summarized,
            content=content,
            positions=positions,
            sequence_number=sequence_number,
        )

    async def _execute(self, prompt: str) -> ReasonerResult:
        if self.reasoner is None:
            return ReasonerResult(success=False, error="No summarizer reasoner configured")
        start = time.perf_counter()
        try:
            result = await self.reasoner.execute(prompt)
        except Exception as e:
            logger.warning(f"Summarizer reasoner raised: {e}")
            return ReasonerResult(
                success=False,
                error=str(e),
                duration_ms=(time.perf_counter() - start) * 1000,
            )
        if not result.duration_ms:
            result = result.model_copy(
                update={"duration_ms": (time.perf_counter() - start) * 1000}
            )
        return result
