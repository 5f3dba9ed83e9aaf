"""Generic dialogue agent.

One Agent class serves every personality: behavior differences come from
the PersonalityProfile and an optional AgentOverrides value. Each stage
operation follows the same template:

1. Select the visible context for the agent's memory scope
2. Compose the stage instruction on top of the personality preamble
3. Call the Reasoner; sanitize the answer, or fall back to canned prose
4. Record the invocation and attach reasoning, approach and confidence

Reasoner failures never escape an Agent; the stage always receives a
structurally valid StageResponse.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from providers.base import Reasoner, ReasonerResult

from .confidence import estimate_confidence
from .conflicts import Conflict, format_conflicts
from .context import select_context
from .extraction import PeerRef, extract_reflections, extract_vote
from .generation import derive_generation_parameters
from .interaction_log import InteractionLog
from .models import (
    ConsensusResult,
    DialogueStage,
    InteractionRecord,
    InteractionStatus,
    Language,
    Message,
    PersonalityProfile,
    Priority,
    ReasoningStyle,
    StageResponse,
)
from .prompts import (
    format_context,
    personality_preamble,
    render_stage,
    stage_title,
)

logger = logging.getLogger(__name__)

MAX_INSTRUCTION_CHARS = 32000
TRUNCATION_MARKER = "\n\n[Content truncated for length]\n\n"

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
_META_LINE = re.compile(
    r"^\s*[\[(](?:note|meta|internal|word count|system)\b[^\])\n]*[\])]\s*$",
    re.IGNORECASE | re.MULTILINE,
)
_FENCE = re.compile(r"^```[a-z]*\n(.*)\n```$", re.DOTALL)

DEFAULT_ASSUMPTIONS: dict[ReasoningStyle, list[str]] = {
    ReasoningStyle.LOGICAL: ["The question admits a consistent chain of reasoning"],
    ReasoningStyle.CRITICAL: ["Claims should be tested before they are accepted"],
    ReasoningStyle.INTUITIVE: ["Patterns and analogies carry real information"],
    ReasoningStyle.META: ["How we frame the question shapes the answer"],
    ReasoningStyle.EMOTIVE: ["Human experience is part of the evidence"],
    ReasoningStyle.ANALYTICAL: ["The problem can be decomposed into measurable parts"],
}

DEFAULT_APPROACH: dict[Priority, str] = {
    Priority.PRECISION: "Narrow the question and answer it exactly",
    Priority.BREADTH: "Survey the widest range of relevant perspectives",
    Priority.DEPTH: "Follow one line of thought to its foundations",
    Priority.BALANCE: "Weigh competing considerations against each other",
}


StageHook = Callable[[DialogueStage, str], str]
StageListHook = Callable[[DialogueStage, str], list[str]]


@dataclass
class AgentOverrides:
    """Optional hooks replacing the derived reasoning/approach fields.

    Each hook receives the stage and the response content.
    """

    reasoning: Optional[StageHook] = None
    assumptions: Optional[StageListHook] = None
    approach: Optional[StageHook] = None
    references: Optional[StageListHook] = None


def sanitize_output(text: str) -> str:
    """Strip control characters, thinking blocks and meta-commentary."""
    text = _CONTROL_CHARS.sub("", text or "")
    text = _THINK_BLOCK.sub("", text)
    text = _META_LINE.sub("", text)
    text = text.strip()
    fenced = _FENCE.match(text)
    if fenced:
        text = fenced.group(1).strip()
    return re.sub(r"\n{3,}", "\n\n", text)


def truncate_instruction(text: str, max_chars: int = MAX_INSTRUCTION_CHARS) -> str:
    """Keep the head and tail of an over-long instruction."""
    if len(text) <= max_chars:
        return text
    half = (max_chars - len(TRUNCATION_MARKER)) // 2
    return text[:half] + TRUNCATION_MARKER + text[-half:]


def format_responses(
    responses: Sequence[StageResponse],
    names: dict[str, str],
    limit: int = 1500,
) -> str:
    """Render responses as "Name (id): content" blocks."""
    blocks = []
    for response in responses:
        content = response.content.strip()
        if len(content) > limit:
            content = content[:limit] + "..."
        display = names.get(response.agent_id, response.agent_id)
        blocks.append(f"{display} ({response.agent_id}): {content}")
    return "\n\n".join(blocks) if blocks else "(none)"


class Agent:
    """One dialogue participant bound to a Reasoner for one session.

    Args:
        profile: Static personality profile
        reasoner: Text-completion capability (injected, not owned)
        session_id: Session this agent instance serves
        interaction_log: Audit log shared by the session's agents
        overrides: Optional hooks for reasoning/assumptions/approach/references
        language: Output language for instructions and fallback prose
    """

    def __init__(
        self,
        profile: PersonalityProfile,
        reasoner: Reasoner,
        session_id: str,
        interaction_log: Optional[InteractionLog] = None,
        overrides: Optional[AgentOverrides] = None,
        language: Language = Language.EN,
    ):
        self.profile = profile
        self.reasoner = reasoner
        self.session_id = session_id
        self.interaction_log = interaction_log or InteractionLog()
        self.overrides = overrides or AgentOverrides()
        self.language = language
        self.parameters = derive_generation_parameters(profile)
        self.sequence_number = 1

    @property
    def id(self) -> str:
        return self.profile.id

    @property
    def name(self) -> str:
        return self.profile.name

    def peer_ref(self) -> PeerRef:
        return PeerRef.from_profile(self.profile)

    # Stage operations

    async def individual_thought(
        self,
        query: str,
        history: Sequence[Message],
        summary_context: str = "",
        names: Optional[dict[str, str]] = None,
    ) -> StageResponse:
        stage = DialogueStage.INDIVIDUAL_THOUGHT
        context = select_context(history, self.profile.memory_scope)
        instruction = render_stage(
            stage,
            self.language,
            query=query,
            context=format_context(context, names, self.language),
            summary_context=summary_context,
        )
        content, success = await self._invoke(stage, instruction, query)
        return self._build_response(stage, content, success, context)

    async def mutual_reflection(
        self,
        query: str,
        peer_thoughts: Sequence[StageResponse],
        peers: Sequence[PeerRef],
        history: Sequence[Message],
        summary_context: str = "",
        names: Optional[dict[str, str]] = None,
    ) -> StageResponse:
        stage = DialogueStage.MUTUAL_REFLECTION
        names = names or {}
        context = select_context(history, self.profile.memory_scope)
        others = [t for t in peer_thoughts if t.agent_id != self.id]
        instruction = render_stage(
            stage,
            self.language,
            query=query,
            peer_thoughts=format_responses(others, names),
            context=format_context(context, names, self.language),
            summary_context=summary_context,
        )
        content, success = await self._invoke(stage, instruction, query)
        response = self._build_response(stage, content, success, context)
        response.reflections = extract_reflections(
            content, [p for p in peers if p.id != self.id]
        )
        return response

    async def conflict_resolution(
        self,
        query: str,
        conflicts: Sequence[Conflict],
        history: Sequence[Message],
        summary_context: str = "",
        names: Optional[dict[str, str]] = None,
    ) -> StageResponse:
        stage = DialogueStage.CONFLICT_RESOLUTION
        context = select_context(history, self.profile.memory_scope)
        instruction = render_stage(
            stage,
            self.language,
            query=query,
            conflicts=format_conflicts(conflicts),
            context=format_context(context, names, self.language),
            summary_context=summary_context,
        )
        content, success = await self._invoke(stage, instruction, query)
        return self._build_response(stage, content, success, context)

    async def synthesis_attempt(
        self,
        query: str,
        synthesis_data: str,
        history: Sequence[Message],
        summary_context: str = "",
        names: Optional[dict[str, str]] = None,
    ) -> StageResponse:
        stage = DialogueStage.SYNTHESIS_ATTEMPT
        context = select_context(history, self.profile.memory_scope)
        instruction = render_stage(
            stage,
            self.language,
            query=query,
            synthesis_data=synthesis_data,
            context=format_context(context, names, self.language),
            summary_context=summary_context,
        )
        content, success = await self._invoke(stage, instruction, query)
        return self._build_response(stage, content, success, context)

    async def output_generation(
        self,
        query: str,
        final_data: str,
        candidates: Sequence[PeerRef],
        history: Sequence[Message],
        summary_context: str = "",
        names: Optional[dict[str, str]] = None,
    ) -> StageResponse:
        stage = DialogueStage.OUTPUT_GENERATION
        context = select_context(history, self.profile.memory_scope)
        candidate_lines = "\n".join(
            f"- {c.id} ({c.name})" for c in candidates if c.id != self.id
        )
        instruction = render_stage(
            stage,
            self.language,
            query=query,
            final_data=final_data,
            candidates=candidate_lines,
            self_id=self.id,
            context=format_context(context, names, self.language),
            summary_context=summary_context,
        )
        content, success = await self._invoke(stage, instruction, query)
        response = self._build_response(stage, content, success, context)
        response.vote = extract_vote(content, self.id, candidates)
        return response

    async def finalize(
        self,
        query: str,
        final_data: str,
        consensus: ConsensusResult,
        history: Sequence[Message],
        summary_context: str = "",
        names: Optional[dict[str, str]] = None,
    ) -> StageResponse:
        stage = DialogueStage.FINALIZE
        names = names or {}
        context = select_context(history, self.profile.memory_scope)
        voting_results = "\n".join(
            f"- {names.get(agent_id, agent_id)} ({agent_id}): {count}"
            for agent_id, count in consensus.tally.items()
        ) or "(no valid votes)"
        instruction = render_stage(
            stage,
            self.language,
            query=query,
            voting_results=voting_results,
            final_data=final_data,
            summary_context=summary_context,
        )
        content, success = await self._invoke(stage, instruction, query)
        return self._build_response(stage, content, success, context)

    # Template steps

    async def _invoke(
        self,
        stage: DialogueStage,
        instruction: str,
        query: str,
    ) -> tuple[str, bool]:
        """Call the Reasoner and record the interaction.

        Returns:
            (content, success); content is fallback prose when success is False
        """
        instruction = truncate_instruction(instruction)
        start = time.perf_counter()
        try:
            result = await self.reasoner.execute(
                instruction,
                system_prompt=personality_preamble(self.profile, self.language),
                parameters=self.parameters,
            )
        except Exception as e:
            logger.warning(f"Reasoner raised for {self.id} in {stage.value}: {e}")
            result = ReasonerResult(success=False, error=str(e))
        duration = result.duration_ms or (time.perf_counter() - start) * 1000

        content = sanitize_output(result.content) if result.success else ""
        success = result.success and bool(content)
        error = result.error
        if result.success and not content:
            error = "Empty response after sanitizing"

        if not success:
            logger.warning(
                f"{self.name} ({self.id}) falling back in {stage.value}: {error}"
            )
            content = self.fallback_content(stage, query)

        status = InteractionStatus.SUCCESS if success else InteractionStatus.ERROR
        if error and "timed out" in error.lower():
            status = InteractionStatus.TIMEOUT
        self.interaction_log.record(InteractionRecord(
            session_id=self.session_id,
            agent_id=self.id,
            agent_name=self.name,
            stage=stage,
            sequence_number=self.sequence_number,
            prompt=instruction,
            output=content,
            duration_ms=duration,
            status=status,
            error=None if success else error,
        ))
        return content, success

    def fallback_content(self, stage: DialogueStage, query: str) -> str:
        """Agent-specific prose used when the Reasoner fails."""
        excerpt = " ".join(query.split())[:80]
        approach = self._approach(stage, "")
        if self.language == Language.JA:
            return (
                f"{self.name}として、{stage_title(stage, self.language)}では"
                f"「{excerpt}」について{self.profile.style.value}な視点から考えます。"
                f"方針: {approach}。現時点では詳細な回答を生成できなかったため、"
                f"この立場を暫定的な見解として提示します。"
            )
        return (
            f"As {self.name}, I approach \"{excerpt}\" from a {self.profile.style.value} "
            f"perspective during {stage_title(stage, self.language)}. "
            f"My approach: {approach}. A detailed answer could not be produced right now, "
            f"so I offer this position as a provisional view."
        )

    def _reasoning(self, stage: DialogueStage, content: str) -> str:
        if self.overrides.reasoning:
            return self.overrides.reasoning(stage, content)
        if self.profile.reasoning:
            return self.profile.reasoning
        return (
            f"Applied {self.profile.style.value} reasoning with a "
            f"{self.profile.priority.value} priority to {stage.value}."
        )

    def _assumptions(self, stage: DialogueStage, content: str) -> list[str]:
        if self.overrides.assumptions:
            return list(self.overrides.assumptions(stage, content))
        if self.profile.assumptions:
            return list(self.profile.assumptions)
        return list(DEFAULT_ASSUMPTIONS.get(self.profile.style, []))

    def _approach(self, stage: DialogueStage, content: str) -> str:
        if self.overrides.approach:
            return self.overrides.approach(stage, content)
        if self.profile.approach:
            return self.profile.approach
        return DEFAULT_APPROACH.get(self.profile.priority, "")

    def _references(self, stage: DialogueStage, content: str) -> list[str]:
        if self.overrides.references:
            return list(self.overrides.references(stage, content))
        return list(self.profile.references)

    def _build_response(
        self,
        stage: DialogueStage,
        content: str,
        success: bool,
        context: Sequence[Message],
    ) -> StageResponse:
        confidence = estimate_confidence(
            self.profile.style,
            self.profile.priority,
            stage=stage,
            context=context,
            history=self.interaction_log.success_counts(self.session_id, self.id),
            error_history=self.interaction_log.success_counts(self.session_id),
        )
        return StageResponse(
            agent_id=self.id,
            stage=stage,
            content=content,
            reasoning=self._reasoning(stage, content),
            assumptions=self._assumptions(stage, content),
            approach=self._approach(stage, content),
            confidence=confidence,
            references=self._references(stage, content),
            success=success,
            sequence_number=self.sequence_number,
        )
